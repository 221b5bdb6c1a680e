"""Shared fixtures: an in-memory ledger with the program registered.

Invariants:
    - Every test gets a fresh ledger; nothing is shared between tests except the
      API module's global ledger
    - The reputation authority is a fixed keypair so tests can sign as the oracle
"""

import os

import pytest

from deresearcher.auth import Keypair

AUTHORITY = Keypair.from_secret(bytes(range(32)))

# 在导入 API 模块之前设置，get_settings() 会缓存
os.environ.setdefault("DERES_REPUTATION_AUTHORITY", AUTHORITY.public_key.hex())
os.environ.setdefault("DERES_MIN_APPROVALS_FOR_PUBLISH", "1")

from deresearcher import codec, sdk  # noqa: E402
from deresearcher.config import Settings  # noqa: E402
from deresearcher.ledger import Instruction, Ledger, Transaction  # noqa: E402
from deresearcher.models import (  # noqa: E402
    AccessMintRecord,
    PeerReview,
    ResearcherProfile,
    ResearchPaper,
)
from deresearcher.processor import Processor  # noqa: E402

FUNDS = 10_000_000_000


def make_settings(**overrides) -> Settings:
    values = {
        "reputation_authority": AUTHORITY.public_key,
        "min_approvals_for_publish": 1,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class Harness:
    """Drives the program through the ledger the way a client would."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.program_id = settings.program_id
        self.ledger = Ledger()
        self.ledger.register_program(self.program_id, Processor(settings))

    # ─── plumbing ─────────────────────────────────────────────

    def funded(self, lamports: int = FUNDS) -> Keypair:
        keypair = Keypair()
        self.ledger.airdrop(keypair.public_key, lamports)
        return keypair

    def send(self, ix: Instruction, *signers: Keypair):
        tx = Transaction([ix], self.ledger.latest_blockhash())
        return self.ledger.process_transaction(tx.sign(*signers))

    # ─── reads ────────────────────────────────────────────────

    def profile_address(self, owner: Keypair) -> bytes:
        return sdk.find_profile_address(owner.public_key, self.program_id)[0]

    def profile(self, owner: Keypair) -> ResearcherProfile:
        return codec.decode(ResearcherProfile, self.ledger.get_data(self.profile_address(owner)))

    def paper(self, address: bytes) -> ResearchPaper:
        return codec.decode(ResearchPaper, self.ledger.get_data(address))

    def review(self, paper: bytes, reviewer: Keypair) -> PeerReview:
        address, _ = sdk.find_review_address(paper, reviewer.public_key, self.program_id)
        return codec.decode(PeerReview, self.ledger.get_data(address))

    def mint_address(self, reader: Keypair) -> bytes:
        return sdk.find_mint_address(reader.public_key, self.program_id)[0]

    def mint(self, reader: Keypair) -> AccessMintRecord:
        return codec.decode(AccessMintRecord, self.ledger.get_data(self.mint_address(reader)))

    # ─── operations ───────────────────────────────────────────

    def researcher(self, name: str = "alice", reputation=None, lamports: int = FUNDS) -> Keypair:
        owner = self.funded(lamports)
        self.send(sdk.create_researcher_profile(self.program_id, owner.public_key, name), owner)
        if reputation is not None:
            self.assign(owner, reputation)
        return owner

    def assign(self, owner: Keypair, reputation: int):
        ix = sdk.check_and_assign_reputation(
            self.program_id, AUTHORITY.public_key, owner.public_key, reputation
        )
        return self.send(ix, AUTHORITY)

    def create_paper(self, creator: Keypair, content_hash="QmPaperContentHash", fee: int = 100) -> bytes:
        ix = sdk.create_research_paper(self.program_id, creator.public_key, content_hash, fee)
        self.send(ix, creator)
        return ix.accounts[2].pubkey

    def add_review(self, reviewer: Keypair, paper: bytes, scores=(80, 80, 80, 80)):
        ix = sdk.add_peer_review(self.program_id, reviewer.public_key, paper, scores)
        return self.send(ix, reviewer)

    def publish(self, creator: Keypair, paper: bytes):
        return self.send(sdk.publish_paper(self.program_id, creator.public_key, paper), creator)

    def grant_access(self, reader: Keypair, paper: bytes, fee_receiver: bytes, metadata="reader-meta"):
        ix = sdk.get_access_to_paper(self.program_id, reader.public_key, paper, fee_receiver, metadata)
        return self.send(ix, reader)

    def published_paper(self, creator: Keypair, fee: int = 100, content_hash="QmPublished") -> bytes:
        """创建论文并经一位评审者通过后发布（阈值为1）"""
        paper = self.create_paper(creator, content_hash, fee)
        self.add_review(self.researcher("reviewer", reputation=90), paper)
        self.publish(creator, paper)
        return paper


@pytest.fixture
def authority() -> Keypair:
    return AUTHORITY


@pytest.fixture
def harness() -> Harness:
    return Harness(make_settings())


@pytest.fixture
def make_harness():
    def factory(**overrides) -> Harness:
        return Harness(make_settings(**overrides))
    return factory
