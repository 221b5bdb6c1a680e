import logging

from . import addressing, codec
from .accounts import (
    load_paper,
    load_profile,
    require_signer,
    require_system_program,
    require_writable,
    write_record,
)
from .config import Settings
from .errors import InvalidState, NotEnoughApprovals, PaperAlreadyExists, PubkeyMismatch
from .ledger import AccountInfo, InvokeContext
from .models import PaperState, ResearchPaper, increment

logger = logging.getLogger(__name__)

# 尚未达到评审阈值的状态
PRE_APPROVAL_STATES = (PaperState.AWAITING_PEER_REVIEW, PaperState.IN_PEER_REVIEW)


class ResearchPaperStore:
    def __init__(self, program_id: bytes, host: InvokeContext, settings: Settings):
        self.program_id = program_id
        self.host = host
        self.settings = settings

    def create_paper(
        self,
        creator: AccountInfo,
        profile_account: AccountInfo,
        paper_account: AccountInfo,
        system_program: AccountInfo,
        bump: int,
        content_hash: bytes,
        metadata_root: bytes,
        access_fee: int,
    ) -> ResearchPaper:
        """创建论文并累加作者的发表数"""
        require_signer(creator)
        profile = load_profile(self.program_id, profile_account, owner=creator.key)
        require_writable(profile_account, paper_account)
        require_system_program(system_program)

        if not paper_account.data_is_empty():
            raise PaperAlreadyExists(f"paper {paper_account.key.hex()} already exists")

        seeds = addressing.paper_seeds(content_hash, creator.key)
        addressing.validate(seeds, bump, paper_account.key, self.program_id)

        paper = ResearchPaper(
            address=paper_account.key,
            creator=creator.key,
            access_fee=access_fee,
            paper_content_hash=content_hash,
            meta_data_merkle_root=metadata_root,
            bump=bump,
        )
        profile.total_papers_published = increment(profile.total_papers_published)

        self.host.create_account(
            creator,
            paper_account,
            codec.record_size(ResearchPaper),
            self.program_id,
            seeds + [bytes([bump])],
        )
        write_record(paper_account, paper)
        write_record(profile_account, profile)
        logger.info("Paper %s created by %s", paper_account.key.hex(), creator.key.hex())
        return paper

    def publish(self, creator: AccountInfo, paper_account: AccountInfo) -> ResearchPaper:
        require_signer(creator)
        paper = load_paper(self.program_id, paper_account)
        require_writable(paper_account)

        if paper.creator != creator.key:
            raise PubkeyMismatch(f"{creator.key.hex()} is not the creator of this paper")

        if paper.state in PRE_APPROVAL_STATES:
            raise NotEnoughApprovals(
                f"{paper.total_approvals}/{self.settings.min_approvals_for_publish} approvals"
            )
        if paper.state != PaperState.APPROVED_TO_PUBLISH:
            raise InvalidState(f"cannot publish a paper in state {paper.state.name}")

        paper.state = PaperState.PUBLISHED
        write_record(paper_account, paper)
        logger.info("Paper %s published", paper_account.key.hex())
        return paper
