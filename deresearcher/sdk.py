"""客户端指令构造

派生记录地址，并按程序要求的顺序排列账户列表。
"""

import base64
from typing import Dict, Tuple, Union

from . import addressing, codec
from .instruction import (
    AddPeerReview,
    CheckAndAssignReputation,
    CreateResearcherProfile,
    CreateResearchPaper,
    GetAccessToPaper,
    PublishPaper,
    encode_instruction,
)
from .ledger import SYSTEM_PROGRAM_ID, AccountMeta, Instruction, Transaction
from .models import DIGEST_SIZE, EMPTY_DIGEST


def to_digest(value: Union[str, bytes, None]) -> bytes:
    """把字符串或字节补齐为64字节摘要"""
    if value is None:
        return EMPTY_DIGEST
    return codec.pack_string(value, DIGEST_SIZE)


def find_profile_address(owner: bytes, program_id: bytes) -> Tuple[bytes, int]:
    return addressing.derive(addressing.profile_seeds(owner), program_id)


def find_paper_address(content_hash: bytes, creator: bytes, program_id: bytes) -> Tuple[bytes, int]:
    return addressing.derive(addressing.paper_seeds(content_hash, creator), program_id)


def find_review_address(paper: bytes, reviewer: bytes, program_id: bytes) -> Tuple[bytes, int]:
    return addressing.derive(addressing.review_seeds(paper, reviewer), program_id)


def find_mint_address(reader: bytes, program_id: bytes) -> Tuple[bytes, int]:
    return addressing.derive(addressing.mint_seeds(reader), program_id)


def create_researcher_profile(program_id: bytes, owner: bytes, name: str) -> Instruction:
    profile, bump = find_profile_address(owner, program_id)
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(owner, is_signer=True, is_writable=True),
            AccountMeta(profile, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_instruction(CreateResearcherProfile(name=name, pda_bump=bump)),
    )


def check_and_assign_reputation(
    program_id: bytes, authority: bytes, owner: bytes, reputation: int
) -> Instruction:
    profile, _ = find_profile_address(owner, program_id)
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(authority, is_signer=True),
            AccountMeta(profile, is_writable=True),
        ],
        data=encode_instruction(CheckAndAssignReputation(reputation=reputation)),
    )


def create_research_paper(
    program_id: bytes,
    publisher: bytes,
    content_hash: Union[str, bytes],
    access_fee: int,
    metadata_root: Union[str, bytes, None] = None,
) -> Instruction:
    content_hash = to_digest(content_hash)
    profile, _ = find_profile_address(publisher, program_id)
    paper, bump = find_paper_address(content_hash, publisher, program_id)
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(publisher, is_signer=True, is_writable=True),
            AccountMeta(profile, is_writable=True),
            AccountMeta(paper, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_instruction(
            CreateResearchPaper(
                access_fee=access_fee,
                paper_content_hash=content_hash,
                meta_data_merkle_root=to_digest(metadata_root),
                pda_bump=bump,
            )
        ),
    )


def publish_paper(program_id: bytes, publisher: bytes, paper: bytes) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(publisher, is_signer=True),
            AccountMeta(paper, is_writable=True),
        ],
        data=encode_instruction(PublishPaper()),
    )


def add_peer_review(
    program_id: bytes,
    reviewer: bytes,
    paper: bytes,
    scores: Tuple[int, int, int, int],
    metadata_root: Union[str, bytes, None] = None,
) -> Instruction:
    profile, _ = find_profile_address(reviewer, program_id)
    review, bump = find_review_address(paper, reviewer, program_id)
    quality, potential, domain, practicality = scores
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(reviewer, is_signer=True, is_writable=True),
            AccountMeta(profile, is_writable=True),
            AccountMeta(paper, is_writable=True),
            AccountMeta(review, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_instruction(
            AddPeerReview(
                quality_of_research=quality,
                potential_for_real_world_use_case=potential,
                domain_knowledge=domain,
                practicality_of_result_obtained=practicality,
                meta_data_merkle_root=to_digest(metadata_root),
                pda_bump=bump,
            )
        ),
    )


def get_access_to_paper(
    program_id: bytes,
    reader: bytes,
    paper: bytes,
    fee_receiver: bytes,
    metadata_root: Union[str, bytes, None] = None,
) -> Instruction:
    profile, _ = find_profile_address(reader, program_id)
    mint, bump = find_mint_address(reader, program_id)
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(reader, is_signer=True, is_writable=True),
            AccountMeta(profile, is_writable=True),
            AccountMeta(paper, is_writable=True),
            AccountMeta(mint, is_writable=True),
            AccountMeta(fee_receiver, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID),
        ],
        data=encode_instruction(
            GetAccessToPaper(meta_data_merkle_root=to_digest(metadata_root), pda_bump=bump)
        ),
    )


def transaction_to_json(tx: Transaction) -> Dict:
    """转换为 API 提交格式"""
    return {
        "recent_blockhash": tx.recent_blockhash.hex(),
        "instructions": [
            {
                "program_id": ix.program_id.hex(),
                "accounts": [
                    {
                        "pubkey": meta.pubkey.hex(),
                        "is_signer": meta.is_signer,
                        "is_writable": meta.is_writable,
                    }
                    for meta in ix.accounts
                ],
                "data": ix.data.hex(),
            }
            for ix in tx.instructions
        ],
        "signatures": {
            pubkey.hex(): base64.b64encode(signature).decode("utf-8")
            for pubkey, signature in tx.signatures.items()
        },
    }
