from enum import IntEnum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer

from .errors import SizeOverflow

PUBKEY_LENGTH = 32
MAX_STRING_SIZE = 64
DIGEST_SIZE = 64

MAX_REPUTATION = 100
MIN_REPUTATION_FOR_PEER_REVIEW = 50
MAX_REVIEW_SCORE = 100
APPROVAL_SCORE_CUTOFF = 50

U8_MAX = 0xFF
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF


def _fixed_bytes(size: int):
    def coerce(value):
        if isinstance(value, str):
            value = bytes.fromhex(value)
        value = bytes(value)
        if len(value) != size:
            raise ValueError(f"expected {size} bytes, got {len(value)}")
        return value
    return coerce


def _unpad(value: bytes) -> str:
    return value.rstrip(b"\0").decode("utf-8", errors="replace")


# 公钥/地址：32字节，JSON 中为十六进制
Pubkey = Annotated[
    bytes,
    BeforeValidator(_fixed_bytes(PUBKEY_LENGTH)),
    PlainSerializer(lambda v: v.hex(), return_type=str, when_used="json"),
]

# 内容哈希、元数据默克尔根：64字节
Digest = Annotated[
    bytes,
    BeforeValidator(_fixed_bytes(DIGEST_SIZE)),
    PlainSerializer(lambda v: v.hex(), return_type=str, when_used="json"),
]

# 定长姓名，末尾补零
PackedName = Annotated[
    bytes,
    BeforeValidator(_fixed_bytes(MAX_STRING_SIZE)),
    PlainSerializer(_unpad, return_type=str, when_used="json"),
]

EMPTY_DIGEST = bytes(DIGEST_SIZE)


class ResearcherProfileState(IntEnum):
    AWAITING_APPROVAL = 0
    APPROVED = 1
    REJECTED = 2


class PaperState(IntEnum):
    AWAITING_PEER_REVIEW = 0
    IN_PEER_REVIEW = 1
    APPROVED_TO_PUBLISH = 2
    REQUIRES_REVISION = 3
    PUBLISHED = 4
    MINTED = 5


ProfileStateField = Annotated[
    ResearcherProfileState,
    PlainSerializer(lambda v: v.name, return_type=str, when_used="json"),
]

PaperStateField = Annotated[
    PaperState,
    PlainSerializer(lambda v: v.name, return_type=str, when_used="json"),
]


class ResearcherProfile(BaseModel):
    address: Pubkey
    owner: Pubkey
    name: PackedName
    state: ProfileStateField = ResearcherProfileState.AWAITING_APPROVAL
    total_papers_published: int = Field(default=0, ge=0, le=U64_MAX)
    total_citations: int = Field(default=0, ge=0, le=U64_MAX)
    total_reviews: int = Field(default=0, ge=0, le=U64_MAX)
    reputation: int = Field(default=0, ge=0, le=MAX_REPUTATION)
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    bump: int = Field(ge=0, le=U8_MAX)

    @property
    def display_name(self) -> str:
        return _unpad(self.name)


class ResearchPaper(BaseModel):
    address: Pubkey
    creator: Pubkey
    state: PaperStateField = PaperState.AWAITING_PEER_REVIEW
    access_fee: int = Field(default=0, ge=0, le=U32_MAX)
    version: int = Field(default=0, ge=0, le=U8_MAX)
    paper_content_hash: Digest
    total_approvals: int = Field(default=0, ge=0, le=U8_MAX)
    total_citations: int = Field(default=0, ge=0, le=U64_MAX)
    total_mints: int = Field(default=0, ge=0, le=U64_MAX)
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    bump: int = Field(ge=0, le=U8_MAX)


class PeerReview(BaseModel):
    address: Pubkey
    reviewer: Pubkey
    paper: Pubkey
    quality_of_research: int = Field(ge=0, le=U8_MAX)
    potential_for_real_world_use_case: int = Field(ge=0, le=U8_MAX)
    domain_knowledge: int = Field(ge=0, le=U8_MAX)
    practicality_of_result_obtained: int = Field(ge=0, le=U8_MAX)
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    bump: int = Field(ge=0, le=U8_MAX)

    @property
    def scores(self) -> tuple:
        return (
            self.quality_of_research,
            self.potential_for_real_world_use_case,
            self.domain_knowledge,
            self.practicality_of_result_obtained,
        )


class AccessMintRecord(BaseModel):
    reader: Pubkey
    data_merkle_root: Digest = EMPTY_DIGEST
    bump: int = Field(ge=0, le=U8_MAX)


def increment(value: int, limit: int = U64_MAX) -> int:
    """计数器加一，超过上限时报错而不是回绕"""
    if value >= limit:
        raise SizeOverflow(f"counter already at its maximum ({limit})")
    return value + 1
