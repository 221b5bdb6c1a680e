"""定长记录编解码

字段顺序固定，整数为小端序，定长数组没有长度前缀。
"""

import struct
from typing import Dict, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import SerializationError, SizeOverflow
from .models import (
    MAX_STRING_SIZE,
    AccessMintRecord,
    PeerReview,
    ResearcherProfile,
    ResearchPaper,
)

RecordT = TypeVar("RecordT", bound=BaseModel)


def pack_string(value: Union[str, bytes], capacity: int = MAX_STRING_SIZE) -> bytes:
    """按容量打包字符串，剩余部分补零；超长时报 SizeOverflow

    补零后无法区分末尾的 NUL，因此文本中不允许出现 NUL。
    """
    if isinstance(value, str) and "\0" in value:
        raise SerializationError("string must not contain NUL characters")
    data = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    if len(data) > capacity:
        raise SizeOverflow(f"{len(data)} bytes exceeds capacity of {capacity}")
    return data.ljust(capacity, b"\0")


def unpack_string(data: bytes) -> str:
    return data.rstrip(b"\0").decode("utf-8")


class RecordLayout:
    def __init__(self, model: Type[BaseModel], fmt: str, fields: Sequence[str]):
        self.model = model
        self.struct = struct.Struct(fmt)
        self.fields = tuple(fields)

    @property
    def size(self) -> int:
        return self.struct.size

    def encode(self, record: BaseModel) -> bytes:
        try:
            return self.struct.pack(*(getattr(record, name) for name in self.fields))
        except struct.error as e:
            raise SerializationError(f"cannot encode {self.model.__name__}: {e}") from e

    def decode(self, data: bytes) -> BaseModel:
        if len(data) != self.size:
            raise SerializationError(
                f"{self.model.__name__} needs {self.size} bytes, got {len(data)}"
            )
        values = self.struct.unpack(bytes(data))
        try:
            return self.model(**dict(zip(self.fields, values)))
        except ValidationError as e:
            raise SerializationError(f"invalid {self.model.__name__}: {e}") from e


LAYOUTS: Dict[type, RecordLayout] = {
    # 32 + 32 + 64 + 1 + 8 + 8 + 8 + 1 + 64 + 1 = 219
    ResearcherProfile: RecordLayout(
        ResearcherProfile,
        "<32s32s64sBQQQB64sB",
        (
            "address", "owner", "name", "state", "total_papers_published",
            "total_citations", "total_reviews", "reputation",
            "meta_data_merkle_root", "bump",
        ),
    ),
    # 32 + 32 + 1 + 4 + 1 + 64 + 1 + 8 + 8 + 64 + 1 = 216
    ResearchPaper: RecordLayout(
        ResearchPaper,
        "<32s32sBIB64sBQQ64sB",
        (
            "address", "creator", "state", "access_fee", "version",
            "paper_content_hash", "total_approvals", "total_citations",
            "total_mints", "meta_data_merkle_root", "bump",
        ),
    ),
    # 32 + 32 + 32 + 1 + 1 + 1 + 1 + 64 + 1 = 165
    PeerReview: RecordLayout(
        PeerReview,
        "<32s32s32sBBBB64sB",
        (
            "address", "reviewer", "paper", "quality_of_research",
            "potential_for_real_world_use_case", "domain_knowledge",
            "practicality_of_result_obtained", "meta_data_merkle_root", "bump",
        ),
    ),
    # 32 + 64 + 1 = 97
    AccessMintRecord: RecordLayout(
        AccessMintRecord,
        "<32s64sB",
        ("reader", "data_merkle_root", "bump"),
    ),
}


def record_size(model: type) -> int:
    return LAYOUTS[model].size


def encode(record: BaseModel) -> bytes:
    return LAYOUTS[type(record)].encode(record)


def decode(model: Type[RecordT], data: bytes) -> RecordT:
    return LAYOUTS[model].decode(data)
