"""指令负载编解码

负载格式：1字节操作码 + 参数结构体。定长数组原样写入，字符串为
u32 长度前缀 + UTF-8 字节。
"""

import struct
from enum import IntEnum
from typing import ClassVar, Dict, List, Tuple, Type, Union

from pydantic import BaseModel, Field, ValidationError

from .errors import InvalidInstruction
from .models import DIGEST_SIZE, U8_MAX, U32_MAX, Digest, EMPTY_DIGEST


class InstructionKind(IntEnum):
    CREATE_RESEARCHER_PROFILE = 0
    CHECK_AND_ASSIGN_REPUTATION = 1
    CREATE_RESEARCH_PAPER = 2
    PUBLISH_PAPER = 3
    ADD_PEER_REVIEW = 4
    GET_ACCESS_TO_PAPER = 5


class CreateResearcherProfile(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.CREATE_RESEARCHER_PROFILE
    name: str
    pda_bump: int = Field(ge=0, le=U8_MAX)


class CheckAndAssignReputation(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.CHECK_AND_ASSIGN_REPUTATION
    reputation: int = Field(ge=0, le=U8_MAX)


class CreateResearchPaper(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.CREATE_RESEARCH_PAPER
    access_fee: int = Field(ge=0, le=U32_MAX)
    paper_content_hash: Digest
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    pda_bump: int = Field(ge=0, le=U8_MAX)


class PublishPaper(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.PUBLISH_PAPER


class AddPeerReview(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.ADD_PEER_REVIEW
    quality_of_research: int = Field(ge=0, le=U8_MAX)
    potential_for_real_world_use_case: int = Field(ge=0, le=U8_MAX)
    domain_knowledge: int = Field(ge=0, le=U8_MAX)
    practicality_of_result_obtained: int = Field(ge=0, le=U8_MAX)
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    pda_bump: int = Field(ge=0, le=U8_MAX)


class GetAccessToPaper(BaseModel):
    kind: ClassVar[InstructionKind] = InstructionKind.GET_ACCESS_TO_PAPER
    meta_data_merkle_root: Digest = EMPTY_DIGEST
    pda_bump: int = Field(ge=0, le=U8_MAX)


ProgramInstruction = Union[
    CreateResearcherProfile,
    CheckAndAssignReputation,
    CreateResearchPaper,
    PublishPaper,
    AddPeerReview,
    GetAccessToPaper,
]

# 每种指令的参数字段及其线格式
_SCHEMAS: Dict[InstructionKind, Tuple[Type[BaseModel], Tuple[Tuple[str, str], ...]]] = {
    InstructionKind.CREATE_RESEARCHER_PROFILE: (
        CreateResearcherProfile,
        (("name", "string"), ("pda_bump", "u8")),
    ),
    InstructionKind.CHECK_AND_ASSIGN_REPUTATION: (
        CheckAndAssignReputation,
        (("reputation", "u8"),),
    ),
    InstructionKind.CREATE_RESEARCH_PAPER: (
        CreateResearchPaper,
        (
            ("access_fee", "u32"),
            ("paper_content_hash", "digest"),
            ("meta_data_merkle_root", "digest"),
            ("pda_bump", "u8"),
        ),
    ),
    InstructionKind.PUBLISH_PAPER: (PublishPaper, ()),
    InstructionKind.ADD_PEER_REVIEW: (
        AddPeerReview,
        (
            ("quality_of_research", "u8"),
            ("potential_for_real_world_use_case", "u8"),
            ("domain_knowledge", "u8"),
            ("practicality_of_result_obtained", "u8"),
            ("meta_data_merkle_root", "digest"),
            ("pda_bump", "u8"),
        ),
    ),
    InstructionKind.GET_ACCESS_TO_PAPER: (
        GetAccessToPaper,
        (("meta_data_merkle_root", "digest"), ("pda_bump", "u8")),
    ),
}

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")


class _Reader:
    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self.data):
            raise InvalidInstruction("instruction data is truncated")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read(self, wire_type: str):
        if wire_type == "u8":
            return _U8.unpack(self.take(_U8.size))[0]
        if wire_type == "u32":
            return _U32.unpack(self.take(_U32.size))[0]
        if wire_type == "digest":
            return self.take(DIGEST_SIZE)
        if wire_type == "string":
            length = _U32.unpack(self.take(_U32.size))[0]
            try:
                return self.take(length).decode("utf-8")
            except UnicodeDecodeError:
                raise InvalidInstruction("string field is not valid UTF-8") from None
        raise ValueError(f"Unknown wire type: {wire_type}")


def _write(wire_type: str, value) -> bytes:
    if wire_type == "u8":
        return _U8.pack(value)
    if wire_type == "u32":
        return _U32.pack(value)
    if wire_type == "digest":
        return bytes(value)
    if wire_type == "string":
        raw = value.encode("utf-8")
        return _U32.pack(len(raw)) + raw
    raise ValueError(f"Unknown wire type: {wire_type}")


def encode_instruction(instruction: ProgramInstruction) -> bytes:
    _, fields = _SCHEMAS[instruction.kind]
    parts: List[bytes] = [_U8.pack(instruction.kind)]
    for name, wire_type in fields:
        parts.append(_write(wire_type, getattr(instruction, name)))
    return b"".join(parts)


def decode_instruction(data: bytes) -> ProgramInstruction:
    """解析指令负载；未知操作码、截断或多余字节均视为非法指令"""
    if not data:
        raise InvalidInstruction("empty instruction data")
    try:
        kind = InstructionKind(data[0])
    except ValueError:
        raise InvalidInstruction(f"unknown instruction tag {data[0]}") from None
    model, fields = _SCHEMAS[kind]
    reader = _Reader(data[1:])
    values = {name: reader.read(wire_type) for name, wire_type in fields}
    if reader.offset != len(reader.data):
        raise InvalidInstruction("unexpected trailing bytes in instruction data")
    try:
        return model(**values)
    except ValidationError as e:
        raise InvalidInstruction(str(e)) from e
