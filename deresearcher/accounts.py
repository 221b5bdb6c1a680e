"""处理器共用的账户检查与记录读写"""

from typing import Optional, Type

from . import addressing, codec
from .errors import (
    ImmutableAccount,
    InvalidSigner,
    PaperNotFound,
    ProfileNotFound,
    PubkeyMismatch,
    SerializationError,
)
from .ledger import SYSTEM_PROGRAM_ID, AccountInfo
from .models import ResearcherProfile, ResearchPaper


def require_signer(account: AccountInfo) -> None:
    if not account.is_signer:
        raise InvalidSigner(f"{account.key.hex()} did not sign")


def require_writable(*accounts: AccountInfo) -> None:
    for account in accounts:
        if not account.is_writable:
            raise ImmutableAccount(f"{account.key.hex()} is not writable")


def require_system_program(account: AccountInfo) -> None:
    if account.key != SYSTEM_PROGRAM_ID:
        raise PubkeyMismatch(f"{account.key.hex()} is not the system program")


def read_record(model: Type[codec.RecordT], account: AccountInfo) -> codec.RecordT:
    return codec.decode(model, account.data)


def write_record(account: AccountInfo, record) -> None:
    data = codec.encode(record)
    if len(account.data) != len(data):
        raise SerializationError(
            f"account holds {len(account.data)} bytes, record needs {len(data)}"
        )
    account.data[:] = data


def load_profile(
    program_id: bytes, account: AccountInfo, owner: Optional[bytes] = None
) -> ResearcherProfile:
    """读取研究者档案并校验其地址；给定 owner 时地址必须由该 owner 派生"""
    if account.data_is_empty():
        raise ProfileNotFound(f"no profile at {account.key.hex()}")
    profile = read_record(ResearcherProfile, account)
    seeds = addressing.profile_seeds(owner if owner is not None else profile.owner)
    addressing.validate(seeds, profile.bump, account.key, program_id)
    return profile


def load_paper(program_id: bytes, account: AccountInfo) -> ResearchPaper:
    if account.data_is_empty():
        raise PaperNotFound(f"no paper at {account.key.hex()}")
    paper = read_record(ResearchPaper, account)
    addressing.validate(
        addressing.paper_seeds(paper.paper_content_hash, paper.creator),
        paper.bump,
        account.key,
        program_id,
    )
    return paper
