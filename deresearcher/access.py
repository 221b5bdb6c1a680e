import logging

from . import addressing, codec
from .accounts import (
    load_paper,
    load_profile,
    read_record,
    require_signer,
    require_system_program,
    require_writable,
    write_record,
)
from .config import Settings
from .errors import InvalidFeeReceiver, InvalidState
from .ledger import AccountInfo, InvokeContext
from .models import AccessMintRecord, PaperState, increment

logger = logging.getLogger(__name__)

ACCESSIBLE_STATES = (PaperState.PUBLISHED, PaperState.MINTED)


class AccessMintProcessor:
    def __init__(self, program_id: bytes, host: InvokeContext, settings: Settings):
        self.program_id = program_id
        self.host = host
        self.settings = settings

    def grant_access(
        self,
        reader: AccountInfo,
        profile_account: AccountInfo,
        paper_account: AccountInfo,
        mint_account: AccountInfo,
        fee_receiver: AccountInfo,
        system_program: AccountInfo,
        bump: int,
        metadata_root: bytes,
    ) -> AccessMintRecord:
        """读者支付访问费用，获得论文访问记录并累计引用"""
        require_signer(reader)
        profile = load_profile(self.program_id, profile_account, owner=reader.key)
        paper = load_paper(self.program_id, paper_account)
        if fee_receiver.key != paper.creator:
            raise InvalidFeeReceiver(f"{fee_receiver.key.hex()} is not the paper creator")

        require_writable(profile_account, paper_account, mint_account, fee_receiver)
        require_system_program(system_program)

        seeds = addressing.mint_seeds(reader.key)
        addressing.validate(seeds, bump, mint_account.key, self.program_id)

        if self.settings.require_published_for_access and paper.state not in ACCESSIBLE_STATES:
            raise InvalidState(f"paper is {paper.state.name}, not published")

        paper.total_citations = increment(paper.total_citations)
        paper.total_mints = increment(paper.total_mints)
        profile.total_citations = increment(profile.total_citations)

        if mint_account.data_is_empty():
            self.host.create_account(
                reader,
                mint_account,
                codec.record_size(AccessMintRecord),
                self.program_id,
                seeds + [bytes([bump])],
            )
            record = AccessMintRecord(reader=reader.key, data_merkle_root=metadata_root, bump=bump)
        else:
            record = read_record(AccessMintRecord, mint_account)
            record.data_merkle_root = metadata_root

        if paper.access_fee > 0:
            self.host.transfer(reader, fee_receiver, paper.access_fee)

        write_record(mint_account, record)
        write_record(paper_account, paper)
        write_record(profile_account, profile)
        logger.info(
            "Access to %s granted to %s (fee %d)",
            paper_account.key.hex(), reader.key.hex(), paper.access_fee,
        )
        return record
