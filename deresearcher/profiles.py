import logging

from . import addressing, codec
from .accounts import (
    load_profile,
    require_signer,
    require_system_program,
    require_writable,
    write_record,
)
from .config import Settings
from .errors import InvalidReputationChecker, ProfileAlreadyExists, SizeOverflow
from .ledger import AccountInfo, InvokeContext
from .models import (
    MAX_REPUTATION,
    MIN_REPUTATION_FOR_PEER_REVIEW,
    ResearcherProfile,
    ResearcherProfileState,
)

logger = logging.getLogger(__name__)


class ResearcherProfileStore:
    def __init__(self, program_id: bytes, host: InvokeContext, settings: Settings):
        self.program_id = program_id
        self.host = host
        self.settings = settings

    def create_profile(
        self,
        owner: AccountInfo,
        profile_account: AccountInfo,
        system_program: AccountInfo,
        bump: int,
        name: str,
    ) -> ResearcherProfile:
        """创建研究者档案，初始状态为待审批"""
        require_signer(owner)
        require_writable(profile_account)
        require_system_program(system_program)

        if not profile_account.data_is_empty():
            raise ProfileAlreadyExists(f"profile {profile_account.key.hex()} already exists")

        seeds = addressing.profile_seeds(owner.key)
        addressing.validate(seeds, bump, profile_account.key, self.program_id)

        # 先打包姓名，超长时账户尚未创建
        name_bytes = codec.pack_string(name)

        profile = ResearcherProfile(
            address=profile_account.key,
            owner=owner.key,
            name=name_bytes,
            bump=bump,
        )
        self.host.create_account(
            owner,
            profile_account,
            codec.record_size(ResearcherProfile),
            self.program_id,
            seeds + [bytes([bump])],
        )
        write_record(profile_account, profile)
        logger.info("Profile created for %s", owner.key.hex())
        return profile

    def assign_reputation(
        self, authority: AccountInfo, profile_account: AccountInfo, reputation: int
    ) -> ResearcherProfile:
        """由声誉预言机设置声誉，并据此批准或拒绝档案"""
        if authority.key != self.settings.reputation_authority:
            raise InvalidReputationChecker(f"{authority.key.hex()} is not the reputation authority")
        require_signer(authority)

        profile = load_profile(self.program_id, profile_account)
        require_writable(profile_account)

        if reputation > MAX_REPUTATION:
            raise SizeOverflow(f"reputation {reputation} exceeds {MAX_REPUTATION}")

        profile.reputation = reputation
        if reputation > MIN_REPUTATION_FOR_PEER_REVIEW:
            profile.state = ResearcherProfileState.APPROVED
        else:
            profile.state = ResearcherProfileState.REJECTED

        write_record(profile_account, profile)
        logger.info(
            "Reputation %d assigned to %s (%s)",
            reputation, profile.owner.hex(), profile.state.name,
        )
        return profile
