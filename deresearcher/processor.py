import logging
from typing import List, Optional, Sequence

from .access import AccessMintProcessor
from .config import Settings, get_settings
from .errors import InvalidInstruction
from .instruction import (
    AddPeerReview,
    CheckAndAssignReputation,
    CreateResearcherProfile,
    CreateResearchPaper,
    GetAccessToPaper,
    PublishPaper,
    decode_instruction,
)
from .ledger import AccountInfo, InvokeContext
from .papers import ResearchPaperStore
from .profiles import ResearcherProfileStore
from .reviews import PeerReviewProcessor, ReviewScores

logger = logging.getLogger(__name__)


def _accounts(accounts: Sequence[AccountInfo], count: int) -> List[AccountInfo]:
    """按位置取出指令所需的账户"""
    if len(accounts) < count:
        raise InvalidInstruction(f"expected {count} accounts, got {len(accounts)}")
    return list(accounts[:count])


class Processor:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def process(
        self,
        program_id: bytes,
        accounts: Sequence[AccountInfo],
        instruction_data: bytes,
        host: InvokeContext,
    ):
        """解析指令并分派给唯一的处理器"""
        instruction = decode_instruction(instruction_data)
        logger.info("Instruction: %s", type(instruction).__name__)

        if isinstance(instruction, CreateResearcherProfile):
            owner, profile, system_program = _accounts(accounts, 3)
            return ResearcherProfileStore(program_id, host, self.settings).create_profile(
                owner, profile, system_program, instruction.pda_bump, instruction.name
            )

        elif isinstance(instruction, CheckAndAssignReputation):
            authority, profile = _accounts(accounts, 2)
            return ResearcherProfileStore(program_id, host, self.settings).assign_reputation(
                authority, profile, instruction.reputation
            )

        elif isinstance(instruction, CreateResearchPaper):
            publisher, profile, paper, system_program = _accounts(accounts, 4)
            return ResearchPaperStore(program_id, host, self.settings).create_paper(
                publisher,
                profile,
                paper,
                system_program,
                instruction.pda_bump,
                instruction.paper_content_hash,
                instruction.meta_data_merkle_root,
                instruction.access_fee,
            )

        elif isinstance(instruction, PublishPaper):
            publisher, paper = _accounts(accounts, 2)
            return ResearchPaperStore(program_id, host, self.settings).publish(publisher, paper)

        elif isinstance(instruction, AddPeerReview):
            reviewer, profile, paper, review, system_program = _accounts(accounts, 5)
            scores = ReviewScores(
                instruction.quality_of_research,
                instruction.potential_for_real_world_use_case,
                instruction.domain_knowledge,
                instruction.practicality_of_result_obtained,
            )
            return PeerReviewProcessor(program_id, host, self.settings).add_review(
                reviewer,
                profile,
                paper,
                review,
                system_program,
                instruction.pda_bump,
                scores,
                instruction.meta_data_merkle_root,
            )

        elif isinstance(instruction, GetAccessToPaper):
            reader, profile, paper, mint, fee_receiver, system_program = _accounts(accounts, 6)
            return AccessMintProcessor(program_id, host, self.settings).grant_access(
                reader,
                profile,
                paper,
                mint,
                fee_receiver,
                system_program,
                instruction.pda_bump,
                instruction.meta_data_merkle_root,
            )

        raise InvalidInstruction(f"unsupported instruction {type(instruction).__name__}")

    __call__ = process
