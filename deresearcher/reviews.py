import logging
from typing import NamedTuple

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
from .errors import (
    NotAllowedForPeerReview,
    PeerReviewAlreadyExists,
    PublisherCannotAddPeerReview,
    SizeOverflow,
)
from .ledger import AccountInfo, InvokeContext
from .models import (
    APPROVAL_SCORE_CUTOFF,
    MAX_REVIEW_SCORE,
    U8_MAX,
    PaperState,
    PeerReview,
    ResearcherProfileState,
    increment,
)

logger = logging.getLogger(__name__)


class ReviewScores(NamedTuple):
    quality_of_research: int
    potential_for_real_world_use_case: int
    domain_knowledge: int
    practicality_of_result_obtained: int


def average_score(scores: ReviewScores) -> int:
    """四项评分的平均值，整数截断"""
    return sum(scores) // len(scores)


def is_approval(scores: ReviewScores) -> bool:
    return average_score(scores) > APPROVAL_SCORE_CUTOFF


class PeerReviewProcessor:
    def __init__(self, program_id: bytes, host: InvokeContext, settings: Settings):
        self.program_id = program_id
        self.host = host
        self.settings = settings

    def add_review(
        self,
        reviewer: AccountInfo,
        profile_account: AccountInfo,
        paper_account: AccountInfo,
        review_account: AccountInfo,
        system_program: AccountInfo,
        bump: int,
        scores: ReviewScores,
        metadata_root: bytes,
    ) -> PeerReview:
        """添加同行评审，同时更新论文与评审者档案"""
        require_signer(reviewer)

        profile = load_profile(self.program_id, profile_account, owner=reviewer.key)
        if profile.state != ResearcherProfileState.APPROVED:
            raise NotAllowedForPeerReview(f"profile state is {profile.state.name}")

        require_writable(profile_account, paper_account, review_account)
        require_system_program(system_program)

        paper = load_paper(self.program_id, paper_account)
        if paper.creator == reviewer.key:
            raise PublisherCannotAddPeerReview()

        if not review_account.data_is_empty():
            raise PeerReviewAlreadyExists(f"review {review_account.key.hex()} already exists")

        seeds = addressing.review_seeds(paper_account.key, reviewer.key)
        addressing.validate(seeds, bump, review_account.key, self.program_id)

        for score in scores:
            if score > MAX_REVIEW_SCORE:
                raise SizeOverflow(f"review score {score} exceeds {MAX_REVIEW_SCORE}")

        review = PeerReview(
            address=review_account.key,
            reviewer=reviewer.key,
            paper=paper_account.key,
            quality_of_research=scores.quality_of_research,
            potential_for_real_world_use_case=scores.potential_for_real_world_use_case,
            domain_knowledge=scores.domain_knowledge,
            practicality_of_result_obtained=scores.practicality_of_result_obtained,
            meta_data_merkle_root=metadata_root,
            bump=bump,
        )

        if is_approval(scores):
            paper.total_approvals = increment(paper.total_approvals, U8_MAX)

        # 状态只前进不后退
        if paper.state == PaperState.AWAITING_PEER_REVIEW:
            paper.state = PaperState.IN_PEER_REVIEW
        if (
            paper.state == PaperState.IN_PEER_REVIEW
            and paper.total_approvals >= self.settings.min_approvals_for_publish
        ):
            paper.state = PaperState.APPROVED_TO_PUBLISH

        paper.total_citations = increment(paper.total_citations)
        profile.total_reviews = increment(profile.total_reviews)

        self.host.create_account(
            reviewer,
            review_account,
            codec.record_size(PeerReview),
            self.program_id,
            seeds + [bytes([bump])],
        )
        write_record(review_account, review)
        write_record(paper_account, paper)
        write_record(profile_account, profile)
        logger.info(
            "Review by %s on %s: average %d, approvals %d, state %s",
            reviewer.key.hex(), paper_account.key.hex(), average_score(scores),
            paper.total_approvals, paper.state.name,
        )
        return review
