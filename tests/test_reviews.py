"""Peer reviews: scoring, approvals and paper state transitions.

Invariants:
    - One review per (paper, reviewer)
    - Only approved researchers other than the creator may review
    - A review approves when the truncated average of its four scores exceeds 50
    - Paper state only moves forward
"""

import pytest

from deresearcher import sdk
from deresearcher.auth import Keypair
from deresearcher.errors import (
    NotAllowedForPeerReview,
    PaperNotFound,
    PeerReviewAlreadyExists,
    PublisherCannotAddPeerReview,
    SizeOverflow,
)
from deresearcher.models import PaperState
from deresearcher.reviews import ReviewScores, average_score, is_approval


# ─── scoring ─────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "scores, average",
    [
        ((100, 100, 100, 100), 100),
        ((0, 0, 0, 0), 0),
        ((50, 51, 51, 51), 50),
        ((0, 0, 0, 203), 50),
        ((52, 51, 51, 51), 51),
    ],
)
def test_average_truncates(scores, average):
    assert average_score(ReviewScores(*scores)) == average


def test_average_of_exactly_50_is_not_an_approval():
    assert not is_approval(ReviewScores(50, 50, 50, 50))
    assert is_approval(ReviewScores(51, 51, 51, 51))


# ─── add_review ──────────────────────────────────────────────────

def test_add_review(harness):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=90)
    paper = harness.create_paper(creator)
    harness.add_review(reviewer, paper, (90, 80, 70, 60))

    review = harness.review(paper, reviewer)
    assert review.reviewer == reviewer.public_key
    assert review.paper == paper
    assert review.scores == (90, 80, 70, 60)

    record = harness.paper(paper)
    assert record.total_approvals == 1
    assert record.total_citations == 1
    assert record.state is PaperState.APPROVED_TO_PUBLISH
    assert harness.profile(reviewer).total_reviews == 1


def test_low_score_review_counts_but_does_not_approve(harness):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=90)
    paper = harness.create_paper(creator)
    harness.add_review(reviewer, paper, (10, 20, 30, 40))

    record = harness.paper(paper)
    assert record.total_approvals == 0
    assert record.total_citations == 1
    assert record.state is PaperState.IN_PEER_REVIEW
    assert harness.profile(reviewer).total_reviews == 1


def test_duplicate_review(harness):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=90)
    paper = harness.create_paper(creator)
    harness.add_review(reviewer, paper)
    with pytest.raises(PeerReviewAlreadyExists):
        harness.add_review(reviewer, paper)
    assert harness.paper(paper).total_approvals == 1


def test_creator_cannot_review_own_paper(harness):
    creator = harness.researcher("creator", reputation=90)
    paper = harness.create_paper(creator)
    with pytest.raises(PublisherCannotAddPeerReview):
        harness.add_review(creator, paper)


@pytest.mark.parametrize("reputation", [None, 30])
def test_unapproved_reviewer(harness, reputation):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=reputation)
    paper = harness.create_paper(creator)
    with pytest.raises(NotAllowedForPeerReview):
        harness.add_review(reviewer, paper)


def test_review_of_missing_paper(harness):
    reviewer = harness.researcher("reviewer", reputation=90)
    with pytest.raises(PaperNotFound):
        harness.add_review(reviewer, Keypair().public_key)


def test_score_above_100_overflows(harness):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=90)
    paper = harness.create_paper(creator)
    with pytest.raises(SizeOverflow):
        harness.add_review(reviewer, paper, (100, 100, 100, 101))
    assert harness.paper(paper).total_citations == 0


def test_review_after_publish_keeps_published_state(harness):
    creator = harness.researcher("creator")
    paper = harness.published_paper(creator)
    harness.add_review(harness.researcher("late", reputation=90), paper, (10, 10, 10, 10))
    record = harness.paper(paper)
    assert record.state is PaperState.PUBLISHED
    assert record.total_citations == 2


def test_review_pays_rent(harness):
    creator = harness.researcher("creator")
    reviewer = harness.researcher("reviewer", reputation=90)
    paper = harness.create_paper(creator)
    before = harness.ledger.get_balance(reviewer.public_key)
    harness.add_review(reviewer, paper)
    address, _ = sdk.find_review_address(paper, reviewer.public_key, harness.program_id)
    rent = harness.ledger.get_balance(address)
    assert rent == (128 + 165) * 3480 * 2
    assert harness.ledger.get_balance(reviewer.public_key) == before - rent


def test_review_lifecycle(make_harness):
    harness = make_harness(min_approvals_for_publish=3)
    creator = harness.researcher("creator")
    paper = harness.create_paper(creator, "QmLifecycle")
    reviewers = [harness.researcher(f"reviewer-{i}", reputation=60 + i) for i in range(4)]

    harness.add_review(reviewers[0], paper, (90, 90, 90, 90))
    harness.add_review(reviewers[1], paper, (20, 20, 20, 20))
    harness.add_review(reviewers[2], paper, (70, 70, 70, 70))
    assert harness.paper(paper).state is PaperState.IN_PEER_REVIEW

    harness.add_review(reviewers[3], paper, (60, 60, 60, 60))
    record = harness.paper(paper)
    assert record.total_approvals == 3
    assert record.total_citations == 4
    assert record.state is PaperState.APPROVED_TO_PUBLISH

    harness.publish(creator, paper)
    assert harness.paper(paper).state is PaperState.PUBLISHED
