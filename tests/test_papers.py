"""Research papers: creation and publishing.

Invariants:
    - A paper lives at the address derived from its content hash prefix and creator
    - Only the creator may publish, and only once the approval threshold is met
"""

import pytest

from deresearcher import sdk
from deresearcher.auth import Keypair
from deresearcher.errors import (
    InvalidState,
    NotEnoughApprovals,
    PaperAlreadyExists,
    PaperNotFound,
    PdaMismatch,
    ProfileNotFound,
    PubkeyMismatch,
)
from deresearcher.models import PaperState


def test_create_paper(harness):
    creator = harness.researcher()
    address = harness.create_paper(creator, "QmPaperContentHash", fee=250)
    paper = harness.paper(address)
    assert paper.address == address
    assert paper.creator == creator.public_key
    assert paper.state is PaperState.AWAITING_PEER_REVIEW
    assert paper.access_fee == 250
    assert paper.paper_content_hash == sdk.to_digest("QmPaperContentHash")
    assert paper.total_approvals == 0
    assert paper.version == 0
    assert harness.profile(creator).total_papers_published == 1


def test_unapproved_researcher_can_create_papers(harness):
    creator = harness.researcher(reputation=10)
    harness.create_paper(creator, "first")
    harness.create_paper(creator, "second")
    assert harness.profile(creator).total_papers_published == 2


def test_duplicate_paper(harness):
    creator = harness.researcher()
    harness.create_paper(creator, "QmSame")
    with pytest.raises(PaperAlreadyExists):
        harness.create_paper(creator, "QmSame")
    assert harness.profile(creator).total_papers_published == 1


def test_hashes_sharing_a_32_byte_prefix_collide(harness):
    creator = harness.researcher()
    prefix = "p" * 32
    harness.create_paper(creator, prefix + "version-one")
    with pytest.raises(PaperAlreadyExists):
        harness.create_paper(creator, prefix + "version-two")


def test_same_hash_by_different_creators(harness):
    first = harness.researcher("first")
    second = harness.researcher("second")
    assert harness.create_paper(first, "QmShared") != harness.create_paper(second, "QmShared")


def test_create_paper_without_profile(harness):
    creator = harness.funded()
    with pytest.raises(ProfileNotFound):
        harness.create_paper(creator)


def test_create_paper_with_another_profile(harness):
    creator = harness.researcher("creator")
    other = harness.researcher("other")
    ix = sdk.create_research_paper(harness.program_id, creator.public_key, "QmHash", 10)
    ix.accounts[1].pubkey = harness.profile_address(other)
    with pytest.raises(PdaMismatch):
        harness.send(ix, creator)


def test_paper_address_must_match_hash(harness):
    creator = harness.researcher()
    ix = sdk.create_research_paper(harness.program_id, creator.public_key, "QmHash", 10)
    ix.accounts[2].pubkey = sdk.find_paper_address(
        sdk.to_digest("QmOther"), creator.public_key, harness.program_id
    )[0]
    with pytest.raises(PdaMismatch):
        harness.send(ix, creator)


# ─── publish ─────────────────────────────────────────────────────

def test_publish_without_reviews(harness):
    creator = harness.researcher()
    paper = harness.create_paper(creator)
    with pytest.raises(NotEnoughApprovals):
        harness.publish(creator, paper)
    assert harness.paper(paper).state is PaperState.AWAITING_PEER_REVIEW


def test_publish_by_non_creator(harness):
    creator = harness.researcher("creator")
    paper = harness.create_paper(creator)
    harness.add_review(harness.researcher("reviewer", reputation=90), paper)
    stranger = harness.researcher("stranger")
    with pytest.raises(PubkeyMismatch):
        harness.publish(stranger, paper)


def test_publish_after_approval(harness):
    creator = harness.researcher()
    paper = harness.published_paper(creator)
    assert harness.paper(paper).state is PaperState.PUBLISHED


def test_publish_twice(harness):
    creator = harness.researcher()
    paper = harness.published_paper(creator)
    with pytest.raises(InvalidState):
        harness.publish(creator, paper)


def test_publish_missing_paper(harness):
    creator = harness.researcher()
    with pytest.raises(PaperNotFound):
        harness.publish(creator, Keypair().public_key)


def test_publish_needs_configured_number_of_approvals(make_harness):
    harness = make_harness(min_approvals_for_publish=2)
    creator = harness.researcher("creator")
    paper = harness.create_paper(creator)

    harness.add_review(harness.researcher("first", reputation=90), paper)
    assert harness.paper(paper).state is PaperState.IN_PEER_REVIEW
    with pytest.raises(NotEnoughApprovals):
        harness.publish(creator, paper)

    harness.add_review(harness.researcher("second", reputation=90), paper)
    assert harness.paper(paper).state is PaperState.APPROVED_TO_PUBLISH
    harness.publish(creator, paper)
    assert harness.paper(paper).state is PaperState.PUBLISHED
