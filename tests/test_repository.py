"""Tests for the read-side Repository[T]."""

from datetime import datetime, timedelta, timezone

import pytest

from ideaengage.models import ClaimRow, InteractionRow
from ideaengage.repository import Repository

BASE_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def claim_repo(test_session):
    """Repository over claims with three rows across two ideas."""
    test_session.add_all(
        [
            ClaimRow(idea_id="idea-1", user_id="alice", claimed_at=BASE_TIME,
                     released_at=BASE_TIME + timedelta(hours=1)),
            ClaimRow(idea_id="idea-1", user_id="bob", claimed_at=BASE_TIME + timedelta(hours=2)),
            ClaimRow(idea_id="idea-2", user_id="alice", claimed_at=BASE_TIME + timedelta(hours=3)),
        ]
    )
    test_session.commit()
    return Repository[ClaimRow](test_session, ClaimRow)


@pytest.fixture
def interaction_repo(test_session):
    test_session.add(
        InteractionRow(idea_id="idea-1", user_id="alice", status="saved", updated_at=BASE_TIME)
    )
    test_session.commit()
    return Repository[InteractionRow](test_session, InteractionRow)


# =============================================================================
# Repository Core Tests
# =============================================================================


def test_repository_initialization(test_session):
    """Test repository can be initialized with session and model."""
    repo = Repository[ClaimRow](test_session, ClaimRow)
    assert repo.session == test_session
    assert repo.model == ClaimRow


def test_repository_get_returns_none_when_not_found(claim_repo):
    assert claim_repo.get(9999) is None


def test_repository_get_by_primary_key(claim_repo):
    first = claim_repo.find_by(order_by=[ClaimRow.id])[0]
    assert claim_repo.get(first.id).user_id == "alice"


def test_repository_get_composite_key(interaction_repo):
    """Composite keys are passed as a tuple in column order."""
    row = interaction_repo.get(("idea-1", "alice"))
    assert row is not None
    assert row.status == "saved"
    assert interaction_repo.get(("idea-1", "bob")) is None


def test_repository_exists(interaction_repo):
    assert interaction_repo.exists(("idea-1", "alice")) is True
    assert interaction_repo.exists(("idea-2", "alice")) is False


def test_repository_find_by_equality(claim_repo):
    rows = claim_repo.find_by(user_id="alice")
    assert {r.idea_id for r in rows} == {"idea-1", "idea-2"}


def test_repository_find_by_none_is_null(claim_repo):
    """A None filter matches NULL rather than nothing."""
    rows = claim_repo.find_by(idea_id="idea-1", released_at=None)
    assert [r.user_id for r in rows] == ["bob"]


def test_repository_find_by_order(claim_repo):
    rows = claim_repo.find_by(order_by=[ClaimRow.claimed_at.desc()])
    assert [(r.idea_id, r.user_id) for r in rows] == [
        ("idea-2", "alice"),
        ("idea-1", "bob"),
        ("idea-1", "alice"),
    ]


def test_repository_find_by_unknown_attribute(claim_repo):
    with pytest.raises(AttributeError):
        claim_repo.find_by(nonexistent="x")


def test_repository_first_by(claim_repo):
    assert claim_repo.first_by(idea_id="idea-2").user_id == "alice"
    assert claim_repo.first_by(idea_id="idea-3") is None


def test_repository_count(claim_repo):
    assert claim_repo.count() == 3
    assert claim_repo.count(idea_id="idea-1") == 2
    assert claim_repo.count(released_at=None) == 2
