"""Tests for the claim registry.

Covers the claim lifecycle (claim, progress, release, reclaim), ownership
checks, progress validation and the read side (status, user listings).
"""

import pytest

from ideaengage.claims import ClaimRegistry, validate_progress
from ideaengage.directory import SqlIdeaCatalog
from ideaengage.errors import (
    AlreadyClaimed,
    IdeaNotFound,
    InvalidRange,
    NotClaimed,
    NotOwner,
    ValidationError,
)
from ideaengage.metrics import registry as metrics_registry
from ideaengage.models import ClaimerSummary


# =============================================================================
# Progress Validation
# =============================================================================


class TestValidateProgress:
    """Test validate_progress boundaries and types."""

    @pytest.mark.parametrize("value", [0, 1, 50, 99, 100])
    def test_accepts_in_range(self, value):
        assert validate_progress(value) == value

    @pytest.mark.parametrize("value", [-1, 101, 1000, -100])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(InvalidRange):
            validate_progress(value)

    @pytest.mark.parametrize("value", [True, False, 50.0, "50", None, [50]])
    def test_rejects_non_integers(self, value):
        """Booleans are ints in Python but not valid progress."""
        with pytest.raises(InvalidRange):
            validate_progress(value)

    def test_error_details(self):
        with pytest.raises(InvalidRange) as exc_info:
            validate_progress(101)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"min": 0, "max": 100}


# =============================================================================
# Claim Lifecycle
# =============================================================================


class TestClaim:
    """Test ClaimRegistry.claim."""

    def test_claim_unclaimed_idea(self, registry):
        """Claiming a free idea returns an active claim at progress 0."""
        claim = registry.claim("idea-1", "alice")

        assert claim.ideaId == "idea-1"
        assert claim.userId == "alice"
        assert claim.progress == 0
        assert claim.isActive

    def test_claim_taken_idea_raises(self, registry):
        """A second builder gets AlreadyClaimed."""
        registry.claim("idea-1", "alice")

        with pytest.raises(AlreadyClaimed) as exc_info:
            registry.claim("idea-1", "bob")

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["claimedBy"] == "alice"

    def test_reclaim_by_owner_is_idempotent(self, registry):
        """The current owner claiming again gets the existing claim back."""
        first = registry.claim("idea-1", "alice")
        registry.update_progress("idea-1", "alice", 30)

        again = registry.claim("idea-1", "alice")

        assert again.id == first.id
        assert again.progress == 30
        assert registry.get_claim_status("idea-1").totalClaimCount == 1

    def test_claim_requires_identifiers(self, registry):
        with pytest.raises(ValidationError):
            registry.claim("idea-1", "   ")
        with pytest.raises(ValidationError):
            registry.claim("", "alice")

    def test_identifiers_are_trimmed(self, registry):
        claim = registry.claim(" idea-1 ", " alice ")

        assert claim.ideaId == "idea-1"
        assert claim.userId == "alice"


class TestUpdateProgress:
    """Test ClaimRegistry.update_progress."""

    def test_round_trip(self, registry):
        """claim, update to 50, then status shows alice at 50."""
        registry.claim("idea-1", "alice")
        registry.update_progress("idea-1", "alice", 50)

        status = registry.get_claim_status("idea-1")

        assert status.isClaimed is True
        assert status.claimedBy == "alice"
        assert status.progress == 50

    @pytest.mark.parametrize("value", [0, 100])
    def test_boundaries_accepted(self, registry, value):
        registry.claim("idea-1", "alice")

        claim = registry.update_progress("idea-1", "alice", value)

        assert claim.progress == value

    @pytest.mark.parametrize("value", [-1, 101])
    def test_boundaries_rejected(self, registry, value):
        registry.claim("idea-1", "alice")

        with pytest.raises(InvalidRange):
            registry.update_progress("idea-1", "alice", value)

        assert registry.get_claim_status("idea-1").progress == 0

    def test_invalid_range_checked_before_ownership(self, registry):
        """Validation happens before storage, so even unclaimed ideas get InvalidRange."""
        with pytest.raises(InvalidRange):
            registry.update_progress("idea-unclaimed", "alice", 150)

    def test_non_owner_rejected(self, registry):
        """bob cannot move alice's progress."""
        registry.claim("idea-1", "alice")

        with pytest.raises(NotOwner) as exc_info:
            registry.update_progress("idea-1", "bob", 10)

        assert exc_info.value.status_code == 403
        assert registry.get_claim_status("idea-1").progress == 0

    def test_unclaimed_idea(self, registry):
        with pytest.raises(NotClaimed) as exc_info:
            registry.update_progress("idea-1", "alice", 10)

        assert exc_info.value.status_code == 404

    def test_after_release(self, registry):
        """A released claim can no longer be updated."""
        registry.claim("idea-1", "alice")
        registry.release("idea-1", "alice")

        with pytest.raises(NotClaimed):
            registry.update_progress("idea-1", "alice", 10)

    def test_progress_persists_without_release(self, registry):
        registry.claim("idea-1", "alice")
        registry.update_progress("idea-1", "alice", 70)
        registry.update_progress("idea-1", "alice", 40)

        assert registry.get_claim_status("idea-1").progress == 40

    def test_returns_updated_row_when_owner_reclaims_concurrently(
        self, registry, test_session, test_db_manager, monkeypatch
    ):
        """A release and re-claim landing right after the update commits
        does not replace the returned claim with the fresh one."""
        first = registry.claim("idea-1", "alice")
        commit = test_session.commit
        cycled = []

        def commit_then_cycle():
            commit()
            if not cycled:
                cycled.append(True)
                with test_db_manager.session_scope() as other:
                    other_registry = ClaimRegistry(other)
                    other_registry.release("idea-1", "alice")
                    other_registry.claim("idea-1", "alice")

        monkeypatch.setattr(test_session, "commit", commit_then_cycle)

        result = registry.update_progress("idea-1", "alice", 50)

        assert cycled
        assert result.id == first.id
        assert result.progress == 50
        assert result.releasedAt is None

        status = registry.get_claim_status("idea-1")
        assert status.claimedBy == "alice"
        assert status.progress == 0
        assert status.totalClaimCount == 2


class TestActiveClaimsGauge:
    """The active_claims gauge follows claim writes, not reads."""

    @staticmethod
    def _gauge():
        return metrics_registry.get_sample_value("active_claims")

    def test_refreshed_on_claim_and_release(self, registry):
        registry.claim("idea-1", "alice")
        registry.claim("idea-2", "bob")
        assert self._gauge() == 2

        registry.release("idea-1", "alice")
        assert self._gauge() == 1

    def test_status_read_does_not_count_table(self, registry, monkeypatch):
        registry.claim("idea-1", "alice")
        counted = []
        original = registry._claims.count

        def spy(**filters):
            counted.append(filters)
            return original(**filters)

        monkeypatch.setattr(registry._claims, "count", spy)

        registry.get_claim_status("idea-1")

        assert counted == [{"idea_id": "idea-1"}]


class TestRelease:
    """Test ClaimRegistry.release."""

    def test_release_own_claim(self, registry):
        registry.claim("idea-1", "alice")

        result = registry.release("idea-1", "alice")

        assert result.released is True
        assert result.ideaId == "idea-1"
        assert result.userId == "alice"
        assert registry.get_claim_status("idea-1").isClaimed is False

    def test_release_by_non_owner(self, registry):
        registry.claim("idea-1", "alice")

        with pytest.raises(NotOwner):
            registry.release("idea-1", "bob")

        assert registry.get_claim_status("idea-1").claimedBy == "alice"

    def test_release_unclaimed(self, registry):
        with pytest.raises(NotClaimed):
            registry.release("idea-1", "alice")

    def test_double_release(self, registry):
        registry.claim("idea-1", "alice")
        registry.release("idea-1", "alice")

        with pytest.raises(NotClaimed):
            registry.release("idea-1", "alice")

    def test_release_reclaim_cycle(self, registry):
        """After alice releases, bob claims fresh at progress 0."""
        registry.claim("idea-1", "alice")
        registry.update_progress("idea-1", "alice", 80)
        registry.release("idea-1", "alice")

        registry.claim("idea-1", "bob")
        status = registry.get_claim_status("idea-1")

        assert status.claimedBy == "bob"
        assert status.progress == 0
        assert status.totalClaimCount == 2

    def test_owner_can_reclaim_after_release(self, registry):
        first = registry.claim("idea-1", "alice")
        registry.release("idea-1", "alice")

        second = registry.claim("idea-1", "alice")

        assert second.id != first.id
        assert second.progress == 0


# =============================================================================
# Reads
# =============================================================================


class TestClaimStatus:
    """Test ClaimRegistry.get_claim_status."""

    def test_unclaimed_idea(self, registry):
        status = registry.get_claim_status("idea-1")

        assert status.isClaimed is False
        assert status.claimedBy is None
        assert status.claimedAt is None
        assert status.progress == 0
        assert status.totalClaimCount == 0
        assert status.claimer is None

    def test_claimer_from_profile(self, registry, seeded_profiles):
        registry.claim("idea-1", "alice")

        claimer = registry.get_claim_status("idea-1").claimer

        assert claimer.id == "alice"
        assert claimer.firstName == "Alice"
        assert claimer.lastName == "Nguyen"
        assert claimer.profileImageUrl == "https://example.com/alice.png"

    def test_claimer_without_profile(self, registry):
        registry.claim("idea-1", "carol")

        claimer = registry.get_claim_status("idea-1").claimer

        assert claimer == ClaimerSummary(id="carol")

    def test_custom_directory(self, test_session):
        """Any object with summary() can stand in for the profile table."""

        class StaticDirectory:
            def summary(self, user_id):
                return ClaimerSummary(id=user_id, firstName="Static")

        registry = ClaimRegistry(test_session, directory=StaticDirectory())
        registry.claim("idea-1", "alice")

        assert registry.get_claim_status("idea-1").claimer.firstName == "Static"

    def test_status_serializes_camel_case(self, registry):
        registry.claim("idea-1", "alice")

        payload = registry.get_claim_status("idea-1").model_dump(mode="json")

        assert payload["claimedBy"] == "alice"
        assert payload["claimedAt"].endswith("Z")
        assert set(payload) == {
            "ideaId",
            "isClaimed",
            "claimedBy",
            "claimedAt",
            "progress",
            "totalClaimCount",
            "claimer",
        }


class TestListUserClaims:
    """Test ClaimRegistry.list_user_claims."""

    def test_active_only_by_default(self, registry):
        registry.claim("idea-1", "alice")
        registry.claim("idea-2", "alice")
        registry.release("idea-1", "alice")

        claims = registry.list_user_claims("alice")

        assert [c.ideaId for c in claims] == ["idea-2"]

    def test_include_released_orders_active_first(self, registry):
        registry.claim("idea-1", "alice")
        registry.claim("idea-2", "alice")
        registry.claim("idea-3", "alice")
        registry.release("idea-3", "alice")

        claims = registry.list_user_claims("alice", include_released=True)

        assert [c.isActive for c in claims] == [True, True, False]
        assert [c.ideaId for c in claims][:2] == ["idea-2", "idea-1"]
        assert claims[2].ideaId == "idea-3"

    def test_other_users_excluded(self, registry):
        registry.claim("idea-1", "alice")
        registry.claim("idea-2", "bob")

        assert [c.ideaId for c in registry.list_user_claims("bob")] == ["idea-2"]

    def test_no_claims(self, registry):
        assert list(registry.list_user_claims("alice")) == []


# =============================================================================
# Idea Catalog
# =============================================================================


class TestIdeaCatalog:
    """Test registry behavior when an idea catalog is wired."""

    def test_unknown_idea_rejected(self, test_session, seeded_ideas):
        registry = ClaimRegistry(test_session, catalog=SqlIdeaCatalog(test_session))

        with pytest.raises(IdeaNotFound):
            registry.claim("idea-missing", "alice")
        with pytest.raises(IdeaNotFound):
            registry.get_claim_status("idea-missing")

    def test_known_idea_accepted(self, test_session, seeded_ideas):
        registry = ClaimRegistry(test_session, catalog=SqlIdeaCatalog(test_session))

        claim = registry.claim("idea-1", "alice")

        assert claim.ideaId == "idea-1"
