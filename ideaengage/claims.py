"""Claim lifecycle: claim, progress, release and status.

Every write in this module is a single conditional statement:

- ``claim`` inserts through :class:`~ideaengage.guard.ConcurrencyGuard`
- ``update_progress`` and ``release`` are compare-and-set UPDATEs matching
  ``idea_id``, ``user_id`` and ``released_at IS NULL``

When a compare-and-set touches no rows, one advisory read of the active claim
decides which typed error the caller gets. That read never changes the
outcome, only the error class.

Example:
    >>> with db.session_scope() as session:
    ...     registry = ClaimRegistry(session)
    ...     registry.claim("idea-1", "alice")
    ...     registry.update_progress("idea-1", "alice", 40)
    ...     registry.get_claim_status("idea-1").progress
    40
"""

from collections.abc import Sequence
from typing import Any, Optional

from sqlalchemy import update
from sqlmodel import Session

from ideaengage.directory import SqlProfileDirectory
from ideaengage.errors import AlreadyClaimed, IdeaNotFound, InvalidRange, NotClaimed, NotOwner
from ideaengage.guard import ConcurrencyGuard
from ideaengage.interfaces import IIdeaCatalog, IProfileDirectory
from ideaengage.logging import logger
from ideaengage.metrics import active_claims, record_outcome, track_query
from ideaengage.models import (
    PROGRESS_MAX,
    PROGRESS_MIN,
    Claim,
    ClaimRow,
    ClaimStatus,
    ReleaseResult,
)
from ideaengage.repository import Repository
from ideaengage.telemetry import operation_span
from ideaengage.utils import require_identifier, utc_now


def validate_progress(progress: Any) -> int:
    """Return ``progress`` if it is an int in [0, 100].

    Booleans are rejected even though ``bool`` subclasses ``int``.

    Raises:
        InvalidRange: For non-integers and out-of-range values
    """
    if isinstance(progress, bool) or not isinstance(progress, int):
        raise InvalidRange(min=PROGRESS_MIN, max=PROGRESS_MAX)
    if not PROGRESS_MIN <= progress <= PROGRESS_MAX:
        raise InvalidRange(min=PROGRESS_MIN, max=PROGRESS_MAX)
    return progress


class ClaimRegistry:
    """Owns the claim lifecycle for ideas.

    Args:
        session: Session for this unit of work
        guard: Acquisition primitive (defaults to one on the same session)
        catalog: Optional idea catalog; when given, unknown ideas raise
            ``IdeaNotFound``
        directory: Profile lookup for the claimer summary (defaults to the
            SQL profile table)
    """

    def __init__(
        self,
        session: Session,
        guard: Optional[ConcurrencyGuard] = None,
        catalog: Optional[IIdeaCatalog] = None,
        directory: Optional[IProfileDirectory] = None,
    ):
        self.session = session
        self.guard = guard or ConcurrencyGuard(session)
        self.catalog = catalog
        self.directory = directory or SqlProfileDirectory(session)
        self._claims = Repository[ClaimRow](session, ClaimRow)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_idea(self, idea_id: str) -> str:
        idea_id = require_identifier(idea_id, "ideaId")
        if self.catalog is not None and not self.catalog.exists(idea_id):
            raise IdeaNotFound(ideaId=idea_id)
        return idea_id

    def _active(self, idea_id: str) -> ClaimRow | None:
        with track_query("select", "claimrow"):
            return self._claims.first_by(idea_id=idea_id, released_at=None)

    def _refresh_active_claims(self) -> None:
        # Served by the partial index on active claims
        with track_query("select", "claimrow"):
            active_claims.set(self._claims.count(released_at=None))

    def _owner_write_failed(self, operation: str, idea_id: str, user_id: str) -> None:
        """Map a zero-row compare-and-set to NotClaimed or NotOwner."""
        active = self._active(idea_id)
        if active is None:
            record_outcome(operation, NotClaimed.code)
            logger.warning(f"{operation} rejected: idea {idea_id} has no active claim")
            raise NotClaimed(ideaId=idea_id)

        record_outcome(operation, NotOwner.code)
        logger.warning(
            f"{operation} rejected: idea {idea_id} is claimed by another builder",
            idea_id=idea_id,
            user_id=user_id,
        )
        raise NotOwner(ideaId=idea_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_claim_status(self, idea_id: str) -> ClaimStatus:
        """Public claim state of an idea.

        Raises:
            IdeaNotFound: When a catalog is wired and the idea is unknown
        """
        with operation_span("get_claim_status", idea_id=idea_id):
            idea_id = self._require_idea(idea_id)
            active = self._active(idea_id)
            with track_query("select", "claimrow"):
                total = self._claims.count(idea_id=idea_id)

            if active is None:
                return ClaimStatus(ideaId=idea_id, totalClaimCount=total)

            return ClaimStatus(
                ideaId=idea_id,
                isClaimed=True,
                claimedBy=active.user_id,
                claimedAt=active.claimed_at,
                progress=active.progress,
                totalClaimCount=total,
                claimer=self.directory.summary(active.user_id),
            )

    def list_user_claims(self, user_id: str, include_released: bool = False) -> Sequence[Claim]:
        """Claims held by a user, active first and newest first.

        Args:
            user_id: Owner
            include_released: Also return released claims
        """
        user_id = require_identifier(user_id, "userId")
        filters: dict[str, Any] = {"user_id": user_id}
        if not include_released:
            filters["released_at"] = None

        with track_query("select", "claimrow"):
            rows = self._claims.find_by(
                order_by=[ClaimRow.claimed_at.desc(), ClaimRow.id.desc()],
                **filters,
            )

        claims = [Claim.from_row(row) for row in rows]
        # Stable sort keeps newest-first inside each group
        return sorted(claims, key=lambda c: not c.isActive)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def claim(self, idea_id: str, user_id: str) -> Claim:
        """Create the active claim on an idea for ``user_id``.

        Re-claiming an idea the caller already holds returns the existing
        claim unchanged.

        Raises:
            AlreadyClaimed: Another builder holds the active claim
            IdeaNotFound: When a catalog is wired and the idea is unknown
        """
        with operation_span("claim", idea_id=idea_id, user_id=user_id):
            idea_id = self._require_idea(idea_id)
            user_id = require_identifier(user_id, "userId")

            result = self.guard.attempt_acquire(idea_id, user_id)
            if result.acquired:
                self._refresh_active_claims()
                record_outcome("claim", "success")
                logger.info(f"Idea {idea_id} claimed", idea_id=idea_id, user_id=user_id)
                return Claim.from_row(result.row)

            active = self._active(idea_id)
            if active is not None and active.user_id == user_id:
                record_outcome("claim", "already_owner")
                logger.info(f"Idea {idea_id} already claimed by caller", idea_id=idea_id)
                return Claim.from_row(active)

            record_outcome("claim", AlreadyClaimed.code)
            logger.warning(
                f"Claim rejected: idea {idea_id} is already claimed",
                idea_id=idea_id,
                user_id=user_id,
            )
            raise AlreadyClaimed(
                ideaId=idea_id,
                claimedBy=active.user_id if active is not None else None,
            )

    def update_progress(self, idea_id: str, user_id: str, progress: Any) -> Claim:
        """Set build progress on the caller's active claim.

        Raises:
            InvalidRange: ``progress`` is not an int in [0, 100]
            NotClaimed: The idea has no active claim
            NotOwner: Someone else holds the active claim
        """
        progress = validate_progress(progress)

        with operation_span(
            "update_progress", idea_id=idea_id, user_id=user_id, progress=progress
        ):
            idea_id = self._require_idea(idea_id)
            user_id = require_identifier(user_id, "userId")

            stmt = (
                update(ClaimRow)
                .where(
                    ClaimRow.idea_id == idea_id,
                    ClaimRow.user_id == user_id,
                    ClaimRow.released_at.is_(None),  # type: ignore[union-attr]
                )
                .values(progress=progress)
                .returning(*ClaimRow.__table__.c)  # type: ignore[attr-defined]
            )
            with track_query("update", "claimrow"):
                updated = self.session.exec(stmt).mappings().first()  # type: ignore[call-overload]
                self.session.commit()

            if updated is None:
                self._owner_write_failed("update_progress", idea_id, user_id)

            # Built from the matched row; a later release and re-claim by the
            # same user must not leak into this response.
            row = ClaimRow(**updated)
            record_outcome("update_progress", "success")
            logger.info(
                f"Progress on idea {idea_id} set to {progress}%",
                idea_id=idea_id,
                user_id=user_id,
            )
            return Claim.from_row(row)

    def release(self, idea_id: str, user_id: str) -> ReleaseResult:
        """End the caller's active claim; the idea is claimable right after.

        Raises:
            NotClaimed: The idea has no active claim
            NotOwner: Someone else holds the active claim
        """
        with operation_span("release", idea_id=idea_id, user_id=user_id):
            idea_id = self._require_idea(idea_id)
            user_id = require_identifier(user_id, "userId")
            released_at = utc_now()

            stmt = (
                update(ClaimRow)
                .where(
                    ClaimRow.idea_id == idea_id,
                    ClaimRow.user_id == user_id,
                    ClaimRow.released_at.is_(None),  # type: ignore[union-attr]
                )
                .values(released_at=released_at)
            )
            with track_query("update", "claimrow"):
                result = self.session.exec(stmt)  # type: ignore[call-overload]
                self.session.commit()

            if result.rowcount == 0:
                self._owner_write_failed("release", idea_id, user_id)

            self._refresh_active_claims()
            record_outcome("release", "success")
            logger.info(f"Claim on idea {idea_id} released", idea_id=idea_id, user_id=user_id)
            return ReleaseResult(ideaId=idea_id, userId=user_id, releasedAt=released_at)


__all__ = ["ClaimRegistry", "validate_progress"]
