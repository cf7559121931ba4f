"""Per-user interaction status on ideas.

A user holds at most one status per idea: interested, not_interested, saved
or building. The composite primary key ``(idea_id, user_id)`` is what keeps
it that way.

- ``set_status`` is a single ``INSERT ... ON CONFLICT DO UPDATE`` upsert, so
  two racing writers both succeed and the last one wins
- ``clear_status`` is a single compare-and-delete on the expected status;
  a stale client cannot remove a status it has not seen

State transitions::

    (none) --set_status(s)--> s
    s      --set_status(t)--> t
    s      --clear_status(s)--> (none)
    s      --clear_status(t != s)--> StatusMismatch, unchanged
"""

from collections.abc import Callable, Sequence
from typing import Any, Optional

from sqlalchemy import delete, func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from ideaengage.errors import IdeaNotFound, InteractionNotFound, InvalidStatus, StatusMismatch
from ideaengage.interfaces import IIdeaCatalog
from ideaengage.logging import logger
from ideaengage.metrics import record_outcome, track_query
from ideaengage.models import ClearResult, Interaction, InteractionRow, InteractionStatus
from ideaengage.repository import Repository
from ideaengage.telemetry import operation_span
from ideaengage.utils import require_identifier, utc_now

# Dialects with a native INSERT ... ON CONFLICT DO UPDATE
_UPSERT_INSERTS: dict[str, Callable[..., Any]] = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def parse_status(value: Any) -> InteractionStatus:
    """Convert a raw value into an InteractionStatus.

    Raises:
        InvalidStatus: If the value is not one of the known statuses
    """
    if isinstance(value, InteractionStatus):
        return value
    if isinstance(value, str):
        try:
            return InteractionStatus(value.strip().lower())
        except ValueError:
            pass
    raise InvalidStatus(allowed=InteractionStatus.values())


class InteractionStore:
    """Owns the single current interaction status per (idea, user) pair.

    Args:
        session: Session for this unit of work
        catalog: Optional idea catalog; when given, writes to unknown ideas
            raise ``IdeaNotFound``
    """

    def __init__(self, session: Session, catalog: Optional[IIdeaCatalog] = None):
        self.session = session
        self.catalog = catalog
        self._interactions = Repository[InteractionRow](session, InteractionRow)

    def _require_idea(self, idea_id: str) -> str:
        idea_id = require_identifier(idea_id, "ideaId")
        if self.catalog is not None and not self.catalog.exists(idea_id):
            raise IdeaNotFound(ideaId=idea_id)
        return idea_id

    def _upsert_insert(self) -> Callable[..., Any]:
        dialect = self.session.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise RuntimeError(f"Upsert not supported for database dialect: {dialect}") from None

    def get_status(self, idea_id: str, user_id: str) -> InteractionStatus | None:
        """Current status of a user on an idea, or None."""
        idea_id = require_identifier(idea_id, "ideaId")
        user_id = require_identifier(user_id, "userId")
        with track_query("select", "interactionrow"):
            row = self._interactions.get((idea_id, user_id))
        return InteractionStatus(row.status) if row is not None else None

    def set_status(self, idea_id: str, user_id: str, status: Any) -> Interaction:
        """Set (or overwrite) a user's status on an idea.

        Calling it again with the same status is a no-op apart from
        ``updated_at``.

        Raises:
            InvalidStatus: Unknown status value
            IdeaNotFound: When a catalog is wired and the idea is unknown
        """
        status = parse_status(status)

        with operation_span("set_status", idea_id=idea_id, user_id=user_id, status=status.value):
            idea_id = self._require_idea(idea_id)
            user_id = require_identifier(user_id, "userId")
            now = utc_now()

            insert = self._upsert_insert()
            stmt = insert(InteractionRow).values(
                idea_id=idea_id,
                user_id=user_id,
                status=status.value,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["idea_id", "user_id"],
                set_={"status": stmt.excluded.status, "updated_at": stmt.excluded.updated_at},
            )
            with track_query("upsert", "interactionrow"):
                self.session.exec(stmt)  # type: ignore[call-overload]
                self.session.commit()

            record_outcome("set_status", "success")
            logger.info(
                f"Interaction on idea {idea_id} set to {status.value}",
                idea_id=idea_id,
                user_id=user_id,
            )
            return Interaction(ideaId=idea_id, userId=user_id, status=status, updatedAt=now)

    def clear_status(self, idea_id: str, user_id: str, expected: Any) -> ClearResult:
        """Remove a user's status, but only if it still equals ``expected``.

        Raises:
            InvalidStatus: Unknown expected status value
            InteractionNotFound: No status is stored
            StatusMismatch: The stored status differs from ``expected``
        """
        expected = parse_status(expected)

        with operation_span(
            "clear_status", idea_id=idea_id, user_id=user_id, status=expected.value
        ):
            idea_id = require_identifier(idea_id, "ideaId")
            user_id = require_identifier(user_id, "userId")

            stmt = delete(InteractionRow).where(
                InteractionRow.idea_id == idea_id,
                InteractionRow.user_id == user_id,
                InteractionRow.status == expected.value,
            )
            with track_query("delete", "interactionrow"):
                result = self.session.exec(stmt)  # type: ignore[call-overload]
                self.session.commit()

            if result.rowcount == 0:
                with track_query("select", "interactionrow"):
                    current = self._interactions.get((idea_id, user_id))
                if current is None:
                    record_outcome("clear_status", InteractionNotFound.code)
                    logger.warning(f"Clear rejected: no interaction on idea {idea_id}")
                    raise InteractionNotFound(ideaId=idea_id)

                record_outcome("clear_status", StatusMismatch.code)
                logger.warning(
                    f"Clear rejected: expected {expected.value}, stored {current.status}",
                    idea_id=idea_id,
                    user_id=user_id,
                )
                raise StatusMismatch(expected=expected.value, actual=current.status)

            record_outcome("clear_status", "success")
            logger.info(f"Interaction on idea {idea_id} cleared", idea_id=idea_id, user_id=user_id)
            return ClearResult(ideaId=idea_id, userId=user_id, previousStatus=expected)

    def list_user_interactions(
        self, user_id: str, status: Any = None
    ) -> Sequence[Interaction]:
        """A user's interactions, most recently updated first.

        Args:
            user_id: User
            status: Only return interactions with this status

        Raises:
            InvalidStatus: Unknown status filter
        """
        user_id = require_identifier(user_id, "userId")
        filters: dict[str, Any] = {"user_id": user_id}
        if status is not None:
            filters["status"] = parse_status(status).value

        with track_query("select", "interactionrow"):
            rows = self._interactions.find_by(
                order_by=[InteractionRow.updated_at.desc()], **filters
            )
        return [Interaction.from_row(row) for row in rows]

    def tally(self, idea_id: str) -> dict[str, int]:
        """Number of users per status on an idea; every status is present."""
        idea_id = require_identifier(idea_id, "ideaId")
        stmt = (
            select(InteractionRow.status, func.count())
            .where(InteractionRow.idea_id == idea_id)
            .group_by(InteractionRow.status)
        )
        with track_query("select", "interactionrow"):
            rows = self.session.exec(stmt).all()

        counts = dict.fromkeys(InteractionStatus.values(), 0)
        for status, count in rows:
            counts[status] = count
        return counts


__all__ = ["InteractionStore", "parse_status"]
