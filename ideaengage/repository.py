"""Generic read-side repository for SQLModel tables.

The engagement services write through single conditional statements (insert
guarded by a unique index, compare-and-set updates, compare-and-delete) that
do not fit a generic CRUD shape. Reads, on the other hand, are plain lookups
and equality filters, and those go through ``Repository[T]``.

Example:
    >>> from ideaengage.repository import Repository
    >>> from ideaengage.models import ClaimRow
    >>>
    >>> claims = Repository[ClaimRow](session, ClaimRow)
    >>> active = claims.first_by(idea_id="idea-1", released_at=None)
    >>> total = claims.count(idea_id="idea-1")
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

# =============================================================================
# Type Variables
# =============================================================================

T = TypeVar("T", bound=SQLModel)


# =============================================================================
# Generic Repository
# =============================================================================


class Repository(Generic[T]):
    """Type-safe read access to one SQLModel table.

    Filters are equality matches on column attributes; a ``None`` value
    becomes ``IS NULL``. Unknown attribute names raise ``AttributeError``
    instead of being silently ignored.

    Args:
        session: SQLModel Session instance
        model: SQLModel table class (e.g., ClaimRow, InteractionRow)
    """

    def __init__(self, session: Session, model: type[T]):
        self.session = session
        self.model = model

    def _where(self, stmt: Any, filters: dict[str, Any]) -> Any:
        for key, value in filters.items():
            column = getattr(self.model, key)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        return stmt

    def get(self, entity_id: Any) -> T | None:
        """Get entity by primary key.

        Args:
            entity_id: Primary key value, or a tuple/dict for composite keys

        Returns:
            Entity instance or None if not found
        """
        return self.session.get(self.model, entity_id)

    def find_by(self, order_by: Sequence[Any] = (), **filters: Any) -> Sequence[T]:
        """Find entities matching equality filters.

        Args:
            order_by: Column expressions to sort by
            **filters: attribute=value pairs

        Returns:
            Sequence of matching entities

        Example:
            >>> claims.find_by(user_id="u-1", order_by=[ClaimRow.claimed_at.desc()])
        """
        stmt = self._where(select(self.model), filters)
        if order_by:
            stmt = stmt.order_by(*order_by)
        return self.session.exec(stmt).all()

    def first_by(self, **filters: Any) -> T | None:
        """Return the first entity matching the filters, or None."""
        stmt = self._where(select(self.model), filters).limit(1)
        return self.session.exec(stmt).first()

    def count(self, **filters: Any) -> int:
        """Count entities matching the filters (all rows when none given)."""
        stmt = self._where(select(func.count()).select_from(self.model), filters)
        return self.session.exec(stmt).one()

    def exists(self, entity_id: Any) -> bool:
        """Check if an entity exists by primary key."""
        return self.get(entity_id) is not None


# =============================================================================
# Export Public API
# =============================================================================

__all__ = ["Repository"]
