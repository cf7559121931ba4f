"""Atomic claim-or-fail primitive.

A claim is created by inserting a fresh ``ClaimRow``. The partial unique index
``uq_claim_active_idea`` on ``claimrow(idea_id) WHERE released_at IS NULL``
lets at most one such insert per idea succeed, whichever process or server
instance issues it. The loser gets an ``IntegrityError``, which this module
turns into ``AcquireOutcome.CONFLICT``.

There is no existence check before the insert and no waiting or polling
after it: the outcome is decided by the storage engine in one statement.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ideaengage.logging import logger
from ideaengage.metrics import claim_conflicts_total, track_query
from ideaengage.models import ClaimRow
from ideaengage.utils import utc_now


class AcquireOutcome(StrEnum):
    ACQUIRED = "acquired"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class AcquireResult:
    """Result of one acquisition attempt.

    Attributes:
        outcome: ACQUIRED or CONFLICT
        row: The inserted claim row when ACQUIRED, otherwise None
    """

    outcome: AcquireOutcome
    row: Optional[ClaimRow] = None

    @property
    def acquired(self) -> bool:
        return self.outcome == AcquireOutcome.ACQUIRED


class ConcurrencyGuard:
    """First-writer-wins claim creation on top of the active-claim index.

    Args:
        session: Session used for the insert; it is committed on success
            and rolled back on conflict
    """

    def __init__(self, session: Session):
        self.session = session

    def attempt_acquire(
        self,
        idea_id: str,
        user_id: str,
        now: datetime | None = None,
    ) -> AcquireResult:
        """Try to create the active claim for ``idea_id``.

        Args:
            idea_id: Idea to claim
            user_id: Prospective owner
            now: Claim timestamp (defaults to the current UTC time)

        Returns:
            ACQUIRED with the persisted row, or CONFLICT when another active
            claim already exists for the idea
        """
        row = ClaimRow(
            idea_id=idea_id,
            user_id=user_id,
            claimed_at=now or utc_now(),
            progress=0,
        )
        self.session.add(row)

        try:
            with track_query("insert", "claimrow"):
                self.session.commit()
        except IntegrityError:
            self.session.rollback()
            claim_conflicts_total.inc()
            logger.debug(f"Active claim already exists for idea {idea_id}")
            return AcquireResult(AcquireOutcome.CONFLICT)

        self.session.refresh(row)
        return AcquireResult(AcquireOutcome.ACQUIRED, row)


__all__ = ["AcquireOutcome", "AcquireResult", "ConcurrencyGuard"]
