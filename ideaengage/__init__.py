"""ideaengage - exclusive idea claims and per-user interaction status.

This package keeps the engagement state of ideas correct under concurrent
requests: at most one builder holds the active claim on an idea, and each
user has at most one interaction status per idea. All guarantees come from
conditional writes in the database, so any number of server processes can
share one database.

Example:
    >>> from ideaengage import ClaimRegistry, DatabaseManager
    >>>
    >>> db = DatabaseManager()
    >>> db.initialize()
    >>> with db.session_scope() as session:
    ...     registry = ClaimRegistry(session)
    ...     registry.claim("idea-1", "alice")
    ...     registry.get_claim_status("idea-1").claimedBy
    'alice'
"""

__version__ = "0.1.0"

from ideaengage.claims import ClaimRegistry  # noqa: E402
from ideaengage.config import settings  # noqa: E402
from ideaengage.database import DatabaseManager  # noqa: E402
from ideaengage.errors import (  # noqa: E402
    AlreadyClaimed,
    EngagementError,
    IdeaNotFound,
    InteractionNotFound,
    InvalidRange,
    InvalidStatus,
    NotClaimed,
    NotOwner,
    StatusMismatch,
    Unauthenticated,
)
from ideaengage.guard import AcquireOutcome, AcquireResult, ConcurrencyGuard  # noqa: E402
from ideaengage.interactions import InteractionStore  # noqa: E402
from ideaengage.models import (  # noqa: E402
    Claim,
    ClaimerSummary,
    ClaimRow,
    ClaimStatus,
    Interaction,
    InteractionRow,
    InteractionStatus,
)

__all__ = [
    # Core components
    "ConcurrencyGuard",
    "ClaimRegistry",
    "InteractionStore",
    "DatabaseManager",
    "AcquireOutcome",
    "AcquireResult",
    # Configuration
    "settings",
    # Pydantic models
    "Claim",
    "ClaimStatus",
    "ClaimerSummary",
    "Interaction",
    "InteractionStatus",
    # SQLModel tables
    "ClaimRow",
    "InteractionRow",
    # Errors
    "EngagementError",
    "AlreadyClaimed",
    "NotOwner",
    "NotClaimed",
    "InvalidRange",
    "InvalidStatus",
    "InteractionNotFound",
    "StatusMismatch",
    "IdeaNotFound",
    "Unauthenticated",
]
