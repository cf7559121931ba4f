"""Typed error taxonomy for engagement operations.

Every failure a caller can observe is one of these classes. Storage-level
signals (unique-index violations, zero rows affected) are translated into
them inside ``claims.py`` and ``interactions.py``, so nothing above the core
ever has to inspect a raw SQLAlchemy exception to learn that an idea was
already claimed.

Hierarchy::

    EngagementError
    ├── ValidationError        400  InvalidRange, InvalidStatus
    ├── AuthenticationError    401  Unauthenticated
    ├── AuthorizationError     403  NotOwner
    ├── NotFoundError          404  NotClaimed, InteractionNotFound, IdeaNotFound
    └── ConflictError          409  AlreadyClaimed, StatusMismatch
"""

from typing import Any


class EngagementError(Exception):
    """Base class for all typed engagement failures.

    Attributes:
        code: Stable snake_case identifier sent to clients
        status_code: HTTP status the API layer responds with
        message: Human-readable description
        details: Extra public fields for the response body
    """

    code: str = "engagement_error"
    status_code: int = 500

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.__class__.__doc__.strip().splitlines()[0]
        self.details = {k: v for k, v in details.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize into the API error envelope."""
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


# =============================================================================
# Categories
# =============================================================================


class ValidationError(EngagementError):
    """Request rejected before reaching storage."""

    code = "validation_error"
    status_code = 400


class AuthenticationError(EngagementError):
    """Caller identity is required."""

    code = "unauthenticated"
    status_code = 401


class AuthorizationError(EngagementError):
    """Caller may not modify this resource."""

    code = "forbidden"
    status_code = 403


class NotFoundError(EngagementError):
    """Resource not found."""

    code = "not_found"
    status_code = 404


class ConflictError(EngagementError):
    """Request conflicts with the current stored state."""

    code = "conflict"
    status_code = 409


# =============================================================================
# Concrete outcomes
# =============================================================================


class InvalidRange(ValidationError):
    """Progress must be an integer between 0 and 100."""

    code = "invalid_range"


class InvalidStatus(ValidationError):
    """Unknown interaction status."""

    code = "invalid_status"


class Unauthenticated(AuthenticationError):
    """Sign in to engage with ideas."""

    code = "unauthenticated"


class NotOwner(AuthorizationError):
    """This idea is claimed by another builder."""

    code = "not_owner"


class NotClaimed(NotFoundError):
    """This idea has no active claim."""

    code = "not_claimed"


class InteractionNotFound(NotFoundError):
    """No interaction status is recorded for this idea."""

    code = "interaction_not_found"


class IdeaNotFound(NotFoundError):
    """Idea not found."""

    code = "idea_not_found"


class AlreadyClaimed(ConflictError):
    """This idea is already claimed by another builder."""

    code = "already_claimed"


class StatusMismatch(ConflictError):
    """Stored interaction status differs from the expected one."""

    code = "status_mismatch"


__all__ = [
    "EngagementError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InvalidRange",
    "InvalidStatus",
    "Unauthenticated",
    "NotOwner",
    "NotClaimed",
    "InteractionNotFound",
    "IdeaNotFound",
    "AlreadyClaimed",
    "StatusMismatch",
]
