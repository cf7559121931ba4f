"""Protocol interfaces for dependency injection.

The engagement services depend on two collaborators owned by other parts of
the platform: a catalog that knows which ideas exist, and a directory of
builder profiles. They are expressed as ``@runtime_checkable`` Protocols so
tests and alternative deployments can pass any object with the right shape.

The core services themselves also have Protocols, which is what the HTTP
route handlers are typed against.

Example:
    >>> from ideaengage.interfaces import IIdeaCatalog
    >>> class AllowList:
    ...     def __init__(self, ids):
    ...         self.ids = set(ids)
    ...     def exists(self, idea_id):
    ...         return idea_id in self.ids
    >>> isinstance(AllowList(["idea-1"]), IIdeaCatalog)
    True
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ideaengage.models import (
    Claim,
    ClaimerSummary,
    ClaimStatus,
    ClearResult,
    Interaction,
    InteractionStatus,
    ReleaseResult,
)


@runtime_checkable
class IIdeaCatalog(Protocol):
    """Source of truth for which idea ids exist."""

    def exists(self, idea_id: str) -> bool:
        """Return True if the idea exists."""
        ...


@runtime_checkable
class IProfileDirectory(Protocol):
    """Public profile lookup for claim owners."""

    def summary(self, user_id: str) -> ClaimerSummary:
        """Return the public summary for a user.

        Implementations return a summary carrying only the id when the user
        has no profile; they never raise for unknown users.
        """
        ...


@runtime_checkable
class IClaimRegistry(Protocol):
    """Exclusive claims and build progress."""

    def get_claim_status(self, idea_id: str) -> ClaimStatus: ...

    def claim(self, idea_id: str, user_id: str) -> Claim: ...

    def update_progress(self, idea_id: str, user_id: str, progress: int) -> Claim: ...

    def release(self, idea_id: str, user_id: str) -> ReleaseResult: ...

    def list_user_claims(
        self, user_id: str, include_released: bool = False
    ) -> Sequence[Claim]: ...


@runtime_checkable
class IInteractionStore(Protocol):
    """Per-user interaction status on ideas."""

    def get_status(self, idea_id: str, user_id: str) -> InteractionStatus | None: ...

    def set_status(self, idea_id: str, user_id: str, status: str) -> Interaction: ...

    def clear_status(self, idea_id: str, user_id: str, expected: str) -> ClearResult: ...

    def list_user_interactions(
        self, user_id: str, status: str | None = None
    ) -> Sequence[Interaction]: ...

    def tally(self, idea_id: str) -> dict[str, int]: ...


# =============================================================================
# Export Public API
# =============================================================================

__all__ = [
    "IIdeaCatalog",
    "IProfileDirectory",
    "IClaimRegistry",
    "IInteractionStore",
]
