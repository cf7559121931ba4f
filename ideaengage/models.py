"""Data models for ideaengage.

This module defines both SQLModel ORM tables (for persistence) and Pydantic
models (for API payloads and return values of the core services).

Models are organized into three sections:
1. Enumerations shared by tables and payloads
2. SQLModel tables for database persistence
3. Pydantic models for API requests and responses
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from sqlalchemy import CheckConstraint, DateTime, Index, text
from sqlmodel import Field, SQLModel

from ideaengage.utils import format_iso, parse_datetime

# =============================================================================
# Section 1: Enumerations
# =============================================================================


class InteractionStatus(StrEnum):
    """A user's mutually exclusive categorization of an idea."""

    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    SAVED = "saved"
    BUILDING = "building"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


PROGRESS_MIN = 0
PROGRESS_MAX = 100


# =============================================================================
# Section 2: SQLModel Tables for Database Persistence
# =============================================================================


class ClaimRow(SQLModel, table=True):
    """One builder's commitment to one idea.

    Rows are never deleted; releasing a claim stamps ``released_at`` so the
    history feeds the public claim count. The partial unique index
    ``uq_claim_active_idea`` allows at most one row per idea with
    ``released_at IS NULL``; it is the only thing that makes claims exclusive.

    Attributes:
        id: Auto-incremented primary key
        idea_id: Claimed idea (indexed)
        user_id: Owner of the claim (indexed)
        claimed_at: When the claim was created (UTC)
        progress: Build progress percentage, 0-100
        released_at: When the claim was released, NULL while active
    """

    __table_args__ = (
        Index(
            "uq_claim_active_idea",
            "idea_id",
            unique=True,
            sqlite_where=text("released_at IS NULL"),
            postgresql_where=text("released_at IS NULL"),
        ),
        CheckConstraint(
            f"progress >= {PROGRESS_MIN} AND progress <= {PROGRESS_MAX}",
            name="ck_claim_progress_range",
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    idea_id: str = Field(index=True)
    user_id: str = Field(index=True)
    claimed_at: datetime = Field(sa_type=DateTime(timezone=True))
    progress: int = Field(default=0)
    released_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class InteractionRow(SQLModel, table=True):
    """Current interaction status of one user on one idea.

    The composite primary key is what keeps a single row per pair; writes go
    through an ``INSERT ... ON CONFLICT DO UPDATE`` upsert.

    Attributes:
        idea_id: Idea (part of composite PK)
        user_id: User (part of composite PK, indexed)
        status: One of InteractionStatus values
        updated_at: Last time the status was set (UTC)
    """

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{v}'" for v in InteractionStatus.values())),
            name="ck_interaction_status",
        ),
    )

    idea_id: str = Field(primary_key=True)
    user_id: str = Field(primary_key=True, index=True)
    status: str
    updated_at: datetime = Field(sa_type=DateTime(timezone=True))


class BuilderProfileRow(SQLModel, table=True):
    """Public profile fields shown next to a claim.

    Written by the identity side of the platform; this service only reads it.

    Attributes:
        user_id: User id (primary key)
        first_name: Given name
        last_name: Family name
        profile_image_url: Avatar URL
    """

    user_id: str = Field(primary_key=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class IdeaRow(SQLModel, table=True):
    """Minimal idea record consulted by the SQL idea catalog.

    Attributes:
        id: Idea id (primary key)
        title: Display title
        slug: URL slug (indexed)
        created_at: Creation timestamp (UTC)
    """

    id: str = Field(primary_key=True)
    title: str
    slug: Optional[str] = Field(default=None, index=True)
    created_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


# =============================================================================
# Section 3: Pydantic Models for API Requests and Responses
# =============================================================================


class ClaimerSummary(BaseModel):
    """Public metadata about the builder holding a claim.

    Attributes:
        id: User id
        firstName: Given name, if the profile has one
        lastName: Family name, if the profile has one
        profileImageUrl: Avatar URL
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    profileImageUrl: Optional[str] = None

    @classmethod
    def from_row(cls, row: BuilderProfileRow) -> "ClaimerSummary":
        """Create ClaimerSummary from a BuilderProfileRow."""
        return cls(
            id=row.user_id,
            firstName=row.first_name,
            lastName=row.last_name,
            profileImageUrl=row.profile_image_url,
        )


class Claim(BaseModel):
    """A claim as returned to callers.

    Attributes:
        id: Claim row id
        ideaId: Claimed idea
        userId: Owner
        claimedAt: Creation timestamp (UTC)
        progress: 0-100
        releasedAt: Release timestamp, None while active
    """

    model_config = ConfigDict(extra="ignore")

    id: int
    ideaId: str
    userId: str
    claimedAt: datetime
    progress: int = 0
    releasedAt: Optional[datetime] = None

    @field_validator("claimedAt", "releasedAt", mode="before")
    @classmethod
    def _coerce_timestamps(cls, v: Optional[str | datetime]) -> Optional[datetime]:
        return parse_datetime(v)

    @field_serializer("claimedAt", "releasedAt")
    def _serialize_timestamps(self, v: Optional[datetime]) -> Optional[str]:
        return format_iso(v)

    @property
    def isActive(self) -> bool:
        return self.releasedAt is None

    @classmethod
    def from_row(cls, row: ClaimRow) -> "Claim":
        """Create Claim from a ClaimRow."""
        return cls(
            id=row.id,
            ideaId=row.idea_id,
            userId=row.user_id,
            claimedAt=row.claimed_at,
            progress=row.progress,
            releasedAt=row.released_at,
        )


class ClaimStatus(BaseModel):
    """Public claim state of an idea.

    Attributes:
        ideaId: Idea the status describes
        isClaimed: True if an active claim exists
        claimedBy: Owner of the active claim
        claimedAt: When the active claim was made
        progress: Progress of the active claim (0 when unclaimed)
        totalClaimCount: All claims ever made on the idea, released included
        claimer: Public profile summary of the owner
    """

    model_config = ConfigDict(extra="ignore")

    ideaId: str
    isClaimed: bool = False
    claimedBy: Optional[str] = None
    claimedAt: Optional[datetime] = None
    progress: int = 0
    totalClaimCount: int = 0
    claimer: Optional[ClaimerSummary] = None

    @field_validator("claimedAt", mode="before")
    @classmethod
    def _coerce_claimed_at(cls, v: Optional[str | datetime]) -> Optional[datetime]:
        return parse_datetime(v)

    @field_serializer("claimedAt")
    def _serialize_claimed_at(self, v: Optional[datetime]) -> Optional[str]:
        return format_iso(v)


class ReleaseResult(BaseModel):
    """Outcome of a successful release."""

    model_config = ConfigDict(extra="ignore")

    ideaId: str
    userId: str
    released: bool = True
    releasedAt: datetime

    @field_serializer("releasedAt")
    def _serialize_released_at(self, v: datetime) -> Optional[str]:
        return format_iso(v)


class Interaction(BaseModel):
    """A stored interaction.

    Attributes:
        ideaId: Idea
        userId: User
        status: Current status
        updatedAt: When the status was last set
    """

    model_config = ConfigDict(extra="ignore")

    ideaId: str
    userId: str
    status: InteractionStatus
    updatedAt: datetime

    @field_validator("updatedAt", mode="before")
    @classmethod
    def _coerce_updated_at(cls, v: Optional[str | datetime]) -> Optional[datetime]:
        return parse_datetime(v)

    @field_serializer("updatedAt")
    def _serialize_updated_at(self, v: datetime) -> Optional[str]:
        return format_iso(v)

    @classmethod
    def from_row(cls, row: InteractionRow) -> "Interaction":
        """Create Interaction from an InteractionRow."""
        return cls(
            ideaId=row.idea_id,
            userId=row.user_id,
            status=InteractionStatus(row.status),
            updatedAt=row.updated_at,
        )


class InteractionState(BaseModel):
    """Response body for reading or setting a status."""

    status: Optional[InteractionStatus] = None


class ClearResult(BaseModel):
    """Outcome of a successful compare-and-delete."""

    ideaId: str
    userId: str
    cleared: bool = True
    previousStatus: InteractionStatus


class InteractionSummary(BaseModel):
    """Per-status counts of interactions on one idea."""

    ideaId: str
    counts: dict[str, int]
    total: int


class ProgressUpdate(BaseModel):
    """Request body for ``PUT /claim/progress``.

    ``progress`` is accepted as any JSON value; range and type checks belong
    to the claim registry, which answers with ``InvalidRange``.
    """

    model_config = ConfigDict(extra="ignore")

    progress: Any


class StatusChange(BaseModel):
    """Request body for setting or clearing an interaction.

    ``status`` is kept as a plain string so that unknown values reach the
    store and fail with ``InvalidStatus`` rather than a schema error.
    """

    model_config = ConfigDict(extra="ignore")

    status: str


__all__ = [
    "InteractionStatus",
    "PROGRESS_MIN",
    "PROGRESS_MAX",
    "ClaimRow",
    "InteractionRow",
    "BuilderProfileRow",
    "IdeaRow",
    "ClaimerSummary",
    "Claim",
    "ClaimStatus",
    "ReleaseResult",
    "Interaction",
    "InteractionState",
    "ClearResult",
    "InteractionSummary",
    "ProgressUpdate",
    "StatusChange",
]
