"""
Cosmos DB document models for MoraleBoard.

These Pydantic models define the document structure stored in Cosmos DB.
An activity is exactly one of announcement, poll or voting event; each kind
is its own model carrying only the fields that apply to it, discriminated by
``event_type``.

Container Strategy:
- activities: Activity documents of every kind (partition: /id)
- poll-votes: One vote document per voter per poll (partition: /announcement_id)

All instants are epoch milliseconds (UTC).
"""

import hashlib
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

# ============================================================================
# Enums
# ============================================================================


class EventType(str, Enum):
    """Kind of activity."""

    ANNOUNCEMENT = "announcement"
    POLL = "poll"
    VOTING = "voting"


class ActivityStatus(str, Enum):
    """Activity lifecycle status."""

    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class LeaderboardMode(str, Enum):
    """How a voting event's leaderboard is grouped."""

    ALL = "all"
    GROUP = "group"
    GROUP_PORTFOLIO = "group_portfolio"


# ============================================================================
# Base Document Model
# ============================================================================


def strip_system_properties(data: dict[str, Any]) -> dict[str, Any]:
    """
    Drop Cosmos DB system properties (_rid, _ts, _self, ...) from a raw item.

    The _etag value is kept under ``etag`` for optimistic concurrency.
    """
    cleaned = {key: value for key, value in data.items() if not key.startswith("_")}
    if "_etag" in data:
        cleaned["etag"] = data["_etag"]
    return cleaned


class CosmosDocument(BaseModel):
    """
    Base class for Cosmos DB documents.

    All documents have:
    - id: Unique identifier
    - etag: ETag of the stored version (read-only, never written back)
    """

    model_config = {"extra": "ignore", "use_enum_values": True}

    id: str = Field(default_factory=lambda: str(uuid4()))
    etag: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def from_cosmos(cls, data: dict[str, Any]):
        """Build a document from a raw Cosmos DB item."""
        return cls(**strip_system_properties(data))

    def to_cosmos(self) -> dict[str, Any]:
        """Serialize for writing to Cosmos DB."""
        return self.model_dump(mode="json")


# ============================================================================
# Activity Documents
# ============================================================================


class ActivityBase(CosmosDocument):
    """Fields shared by every activity kind."""

    title: str
    description: str = ""
    created_at: int
    publish_at: int
    status: ActivityStatus = ActivityStatus.PUBLISHED

    # Provenance
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[int] = None

    # Automation (at most one of the two is set)
    auto_delete_at: Optional[int] = None
    auto_archive_at: Optional[int] = None

    image_ids: list[str] = Field(default_factory=list)


class AnnouncementActivity(ActivityBase):
    """Plain announcement."""

    event_type: Literal["announcement"] = "announcement"


class PollActivity(ActivityBase):
    """Poll; the title is the poll question."""

    event_type: Literal["poll"] = "poll"

    poll_options: list[str]
    poll_anonymous: bool = False
    poll_allow_additional_options: bool = False
    poll_max_selections: int = 1
    poll_closes_at: Optional[int] = None


class ParticipantSnapshot(BaseModel):
    """Point-in-time copy of a roster member with their vote balance."""

    user_id: str
    first_name: str = ""
    last_name: str = ""
    group: Optional[str] = None
    portfolio: Optional[str] = None
    votes: int = 0


class VotingActivity(ActivityBase):
    """Paid-vote decision event with an embedded roster snapshot."""

    event_type: Literal["voting"] = "voting"

    voting_participants: list[ParticipantSnapshot]
    voting_add_vote_price: float = 0.0
    voting_remove_vote_price: float = 0.0
    voting_allowed_groups: list[str] = Field(default_factory=list)
    voting_allowed_portfolios: list[str] = Field(default_factory=list)
    voting_allow_ungrouped: bool = False
    voting_leaderboard_mode: LeaderboardMode = LeaderboardMode.ALL


Activity = Annotated[
    Union[AnnouncementActivity, PollActivity, VotingActivity],
    Field(discriminator="event_type"),
]

_activity_adapter: TypeAdapter = TypeAdapter(Activity)


def parse_activity(data: dict[str, Any]) -> Activity:
    """Build the activity variant matching ``event_type`` from a raw item."""
    return _activity_adapter.validate_python(strip_system_properties(data))


# ============================================================================
# Poll Vote Documents
# ============================================================================


def poll_vote_id(announcement_id: str, user_id: str) -> str:
    """Deterministic document id: one vote document per voter per poll."""
    return hashlib.sha256(f"{announcement_id}:{user_id}".encode()).hexdigest()


class PollVoteDocument(CosmosDocument):
    """
    Poll vote stored in the 'poll-votes' container.

    Partition key: /announcement_id
    Re-voting overwrites the same document (id derived from poll and voter).
    """

    announcement_id: str
    user_id: str
    user_name: str
    selections: list[str]
    created_at: int
    updated_at: int
