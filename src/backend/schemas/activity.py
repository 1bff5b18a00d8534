"""
Activity-related Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from models.documents import (
    Activity,
    ActivityStatus,
    EventType,
    LeaderboardMode,
    PollActivity,
    VotingActivity,
)

# Fields where an explicit null clears the stored value on update
CLEARABLE_FIELDS = frozenset({"auto_delete_at", "auto_archive_at", "poll_closes_at"})

# Fields that drive how a voting roster is built
ROSTER_FILTER_FIELDS = frozenset(
    {"voting_allowed_groups", "voting_allowed_portfolios", "voting_allow_ungrouped"}
)


class ParticipantInput(BaseModel):
    """Roster entry supplied by an author."""

    user_id: str
    first_name: str = ""
    last_name: str = ""
    group: Optional[str] = None
    portfolio: Optional[str] = None
    votes: float = 0


class ActivityFields(BaseModel):
    """Every author-editable activity field, all optional."""

    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[EventType] = None
    publish_at: Optional[int] = None
    auto_delete_at: Optional[int] = None
    auto_archive_at: Optional[int] = None
    image_ids: Optional[list[str]] = None

    # Poll
    poll_options: Optional[list[str]] = None
    poll_anonymous: Optional[bool] = None
    poll_allow_additional_options: Optional[bool] = None
    poll_max_selections: Optional[float] = None
    poll_closes_at: Optional[int] = None

    # Voting
    voting_participants: Optional[list[ParticipantInput]] = None
    voting_add_vote_price: Optional[float] = None
    voting_remove_vote_price: Optional[float] = None
    voting_allowed_groups: Optional[list[str]] = None
    voting_allowed_portfolios: Optional[list[str]] = None
    voting_allow_ungrouped: Optional[bool] = None
    # Free-form on purpose: unknown modes fall back instead of failing
    voting_leaderboard_mode: Optional[str] = None


class ActivityCreate(ActivityFields):
    """Schema for creating an activity; publish time defaults to now."""

    title: str
    event_type: EventType = EventType.ANNOUNCEMENT


class ActivityUpdate(ActivityFields):
    """
    Schema for editing an activity.

    Omitted fields keep their stored value. An explicit null clears
    auto_delete_at, auto_archive_at and poll_closes_at.
    """


# ============================================================================
# Responses
# ============================================================================


class ParticipantResponse(BaseModel):
    """Roster entry with its vote balance."""

    user_id: str
    first_name: str
    last_name: str
    group: Optional[str] = None
    portfolio: Optional[str] = None
    votes: int


class PollSettingsResponse(BaseModel):
    """Poll-only settings."""

    options: list[str]
    anonymous: bool
    allow_additional_options: bool
    max_selections: int
    closes_at: Optional[int] = None


class VotingSettingsResponse(BaseModel):
    """Voting-only settings and roster."""

    participants: list[ParticipantResponse]
    add_vote_price: float
    remove_vote_price: float
    allowed_groups: list[str]
    allowed_portfolios: list[str]
    allow_ungrouped: bool
    leaderboard_mode: LeaderboardMode


class ActivityResponse(BaseModel):
    """Activity as returned to clients."""

    id: str
    title: str
    description: str
    event_type: EventType
    status: ActivityStatus
    created_at: int
    publish_at: int
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[int] = None
    auto_delete_at: Optional[int] = None
    auto_archive_at: Optional[int] = None
    image_ids: list[str] = Field(default_factory=list)
    poll: Optional[PollSettingsResponse] = None
    voting: Optional[VotingSettingsResponse] = None

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivityResponse":
        """Convert an activity document into its API representation."""
        poll = None
        voting = None
        if isinstance(activity, PollActivity):
            poll = PollSettingsResponse(
                options=activity.poll_options,
                anonymous=activity.poll_anonymous,
                allow_additional_options=activity.poll_allow_additional_options,
                max_selections=activity.poll_max_selections,
                closes_at=activity.poll_closes_at,
            )
        elif isinstance(activity, VotingActivity):
            voting = VotingSettingsResponse(
                participants=[ParticipantResponse(**p.model_dump()) for p in activity.voting_participants],
                add_vote_price=activity.voting_add_vote_price,
                remove_vote_price=activity.voting_remove_vote_price,
                allowed_groups=activity.voting_allowed_groups,
                allowed_portfolios=activity.voting_allowed_portfolios,
                allow_ungrouped=activity.voting_allow_ungrouped,
                leaderboard_mode=activity.voting_leaderboard_mode,
            )

        return cls(
            id=activity.id,
            title=activity.title,
            description=activity.description,
            event_type=activity.event_type,
            status=activity.status,
            created_at=activity.created_at,
            publish_at=activity.publish_at,
            created_by=activity.created_by,
            updated_by=activity.updated_by,
            updated_at=activity.updated_at,
            auto_delete_at=activity.auto_delete_at,
            auto_archive_at=activity.auto_archive_at,
            image_ids=activity.image_ids,
            poll=poll,
            voting=voting,
        )


class SweepResult(BaseModel):
    """Counts of effects applied by one sweep."""

    updated: int = 0
    deleted: int = 0
    archived: int = 0


class NextPublishResponse(BaseModel):
    """Earliest upcoming publish instant, if any."""

    next_publish_at: Optional[int] = None
