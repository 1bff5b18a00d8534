"""Document models module."""

from models.documents import (
    Activity,
    ActivityStatus,
    AnnouncementActivity,
    EventType,
    LeaderboardMode,
    ParticipantSnapshot,
    PollActivity,
    PollVoteDocument,
    VotingActivity,
    parse_activity,
)

__all__ = [
    "Activity",
    "ActivityStatus",
    "AnnouncementActivity",
    "EventType",
    "LeaderboardMode",
    "ParticipantSnapshot",
    "PollActivity",
    "PollVoteDocument",
    "VotingActivity",
    "parse_activity",
]
