"""
Voting-event (vote ledger) Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from models.documents import LeaderboardMode
from schemas.activity import ParticipantResponse


class VoteAdjustment(BaseModel):
    """Add and/or remove vote credits for one participant."""

    user_id: str
    add: float = 0
    remove: float = 0


class AdjustVotesRequest(BaseModel):
    """Batch of adjustments applied all-or-nothing."""

    adjustments: list[VoteAdjustment] = Field(default_factory=list)


class AdjustmentResult(BaseModel):
    """Outcome of a vote adjustment batch."""

    changed: bool
    participants: list[ParticipantResponse]
    add_cost: float = 0.0
    remove_cost: float = 0.0
    total_price: float = 0.0


class LeaderboardEntry(BaseModel):
    """Ranked participant."""

    rank: int
    user_id: str
    first_name: str
    last_name: str
    group: Optional[str] = None
    portfolio: Optional[str] = None
    votes: int


class LeaderboardBoard(BaseModel):
    """One ranking (the whole roster, a group, or a group portfolio)."""

    label: str
    group: Optional[str] = None
    portfolio: Optional[str] = None
    entries: list[LeaderboardEntry]


class Leaderboard(BaseModel):
    """Leaderboard for a voting event."""

    id: str
    title: str
    mode: LeaderboardMode
    boards: list[LeaderboardBoard]


class RosterCandidate(BaseModel):
    """Member offered by the external roster source."""

    user_id: str
    first_name: str = ""
    last_name: str = ""
    group: Optional[str] = None
    portfolio: Optional[str] = None
