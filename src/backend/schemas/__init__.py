"""Schemas module initialization."""

from schemas.activity import ActivityCreate, ActivityResponse, ActivityUpdate, SweepResult
from schemas.poll import PollBreakdown, PollView, PollVoteRequest, PollVoteResponse
from schemas.voting import AdjustmentResult, AdjustVotesRequest, Leaderboard, VoteAdjustment

__all__ = [
    "ActivityCreate",
    "ActivityUpdate",
    "ActivityResponse",
    "SweepResult",
    "PollVoteRequest",
    "PollVoteResponse",
    "PollView",
    "PollBreakdown",
    "VoteAdjustment",
    "AdjustVotesRequest",
    "AdjustmentResult",
    "Leaderboard",
]
