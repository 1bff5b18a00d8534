"""
Poll-related Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class PollVoteRequest(BaseModel):
    """Schema for casting or replacing a poll vote."""

    selections: list[str] = Field(default_factory=list)
    new_option: Optional[str] = Field(None, description="Option to add to the poll while voting")


class PollOptionResult(BaseModel):
    """A poll option with its tally (hidden for anonymous polls)."""

    value: str
    votes: Optional[int] = None


class PollView(BaseModel):
    """Poll as seen by one viewer."""

    id: str
    question: str
    description: str = ""
    options: list[PollOptionResult]
    total_votes: Optional[int] = Field(None, description="Sum of all selections across voters")
    results_visible: bool = True
    anonymous: bool = False
    allow_additional_options: bool = False
    max_selections: int = 1
    closes_at: Optional[int] = None
    is_closed: bool = False
    is_archived: bool = False
    image_ids: list[str] = Field(default_factory=list)
    current_user_selections: list[str] = Field(default_factory=list)


class PollVoteResponse(BaseModel):
    """Result of a vote."""

    announcement_id: str
    selections: list[str]
    options: list[str]
    added_option: Optional[str] = None


class VoterEntry(BaseModel):
    """A voter as captured at vote time."""

    user_id: str
    user_name: str


class OptionBreakdown(BaseModel):
    """Voters behind one option."""

    option: str
    vote_count: int
    voters: list[VoterEntry] = Field(default_factory=list)


class PollBreakdown(BaseModel):
    """Per-option voter listing for poll administrators."""

    id: str
    question: str
    total_voters: int
    total_votes: int
    options: list[OptionBreakdown]
