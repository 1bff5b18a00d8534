"""
Poll Endpoints.

Viewing results, voting and the admin voter breakdown.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from api.deps import get_current_admin, get_current_principal, get_current_principal_optional, get_poll_engine
from core.clock import now_ms
from core.security import Principal
from schemas.poll import PollBreakdown, PollView, PollVoteRequest, PollVoteResponse
from services.poll_engine import PollEngine

router = APIRouter()

PollEngineDep = Annotated[PollEngine, Depends(get_poll_engine)]


@router.get("/{poll_id}", response_model=PollView)
async def get_poll(
    poll_id: str,
    engine: PollEngineDep,
    principal: Annotated[Optional[Principal], Depends(get_current_principal_optional)],
) -> PollView:
    """
    Get a poll with results.

    Anonymous polls only include tallies for admins; everyone sees their own
    selections.
    """
    return await engine.get_poll(poll_id, principal, now_ms())


@router.post("/{poll_id}/vote", response_model=PollVoteResponse)
async def vote_on_poll(
    poll_id: str,
    payload: PollVoteRequest,
    principal: Annotated[Principal, Depends(get_current_principal)],
    engine: PollEngineDep,
) -> PollVoteResponse:
    """Cast or replace the caller's vote, optionally adding a new option."""
    return await engine.vote(poll_id, payload.selections, payload.new_option, principal, now_ms())


@router.get("/{poll_id}/breakdown", response_model=PollBreakdown)
async def get_poll_breakdown(
    poll_id: str,
    admin: Annotated[Principal, Depends(get_current_admin)],
    engine: PollEngineDep,
) -> PollBreakdown:
    """List the voters behind each option."""
    return await engine.voter_breakdown(poll_id, admin)
