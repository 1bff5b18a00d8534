"""
Voting Event Endpoints.

Vote-credit adjustments, leaderboards and roster candidates.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_admin, get_voting_ledger
from core.clock import now_ms
from core.security import Principal
from repositories.provider import RosterSourceProtocol, get_roster_source
from schemas.voting import AdjustmentResult, AdjustVotesRequest, Leaderboard, RosterCandidate
from services.ledger import VotingLedger

router = APIRouter()

LedgerDep = Annotated[VotingLedger, Depends(get_voting_ledger)]


@router.get("/roster-candidates", response_model=list[RosterCandidate])
async def list_roster_candidates(
    admin: Annotated[Principal, Depends(get_current_admin)],
    roster_source: Annotated[Optional[RosterSourceProtocol], Depends(get_roster_source)],
) -> list[RosterCandidate]:
    """List members that can be added to a voting event."""
    if roster_source is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Roster source is not configured",
        )
    return await roster_source.list_candidates()


@router.post("/{activity_id}/adjustments", response_model=AdjustmentResult)
async def adjust_votes(
    activity_id: str,
    payload: AdjustVotesRequest,
    admin: Annotated[Principal, Depends(get_current_admin)],
    ledger: LedgerDep,
) -> AdjustmentResult:
    """Apply add/remove vote adjustments to participants, all or nothing."""
    return await ledger.adjust_votes(activity_id, payload.adjustments, admin, now_ms())


@router.get("/{activity_id}/leaderboard", response_model=Leaderboard)
async def get_leaderboard(activity_id: str, ledger: LedgerDep) -> Leaderboard:
    """Get the ranked leaderboard for a voting event."""
    return await ledger.leaderboard(activity_id)
