"""
Shared dependencies for API endpoints.

Includes:
- Identity token authentication (principal, optional principal, admin)
- Service construction from the configured repositories
"""

from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.security import Principal, principal_from_token
from repositories.provider import (
    ActivityRepositoryProtocol,
    PollVoteRepositoryProtocol,
    RosterSourceProtocol,
    get_activity_repository,
    get_poll_vote_repository,
    get_roster_source,
)
from services.ledger import VotingLedger
from services.lifecycle import ActivityLifecycleManager
from services.poll_engine import PollEngine

logger = structlog.get_logger(__name__)

# Security schemes
security = HTTPBearer(auto_error=False)


# =============================================================================
# Authentication
# =============================================================================


async def get_current_principal_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Optional[Principal]:
    """
    Optionally resolve the caller from the bearer token.

    Returns None if no token is provided or the token is invalid.
    """
    if credentials is None:
        return None
    return principal_from_token(credentials.credentials)


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Principal:
    """
    Resolve the caller from the bearer token.

    Raises:
        HTTPException: If the token is missing or invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    principal = principal_from_token(credentials.credentials)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


async def get_current_admin(
    principal: Annotated[Principal, Depends(get_current_principal)],
) -> Principal:
    """
    Ensure the caller is an admin.

    Raises:
        HTTPException: If the caller is not an admin.
    """
    if not principal.is_admin:
        logger.warning("non_admin_access_attempt", subject_id=principal.subject_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return principal


# =============================================================================
# Services
# =============================================================================


async def get_lifecycle_manager(
    activities: Annotated[ActivityRepositoryProtocol, Depends(get_activity_repository)],
    poll_votes: Annotated[PollVoteRepositoryProtocol, Depends(get_poll_vote_repository)],
    roster_source: Annotated[Optional[RosterSourceProtocol], Depends(get_roster_source)],
) -> ActivityLifecycleManager:
    return ActivityLifecycleManager(activities, poll_votes, roster_source)


async def get_poll_engine(
    activities: Annotated[ActivityRepositoryProtocol, Depends(get_activity_repository)],
    poll_votes: Annotated[PollVoteRepositoryProtocol, Depends(get_poll_vote_repository)],
) -> PollEngine:
    return PollEngine(activities, poll_votes)


async def get_voting_ledger(
    activities: Annotated[ActivityRepositoryProtocol, Depends(get_activity_repository)],
) -> VotingLedger:
    return VotingLedger(activities)
