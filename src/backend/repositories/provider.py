"""
Repository provider for dependency injection.

This module provides a unified interface for accessing repositories
using Cosmos DB as the primary data store, and the external roster source.

Usage:
    from repositories.provider import get_activity_repository, ...

    # In FastAPI dependencies:
    async def some_endpoint(
        activities: ActivityRepositoryProtocol = Depends(get_activity_repository),
    ):
        activity = await activities.get_by_id(activity_id)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from core.config import settings
from models.documents import Activity, PollVoteDocument

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


def is_cosmos_enabled() -> bool:
    """Check if Cosmos DB is configured and enabled."""
    # Cosmos DB can be configured via either:
    # 1. AZURE_COSMOS_ENDPOINT (for Azure deployment with RBAC)
    # 2. AZURE_COSMOS_CONNECTION_STRING (for local emulator)
    return bool(settings.AZURE_COSMOS_ENDPOINT or settings.AZURE_COSMOS_CONNECTION_STRING)


# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class ActivityRepositoryProtocol(Protocol):
    """Protocol defining activity repository operations."""

    async def get_by_id(self, activity_id: str) -> Optional[Activity]: ...
    async def list_active_candidates(self, now: int) -> list[Activity]: ...
    async def list_scheduled(self, now: int) -> list[Activity]: ...
    async def list_archived(self) -> list[Activity]: ...
    async def list_publish_due(self, now: int) -> list[Activity]: ...
    async def list_auto_delete_due(self, now: int) -> list[Activity]: ...
    async def list_auto_archive_due(self, now: int) -> list[Activity]: ...
    async def get_next_publish_at(self, now: int) -> Optional[int]: ...
    async def create(self, activity: Activity) -> Activity: ...
    async def replace(self, activity: Activity) -> Activity: ...
    async def delete(self, activity_id: str, etag: Optional[str] = None) -> bool: ...


@runtime_checkable
class PollVoteRepositoryProtocol(Protocol):
    """Protocol defining poll vote repository operations."""

    async def get_for_user(self, announcement_id: str, user_id: str) -> Optional[PollVoteDocument]: ...
    async def list_for_activity(self, announcement_id: str) -> list[PollVoteDocument]: ...
    async def upsert(self, vote: PollVoteDocument) -> PollVoteDocument: ...
    async def delete_for_activity(self, announcement_id: str) -> int: ...


@runtime_checkable
class RosterSourceProtocol(Protocol):
    """Protocol for the external roster (member directory) source."""

    async def list_candidates(self) -> list: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


async def get_activity_repository() -> ActivityRepositoryProtocol:
    """Get the activity repository based on configuration."""
    if is_cosmos_enabled():
        from repositories.activity_repository import CosmosActivityRepository

        return CosmosActivityRepository()
    raise NotImplementedError("No activity store configured. Please set AZURE_COSMOS_ENDPOINT to use Cosmos DB.")


async def get_poll_vote_repository() -> PollVoteRepositoryProtocol:
    """Get the poll vote repository based on configuration."""
    if is_cosmos_enabled():
        from repositories.poll_vote_repository import CosmosPollVoteRepository

        return CosmosPollVoteRepository()
    raise NotImplementedError("No activity store configured. Please set AZURE_COSMOS_ENDPOINT to use Cosmos DB.")


async def get_roster_source() -> Optional[RosterSourceProtocol]:
    """
    Get the external roster source.

    Returns None when no roster source is configured; voting events must then
    be created with an explicit participant list.
    """
    if not settings.ROSTER_SOURCE_URL:
        return None

    from services.roster_service import HttpRosterSource

    return HttpRosterSource(
        base_url=settings.ROSTER_SOURCE_URL,
        token=settings.ROSTER_SOURCE_TOKEN,
        timeout=settings.ROSTER_SOURCE_TIMEOUT_SECONDS,
    )
