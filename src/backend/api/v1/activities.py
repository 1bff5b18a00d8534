"""
Activity Endpoints.

Authoring, lifecycle and list views for announcements, polls and voting
events.

Security measures:
- Authoring endpoints (create, edit, archive, delete) require admin
- Sweep requires an authenticated caller and always uses the server clock
- Domain errors are mapped to JSON responses by the application handler
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status

from api.deps import get_current_admin, get_current_principal, get_lifecycle_manager
from core.clock import now_ms
from core.exceptions import NotFoundError
from core.security import Principal
from schemas.activity import (
    ActivityCreate,
    ActivityResponse,
    ActivityUpdate,
    NextPublishResponse,
    SweepResult,
)
from services.lifecycle import ActivityLifecycleManager

logger = structlog.get_logger(__name__)

router = APIRouter()

LifecycleDep = Annotated[ActivityLifecycleManager, Depends(get_lifecycle_manager)]


# ============================================================================
# List Views
# ============================================================================


@router.get("", response_model=list[ActivityResponse])
async def list_active_activities(manager: LifecycleDep) -> list[ActivityResponse]:
    """List published activities, newest first."""
    activities = await manager.list_active(now_ms())
    return [ActivityResponse.from_activity(a) for a in activities]


@router.get("/scheduled", response_model=list[ActivityResponse])
async def list_scheduled_activities(manager: LifecycleDep) -> list[ActivityResponse]:
    """List activities waiting to be published, soonest first."""
    activities = await manager.list_scheduled(now_ms())
    return [ActivityResponse.from_activity(a) for a in activities]


@router.get("/archived", response_model=list[ActivityResponse])
async def list_archived_activities(manager: LifecycleDep) -> list[ActivityResponse]:
    """List archived activities, newest first."""
    activities = await manager.list_archived()
    return [ActivityResponse.from_activity(a) for a in activities]


@router.get("/next-publish", response_model=NextPublishResponse)
async def get_next_publish(manager: LifecycleDep) -> NextPublishResponse:
    """Get the earliest upcoming publish time (for client-side refresh timers)."""
    return NextPublishResponse(next_publish_at=await manager.next_publish_at(now_ms()))


@router.post("/sweep", response_model=SweepResult)
async def run_sweep(
    principal: Annotated[Principal, Depends(get_current_principal)],
    manager: LifecycleDep,
) -> SweepResult:
    """
    Apply due publish, auto-delete and auto-archive transitions.

    Safe to call repeatedly; clients call it when a scheduled item comes due.
    """
    result = await manager.sweep(now_ms())
    logger.info(
        "sweep_requested",
        subject_id=principal.subject_id,
        updated=result.updated,
        deleted=result.deleted,
        archived=result.archived,
    )
    return result


# ============================================================================
# Single Activity
# ============================================================================


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    payload: ActivityCreate,
    admin: Annotated[Principal, Depends(get_current_admin)],
    manager: LifecycleDep,
) -> ActivityResponse:
    """Create an announcement, poll or voting event."""
    activity = await manager.create(payload, admin, now_ms())
    return ActivityResponse.from_activity(activity)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(activity_id: str, manager: LifecycleDep) -> ActivityResponse:
    """Get one activity."""
    activity = await manager.get(activity_id, now_ms())
    if activity is None:
        raise NotFoundError()
    return ActivityResponse.from_activity(activity)


@router.patch("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdate,
    admin: Annotated[Principal, Depends(get_current_admin)],
    manager: LifecycleDep,
) -> ActivityResponse:
    """
    Edit an activity.

    Omitted fields keep their value; send null to clear an automation time
    or the poll close time.
    """
    activity = await manager.edit(activity_id, payload, admin, now_ms())
    return ActivityResponse.from_activity(activity)


@router.post("/{activity_id}/archive", response_model=ActivityResponse)
async def archive_activity(
    activity_id: str,
    admin: Annotated[Principal, Depends(get_current_admin)],
    manager: LifecycleDep,
) -> ActivityResponse:
    """Archive an activity."""
    activity = await manager.archive(activity_id, admin, now_ms())
    return ActivityResponse.from_activity(activity)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: str,
    admin: Annotated[Principal, Depends(get_current_admin)],
    manager: LifecycleDep,
) -> None:
    """Delete an activity and, for polls, all of its votes."""
    await manager.delete(activity_id, admin)
