"""
Activity Lifecycle Manager

Owns an activity's status state machine and its schedule automation:

- scheduled -> published when publish time passes
- published/scheduled -> archived (explicitly or by auto-archive)
- removal (explicitly or by auto-delete), cascading to poll votes

The sweep applies due transitions and is safe to run repeatedly and
concurrently: every write is conditional on the version that was read, and
on conflict the record is re-read and its precondition re-checked.
"""

from typing import Any, Awaitable, Callable, Optional
from uuid import uuid4

import structlog

from core.config import settings
from core.exceptions import ConcurrencyConflictError, NotFoundError, UnauthorizedError
from core.security import Principal
from models.documents import (
    Activity,
    ActivityStatus,
    EventType,
    LeaderboardMode,
    ParticipantSnapshot,
    VotingActivity,
    parse_activity,
)
from repositories.provider import (
    ActivityRepositoryProtocol,
    PollVoteRepositoryProtocol,
    RosterSourceProtocol,
)
from schemas.activity import (
    CLEARABLE_FIELDS,
    ROSTER_FILTER_FIELDS,
    ActivityCreate,
    ActivityUpdate,
    SweepResult,
)
from services.normalization import normalize_activity_fields
from services.roster_service import filter_roster

logger = structlog.get_logger(__name__)


# ============================================================================
# Status rules (shared by read and write paths)
# ============================================================================


def initial_status(publish_at: int, now: int) -> ActivityStatus:
    """Status for a freshly written publish time."""
    return ActivityStatus.SCHEDULED if publish_at > now else ActivityStatus.PUBLISHED


def effective_status(activity: Activity, now: int) -> ActivityStatus:
    """Status the activity has at ``now``, whether or not a sweep persisted it."""
    status = ActivityStatus(activity.status)
    if status == ActivityStatus.SCHEDULED and activity.publish_at <= now:
        return ActivityStatus.PUBLISHED
    return status


def with_effective_status(activity: Activity, now: int) -> Activity:
    """Copy of the activity showing its effective status."""
    status = effective_status(activity, now)
    if status == activity.status:
        return activity
    return activity.model_copy(update={"status": status.value})


def is_publish_due(activity: Activity, now: int) -> bool:
    return activity.status == ActivityStatus.SCHEDULED and activity.publish_at <= now


def is_auto_delete_due(activity: Activity, now: int) -> bool:
    return activity.auto_delete_at is not None and activity.auto_delete_at <= now


def is_auto_archive_due(activity: Activity, now: int) -> bool:
    return (
        activity.status != ActivityStatus.ARCHIVED
        and activity.auto_archive_at is not None
        and activity.auto_archive_at <= now
    )


class ActivityLifecycleManager:
    """Creates, edits, archives, deletes and sweeps activities."""

    def __init__(
        self,
        activities: ActivityRepositoryProtocol,
        poll_votes: PollVoteRepositoryProtocol,
        roster_source: Optional[RosterSourceProtocol] = None,
    ):
        self.activities = activities
        self.poll_votes = poll_votes
        self.roster_source = roster_source

    # ========================================================================
    # Authoring
    # ========================================================================

    async def _build_roster(
        self,
        raw: dict[str, Any],
        previous: Optional[list[ParticipantSnapshot]] = None,
    ) -> list[ParticipantSnapshot]:
        """Snapshot the external roster through the activity's filters."""
        if self.roster_source is None:
            return list(previous or [])

        candidates = await self.roster_source.list_candidates()
        return filter_roster(
            candidates,
            raw.get("voting_allowed_groups") or [],
            raw.get("voting_allowed_portfolios") or [],
            bool(raw.get("voting_allow_ungrouped")),
            previous=previous,
        )

    async def create(self, payload: ActivityCreate, principal: Optional[Principal], now: int) -> Activity:
        """
        Create an activity.

        Anonymous creation is allowed; created_by is then left empty.

        Raises:
            ActivityValidationError: If any field fails normalization
        """
        raw = payload.model_dump()
        if raw.get("publish_at") is None:
            raw["publish_at"] = now

        if payload.event_type == EventType.VOTING and payload.voting_participants is None:
            raw["voting_participants"] = await self._build_roster(raw)

        fields = normalize_activity_fields(raw)
        activity = parse_activity(
            {
                **fields,
                "id": str(uuid4()),
                "created_at": now,
                "status": initial_status(fields["publish_at"], now).value,
                "created_by": principal.display_name if principal else None,
            }
        )

        saved = await self.activities.create(activity)
        logger.info(
            "activity_created",
            activity_id=saved.id,
            event_type=saved.event_type,
            status=saved.status,
        )
        return saved

    async def edit(
        self,
        activity_id: str,
        payload: ActivityUpdate,
        principal: Optional[Principal],
        now: int,
    ) -> Activity:
        """
        Edit an activity, merging supplied fields over the stored ones.

        Status is recomputed from the publish time; an archived activity stays
        archived unless a new publish time is supplied.

        Raises:
            UnauthorizedError: Without a principal
            NotFoundError: If the activity does not exist
            ActivityValidationError: If the merged fields are invalid
            ConcurrencyConflictError: If the activity changed while editing
        """
        if principal is None:
            raise UnauthorizedError()

        existing = await self.activities.get_by_id(activity_id)
        if existing is None:
            raise NotFoundError()

        supplied = payload.model_dump(exclude_unset=True)
        raw = existing.model_dump()
        for key, value in supplied.items():
            if value is None and key not in CLEARABLE_FIELDS:
                continue
            raw[key] = value

        event_type = EventType(raw["event_type"])
        leaderboard_fallback = LeaderboardMode.ALL
        if event_type == EventType.VOTING:
            previous = existing.voting_participants if isinstance(existing, VotingActivity) else []
            if isinstance(existing, VotingActivity):
                leaderboard_fallback = LeaderboardMode(existing.voting_leaderboard_mode)
            if supplied.get("voting_participants") is None and (
                not isinstance(existing, VotingActivity) or ROSTER_FILTER_FIELDS.intersection(supplied)
            ):
                raw["voting_participants"] = await self._build_roster(raw, previous)

        fields = normalize_activity_fields(raw, leaderboard_fallback=leaderboard_fallback)

        if existing.status == ActivityStatus.ARCHIVED and supplied.get("publish_at") is None:
            status = ActivityStatus.ARCHIVED
        else:
            status = initial_status(fields["publish_at"], now)

        updated = parse_activity(
            {
                **fields,
                "id": existing.id,
                "created_at": existing.created_at,
                "created_by": existing.created_by,
                "status": status.value,
                "updated_at": now,
                "updated_by": principal.display_name,
                "etag": existing.etag,
            }
        )
        saved = await self.activities.replace(updated)

        if existing.event_type == EventType.POLL and saved.event_type != EventType.POLL:
            await self.poll_votes.delete_for_activity(saved.id)

        logger.info(
            "activity_updated",
            activity_id=saved.id,
            event_type=saved.event_type,
            status=saved.status,
            updated_by=principal.display_name,
        )
        return saved

    async def archive(self, activity_id: str, principal: Optional[Principal], now: int) -> Activity:
        """
        Archive an activity unconditionally (votes are kept).

        Raises:
            UnauthorizedError: Without a principal
            NotFoundError: If the activity does not exist
        """
        if principal is None:
            raise UnauthorizedError()

        for _ in range(settings.OPTIMISTIC_WRITE_RETRIES):
            existing = await self.activities.get_by_id(activity_id)
            if existing is None:
                raise NotFoundError()
            try:
                saved = await self.activities.replace(
                    existing.model_copy(
                        update={
                            "status": ActivityStatus.ARCHIVED.value,
                            "updated_at": now,
                            "updated_by": principal.display_name,
                        }
                    )
                )
            except ConcurrencyConflictError:
                continue
            logger.info("activity_archived", activity_id=activity_id, archived_by=principal.display_name)
            return saved

        raise ConcurrencyConflictError()

    async def delete(self, activity_id: str, principal: Optional[Principal]) -> None:
        """
        Delete an activity; a poll's votes are deleted first.

        Raises:
            UnauthorizedError: Without a principal
            NotFoundError: If the activity does not exist
        """
        if principal is None:
            raise UnauthorizedError()

        existing = await self.activities.get_by_id(activity_id)
        if existing is None:
            raise NotFoundError()

        removed_votes = 0
        if existing.event_type == EventType.POLL:
            removed_votes = await self.poll_votes.delete_for_activity(activity_id)
        await self.activities.delete(activity_id)

        logger.info(
            "activity_deleted",
            activity_id=activity_id,
            removed_votes=removed_votes,
            deleted_by=principal.display_name,
        )

    # ========================================================================
    # Sweep
    # ========================================================================

    async def _apply_if_still_due(
        self,
        activity: Activity,
        now: int,
        is_due: Callable[[Activity, int], bool],
        update: dict[str, Any],
    ) -> bool:
        """
        Conditionally write ``update`` while the precondition still holds.

        Returns:
            True if this call applied the change
        """
        current: Optional[Activity] = activity
        for _ in range(settings.OPTIMISTIC_WRITE_RETRIES):
            if current is None or not is_due(current, now):
                return False
            try:
                await self.activities.replace(current.model_copy(update=update))
                return True
            except ConcurrencyConflictError:
                current = await self.activities.get_by_id(activity.id)

        logger.warning("sweep_transition_skipped", activity_id=activity.id, reason="contention")
        return False

    async def _delete_if_still_due(self, activity: Activity, now: int) -> bool:
        current: Optional[Activity] = activity
        for _ in range(settings.OPTIMISTIC_WRITE_RETRIES):
            if current is None or not is_auto_delete_due(current, now):
                return False
            # Votes before the activity, so a failed cascade stays due for the next sweep.
            if current.event_type == EventType.POLL:
                await self.poll_votes.delete_for_activity(current.id)
            try:
                return await self.activities.delete(current.id, etag=current.etag)
            except ConcurrencyConflictError:
                current = await self.activities.get_by_id(activity.id)

        logger.warning("sweep_delete_skipped", activity_id=activity.id, reason="contention")
        return False

    async def sweep(self, now: int) -> SweepResult:
        """
        Apply every due schedule transition.

        1. Publish scheduled activities whose publish time has passed.
        2. Delete activities whose auto-delete time has passed (with votes).
        3. Archive non-archived activities whose auto-archive time has passed.

        Only effects applied by this call are counted, so a repeated or
        concurrent sweep reports zero for work already done. A record that
        fails is logged and left for the next sweep.
        """
        result = SweepResult()

        for activity in await self.activities.list_publish_due(now):
            if await self._sweep_record(
                "publish",
                activity,
                self._apply_if_still_due(
                    activity, now, is_publish_due, {"status": ActivityStatus.PUBLISHED.value}
                ),
            ):
                result.updated += 1
                logger.info("activity_published", activity_id=activity.id)

        for activity in await self.activities.list_auto_delete_due(now):
            if await self._sweep_record("delete", activity, self._delete_if_still_due(activity, now)):
                result.deleted += 1
                logger.info("activity_auto_deleted", activity_id=activity.id)

        for activity in await self.activities.list_auto_archive_due(now):
            if await self._sweep_record(
                "archive",
                activity,
                self._apply_if_still_due(
                    activity, now, is_auto_archive_due, {"status": ActivityStatus.ARCHIVED.value}
                ),
            ):
                result.archived += 1
                logger.info("activity_auto_archived", activity_id=activity.id)

        if result.updated or result.deleted or result.archived:
            logger.info(
                "sweep_completed",
                updated=result.updated,
                deleted=result.deleted,
                archived=result.archived,
            )
        return result

    async def _sweep_record(self, step: str, activity: Activity, transition: Awaitable[bool]) -> bool:
        try:
            return await transition
        except Exception as e:
            logger.error("sweep_record_failed", step=step, activity_id=activity.id, error=str(e))
            return False

    # ========================================================================
    # Views
    # ========================================================================

    async def get(self, activity_id: str, now: int) -> Optional[Activity]:
        """Get one activity with its effective status."""
        activity = await self.activities.get_by_id(activity_id)
        if activity is None:
            return None
        return with_effective_status(activity, now)

    async def list_active(self, now: int) -> list[Activity]:
        """Published activities (including due-but-unswept ones), newest first."""
        candidates = await self.activities.list_active_candidates(now)
        active = [
            with_effective_status(activity, now)
            for activity in candidates
            if effective_status(activity, now) == ActivityStatus.PUBLISHED
        ]
        return sorted(active, key=lambda activity: activity.created_at, reverse=True)

    async def list_scheduled(self, now: int) -> list[Activity]:
        """Activities waiting to publish, soonest first."""
        scheduled = [
            activity
            for activity in await self.activities.list_scheduled(now)
            if effective_status(activity, now) == ActivityStatus.SCHEDULED
        ]
        return sorted(scheduled, key=lambda activity: activity.publish_at)

    async def list_archived(self) -> list[Activity]:
        """Archived activities, newest first."""
        archived = await self.activities.list_archived()
        return sorted(archived, key=lambda activity: activity.created_at, reverse=True)

    async def next_publish_at(self, now: int) -> Optional[int]:
        """Earliest future publish time among scheduled activities."""
        return await self.activities.get_next_publish_at(now)
