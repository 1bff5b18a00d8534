"""
Cosmos DB Activity repository.

Handles activity CRUD and the schedule queries used by list views and the
sweep. Writes that must not clobber a concurrent change carry the ETag of
the version that was read.
"""

import logging
from typing import Optional

from db.cosmos_session import (
    ACTIVITIES_CONTAINER,
    create_item,
    delete_item,
    query_items,
    read_item,
    replace_item,
)
from models.documents import Activity, ActivityStatus, parse_activity

logger = logging.getLogger(__name__)


class CosmosActivityRepository:
    """Repository for activity operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, activity_id: str) -> Optional[Activity]:
        """Get an activity by ID (point read)."""
        data = await read_item(ACTIVITIES_CONTAINER, activity_id, partition_key=activity_id)
        if data is None:
            return None
        return parse_activity(data)

    async def _query(self, query: str, parameters: list[dict], max_items: int | None = None) -> list[Activity]:
        results = await query_items(ACTIVITIES_CONTAINER, query, parameters=parameters, max_items=max_items)
        return [parse_activity(item) for item in results]

    async def list_active_candidates(self, now: int) -> list[Activity]:
        """
        Get non-archived activities that are published or due to be.

        Scheduled records whose publish time has passed are included with
        their stored status; callers normalize the effective status.
        """
        query = """
            SELECT * FROM c
            WHERE c.status = @published
               OR (c.status = @scheduled AND c.publish_at <= @now)
            ORDER BY c.created_at DESC
        """
        return await self._query(
            query,
            [
                {"name": "@published", "value": ActivityStatus.PUBLISHED.value},
                {"name": "@scheduled", "value": ActivityStatus.SCHEDULED.value},
                {"name": "@now", "value": now},
            ],
        )

    async def list_scheduled(self, now: int) -> list[Activity]:
        """Get activities still waiting to be published, soonest first."""
        query = """
            SELECT * FROM c
            WHERE c.status = @scheduled
              AND c.publish_at > @now
            ORDER BY c.publish_at ASC
        """
        return await self._query(
            query,
            [
                {"name": "@scheduled", "value": ActivityStatus.SCHEDULED.value},
                {"name": "@now", "value": now},
            ],
        )

    async def list_archived(self) -> list[Activity]:
        """Get archived activities, newest first."""
        query = """
            SELECT * FROM c
            WHERE c.status = @archived
            ORDER BY c.created_at DESC
        """
        return await self._query(query, [{"name": "@archived", "value": ActivityStatus.ARCHIVED.value}])

    async def list_publish_due(self, now: int) -> list[Activity]:
        """Get scheduled activities whose publish time has passed."""
        query = """
            SELECT * FROM c
            WHERE c.status = @scheduled
              AND c.publish_at <= @now
        """
        return await self._query(
            query,
            [
                {"name": "@scheduled", "value": ActivityStatus.SCHEDULED.value},
                {"name": "@now", "value": now},
            ],
        )

    async def list_auto_delete_due(self, now: int) -> list[Activity]:
        """Get activities whose auto-delete time has passed."""
        query = """
            SELECT * FROM c
            WHERE IS_NUMBER(c.auto_delete_at)
              AND c.auto_delete_at <= @now
        """
        return await self._query(query, [{"name": "@now", "value": now}])

    async def list_auto_archive_due(self, now: int) -> list[Activity]:
        """Get non-archived activities whose auto-archive time has passed."""
        query = """
            SELECT * FROM c
            WHERE c.status != @archived
              AND IS_NUMBER(c.auto_archive_at)
              AND c.auto_archive_at <= @now
        """
        return await self._query(
            query,
            [
                {"name": "@archived", "value": ActivityStatus.ARCHIVED.value},
                {"name": "@now", "value": now},
            ],
        )

    async def get_next_publish_at(self, now: int) -> Optional[int]:
        """Get the earliest future publish time among scheduled activities."""
        query = """
            SELECT TOP 1 VALUE c.publish_at FROM c
            WHERE c.status = @scheduled
              AND c.publish_at > @now
            ORDER BY c.publish_at ASC
        """
        results = await query_items(
            ACTIVITIES_CONTAINER,
            query,
            parameters=[
                {"name": "@scheduled", "value": ActivityStatus.SCHEDULED.value},
                {"name": "@now", "value": now},
            ],
            max_items=1,
        )
        if not results:
            return None
        return int(results[0])

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, activity: Activity) -> Activity:
        """Create an activity document."""
        data = await create_item(ACTIVITIES_CONTAINER, activity.to_cosmos())
        logger.info(f"Created {activity.event_type} activity {activity.id}")
        return parse_activity(data)

    async def replace(self, activity: Activity) -> Activity:
        """
        Replace an activity, guarded by the ETag it was read with.

        Raises:
            ConcurrencyConflictError: If the activity changed in the meantime
        """
        data = await replace_item(ACTIVITIES_CONTAINER, activity.to_cosmos(), etag=activity.etag)
        return parse_activity(data)

    async def delete(self, activity_id: str, etag: Optional[str] = None) -> bool:
        """
        Delete an activity.

        Returns:
            True if a document was removed, False if it was already gone
        """
        deleted = await delete_item(ACTIVITIES_CONTAINER, activity_id, partition_key=activity_id, etag=etag)
        if deleted:
            logger.info(f"Deleted activity {activity_id}")
        return deleted
