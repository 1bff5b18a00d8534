"""
Cosmos DB Poll Vote repository.

One document per voter per poll; the document id is derived from the poll
and voter so re-voting overwrites instead of duplicating.
Partition key is announcement_id for efficient per-poll queries.
"""

import logging
from typing import Optional

from db.cosmos_session import (
    POLL_VOTES_CONTAINER,
    delete_item,
    query_items,
    read_item,
    upsert_item,
)
from models.documents import PollVoteDocument, poll_vote_id

logger = logging.getLogger(__name__)


class CosmosPollVoteRepository:
    """Repository for poll vote operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_for_user(self, announcement_id: str, user_id: str) -> Optional[PollVoteDocument]:
        """Get a voter's vote on a poll (point read)."""
        data = await read_item(
            POLL_VOTES_CONTAINER,
            poll_vote_id(announcement_id, user_id),
            partition_key=announcement_id,
        )
        if data is None:
            return None
        return PollVoteDocument.from_cosmos(data)

    async def list_for_activity(self, announcement_id: str) -> list[PollVoteDocument]:
        """Get every vote cast on a poll."""
        query = """
            SELECT * FROM c
            WHERE c.announcement_id = @announcement_id
        """
        results = await query_items(
            POLL_VOTES_CONTAINER,
            query,
            parameters=[{"name": "@announcement_id", "value": announcement_id}],
            partition_key=announcement_id,
        )
        return [PollVoteDocument.from_cosmos(item) for item in results]

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def upsert(self, vote: PollVoteDocument) -> PollVoteDocument:
        """Insert or overwrite a vote."""
        vote.id = poll_vote_id(vote.announcement_id, vote.user_id)
        data = await upsert_item(POLL_VOTES_CONTAINER, vote.to_cosmos())
        logger.debug(f"Upserted vote for poll {vote.announcement_id}")
        return PollVoteDocument.from_cosmos(data)

    async def delete_for_activity(self, announcement_id: str) -> int:
        """
        Delete every vote cast on a poll.

        Returns:
            Number of vote documents removed
        """
        query = "SELECT c.id FROM c WHERE c.announcement_id = @announcement_id"
        results = await query_items(
            POLL_VOTES_CONTAINER,
            query,
            parameters=[{"name": "@announcement_id", "value": announcement_id}],
            partition_key=announcement_id,
        )
        deleted = 0
        for item in results:
            if await delete_item(POLL_VOTES_CONTAINER, item["id"], partition_key=announcement_id):
                deleted += 1
        if deleted:
            logger.info(f"Deleted {deleted} votes for poll {announcement_id}")
        return deleted
