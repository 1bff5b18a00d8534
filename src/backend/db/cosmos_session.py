"""
Azure Cosmos DB session management for document storage.

Uses async Cosmos DB SDK with DefaultAzureCredential for RBAC authentication.
This module provides a unified client for all Cosmos DB operations.
"""

import logging
from typing import Any

from azure.core import MatchConditions
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosAccessConditionFailedError, CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential

from core.config import settings
from core.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

# Container names
ACTIVITIES_CONTAINER = "activities"  # partition: /id
POLL_VOTES_CONTAINER = "poll-votes"  # partition: /announcement_id

# Global client instances (lazy-initialized)
_cosmos_client: CosmosClient | None = None
_database: DatabaseProxy | None = None
_credential: DefaultAzureCredential | None = None


async def get_cosmos_client() -> CosmosClient:
    """
    Get or create the Cosmos DB client.

    Supports two authentication modes:
    1. Connection string (for local development with Cosmos DB Emulator)
    2. DefaultAzureCredential/RBAC (for Azure deployment)

    The client is singleton and reused across requests.

    Returns:
        CosmosClient: Async Cosmos DB client
    """
    global _cosmos_client, _credential

    if _cosmos_client is None:
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            _cosmos_client = CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )
            logger.info(
                f"Initialized Cosmos DB client for {endpoint} (connection string mode, "
                f"SSL verification: {not settings.AZURE_COSMOS_DISABLE_SSL})"
            )
        else:
            if not settings.AZURE_COSMOS_ENDPOINT:
                raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

            _credential = DefaultAzureCredential()
            _cosmos_client = CosmosClient(
                url=settings.AZURE_COSMOS_ENDPOINT,
                credential=_credential,
            )
            logger.info(f"Initialized Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")

    return _cosmos_client


async def get_database() -> DatabaseProxy:
    """Get the Cosmos DB database proxy."""
    global _database

    if _database is None:
        client = await get_cosmos_client()
        _database = client.get_database_client(settings.AZURE_COSMOS_DATABASE)
        logger.info(f"Connected to database: {settings.AZURE_COSMOS_DATABASE}")

    return _database


async def get_container(container_name: str) -> ContainerProxy:
    """
    Get a container proxy for the specified container.

    Args:
        container_name: Name of the container (e.g., 'activities', 'poll-votes')

    Returns:
        ContainerProxy: Container proxy for CRUD operations
    """
    database = await get_database()
    return database.get_container_client(container_name)


async def close_cosmos() -> None:
    """
    Close Cosmos DB connections.

    Should be called during application shutdown.
    """
    global _cosmos_client, _database, _credential

    if _cosmos_client is not None:
        await _cosmos_client.close()
        _cosmos_client = None
        _database = None
        logger.info("Closed Cosmos DB client")

    if _credential is not None:
        await _credential.close()
        _credential = None


def _match_kwargs(etag: str | None) -> dict[str, Any]:
    """Request options for an optimistic (If-Match) write."""
    if not etag:
        return {}
    return {"etag": etag, "match_condition": MatchConditions.IfNotModified}


# ============================================================================
# Utility Functions for Common Operations
# ============================================================================


async def create_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """
    Create a new item in the specified container.

    Args:
        container_name: Container to create item in
        item: Item data (must include 'id' and partition key field)

    Returns:
        Created item with system properties
    """
    container = await get_container(container_name)
    return await container.create_item(body=item)


async def read_item(
    container_name: str,
    item_id: str,
    partition_key: str,
) -> dict[str, Any] | None:
    """
    Read an item by ID and partition key.

    Returns:
        Item data (including _etag) or None if not found
    """
    container = await get_container(container_name)
    try:
        return await container.read_item(item=item_id, partition_key=partition_key)
    except CosmosResourceNotFoundError:
        return None


async def replace_item(
    container_name: str,
    item: dict[str, Any],
    etag: str | None = None,
) -> dict[str, Any]:
    """
    Replace an existing item, optionally only if it is unchanged since read.

    Args:
        container_name: Container holding the item
        item: Full replacement body (must include 'id')
        etag: ETag of the version the caller read; None skips the check

    Returns:
        Replaced item with the new _etag

    Raises:
        ConcurrencyConflictError: If the stored item changed since ``etag``
            or no longer exists
    """
    container = await get_container(container_name)
    try:
        return await container.replace_item(item=item["id"], body=item, **_match_kwargs(etag))
    except (CosmosAccessConditionFailedError, CosmosResourceNotFoundError) as e:
        logger.info(f"Conditional replace lost for {container_name}/{item['id']}")
        raise ConcurrencyConflictError() from e


async def upsert_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """
    Create or update an item in the specified container.

    Args:
        container_name: Container to upsert item in
        item: Item data (must include 'id' and partition key field)

    Returns:
        Upserted item with system properties
    """
    container = await get_container(container_name)
    return await container.upsert_item(body=item)


async def delete_item(
    container_name: str,
    item_id: str,
    partition_key: str,
    etag: str | None = None,
) -> bool:
    """
    Delete an item by ID and partition key.

    Returns:
        True if deleted, False if the item was already gone

    Raises:
        ConcurrencyConflictError: If ``etag`` is given and the item changed
    """
    container = await get_container(container_name)
    try:
        await container.delete_item(item=item_id, partition_key=partition_key, **_match_kwargs(etag))
    except CosmosResourceNotFoundError:
        return False
    except CosmosAccessConditionFailedError as e:
        logger.info(f"Conditional delete lost for {container_name}/{item_id}")
        raise ConcurrencyConflictError() from e
    return True


async def query_items(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
    max_items: int | None = None,
) -> list[dict[str, Any]]:
    """
    Query items using SQL-like syntax.

    Args:
        container_name: Container to query
        query: Cosmos DB SQL query string
        parameters: Query parameters for parameterized queries
        partition_key: Optional partition key for scoped queries
        max_items: Maximum number of items to return

    Returns:
        List of matching items

    Example:
        results = await query_items(
            'activities',
            'SELECT * FROM c WHERE c.status = @status',
            parameters=[{'name': '@status', 'value': 'archived'}]
        )
    """
    container = await get_container(container_name)

    # Cross-partition querying is implied when no partition_key is given
    query_kwargs: dict[str, Any] = {
        "query": query,
    }

    if parameters:
        query_kwargs["parameters"] = parameters

    if partition_key:
        query_kwargs["partition_key"] = partition_key

    if max_items:
        query_kwargs["max_item_count"] = max_items

    items: list[dict[str, Any]] = []
    async for item in container.query_items(**query_kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break

    return items
