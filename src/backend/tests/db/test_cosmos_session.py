"""
Tests for the Cosmos DB conditional write helpers.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core import MatchConditions
from azure.cosmos.exceptions import CosmosAccessConditionFailedError, CosmosResourceNotFoundError

from core.exceptions import ConcurrencyConflictError


def container_with(**methods) -> MagicMock:
    container = MagicMock()
    for name, mock in methods.items():
        setattr(container, name, mock)
    return container


@pytest.mark.unit
class TestConditionalWrites:
    """ETag-guarded replace and delete."""

    async def test_replace_sends_if_match(self) -> None:
        """Test an ETag turns into an IfNotModified match condition."""
        from db import cosmos_session

        replace = AsyncMock(return_value={"id": "a1", "_etag": '"2"'})
        with patch.object(cosmos_session, "get_container", AsyncMock(return_value=container_with(replace_item=replace))):
            await cosmos_session.replace_item("activities", {"id": "a1"}, etag='"1"')

        kwargs = replace.call_args.kwargs
        assert kwargs["etag"] == '"1"'
        assert kwargs["match_condition"] == MatchConditions.IfNotModified

    async def test_replace_without_etag_is_unconditional(self) -> None:
        """Test no match condition is sent without an ETag."""
        from db import cosmos_session

        replace = AsyncMock(return_value={"id": "a1"})
        with patch.object(cosmos_session, "get_container", AsyncMock(return_value=container_with(replace_item=replace))):
            await cosmos_session.replace_item("activities", {"id": "a1"})

        assert "match_condition" not in replace.call_args.kwargs

    @pytest.mark.parametrize("error", [CosmosAccessConditionFailedError, CosmosResourceNotFoundError])
    async def test_replace_conflict(self, error) -> None:
        """Test a failed precondition or vanished item becomes a conflict."""
        from db import cosmos_session

        replace = AsyncMock(side_effect=error(status_code=412, message="conflict"))
        with patch.object(cosmos_session, "get_container", AsyncMock(return_value=container_with(replace_item=replace))):
            with pytest.raises(ConcurrencyConflictError):
                await cosmos_session.replace_item("activities", {"id": "a1"}, etag='"1"')

    async def test_delete_outcomes(self) -> None:
        """Test delete reports missing items and raises on stale ETags."""
        from db import cosmos_session

        delete = AsyncMock(
            side_effect=[
                None,
                CosmosResourceNotFoundError(status_code=404, message="gone"),
                CosmosAccessConditionFailedError(status_code=412, message="stale"),
            ]
        )
        with patch.object(cosmos_session, "get_container", AsyncMock(return_value=container_with(delete_item=delete))):
            assert await cosmos_session.delete_item("activities", "a1", "a1", etag='"1"') is True
            assert await cosmos_session.delete_item("activities", "a1", "a1") is False
            with pytest.raises(ConcurrencyConflictError):
                await cosmos_session.delete_item("activities", "a1", "a1", etag='"1"')

    async def test_read_missing_returns_none(self) -> None:
        """Test a point read of a missing item returns None."""
        from db import cosmos_session

        read = AsyncMock(side_effect=CosmosResourceNotFoundError(status_code=404, message="gone"))
        with patch.object(cosmos_session, "get_container", AsyncMock(return_value=container_with(read_item=read))):
            assert await cosmos_session.read_item("activities", "a1", "a1") is None
