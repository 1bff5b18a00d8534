"""
Pytest fixtures for MoraleBoard backend tests.
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENABLE_SWEEP_SCHEDULER", "false")

from fakes import (  # noqa: E402
    NOW_MS,
    InMemoryActivityRepository,
    InMemoryPollVoteRepository,
    StaticRosterSource,
    create_identity_token,
)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def now() -> int:
    """Fixed clock (epoch ms) for deterministic tests."""
    return NOW_MS


@pytest.fixture
def activity_repo() -> InMemoryActivityRepository:
    """In-memory activity store."""
    return InMemoryActivityRepository()


@pytest.fixture
def vote_repo() -> InMemoryPollVoteRepository:
    """In-memory poll vote store."""
    return InMemoryPollVoteRepository()


@pytest.fixture
def roster_source() -> StaticRosterSource:
    """Roster source with members across groups and portfolios."""
    return StaticRosterSource(
        [
            {"user_id": "u-sec", "first_name": "Sam", "last_name": "Secure", "group": "Security"},
            {"user_id": "u-ops", "first_name": "Olive", "last_name": "Ops", "group": "Products", "portfolio": "Spec Ops"},
            {"user_id": "u-moss", "first_name": "Moe", "last_name": "Moss", "group": "Products", "portfolio": "MOSS"},
            {"user_id": "u-atlas", "first_name": "Ada", "last_name": "Atlas", "group": "Enterprise", "portfolio": "Atlas"},
            {"user_id": "u-none", "first_name": "Nora", "last_name": "Nobody"},
        ]
    )


@pytest.fixture
def admin():
    """Admin principal."""
    from core.security import Principal

    return Principal(subject_id="admin-1", name="Alex Admin", email="alex@example.com", role="admin")


@pytest.fixture
def member():
    """Regular (non-admin) principal."""
    from core.security import Principal

    return Principal(subject_id="member-1", name="Morgan Member", email="morgan@example.com")


@pytest.fixture
async def app(activity_repo, vote_repo, roster_source) -> AsyncGenerator[Any, None]:
    """FastAPI application wired to in-memory stores."""
    from main import app as fastapi_app
    from repositories.provider import get_activity_repository, get_poll_vote_repository, get_roster_source

    async def _activities():
        return activity_repo

    async def _votes():
        return vote_repo

    async def _roster():
        return roster_source

    fastapi_app.dependency_overrides[get_activity_repository] = _activities
    fastapi_app.dependency_overrides[get_poll_vote_repository] = _votes
    fastapi_app.dependency_overrides[get_roster_source] = _roster
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Bearer headers for an admin identity."""
    token = create_identity_token("admin-1", name="Alex Admin", email="alex@example.com", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers() -> dict[str, str]:
    """Bearer headers for a regular member identity."""
    token = create_identity_token("member-1", name="Morgan Member", email="morgan@example.com")
    return {"Authorization": f"Bearer {token}"}
