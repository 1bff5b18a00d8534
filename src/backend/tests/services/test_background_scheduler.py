"""
Tests for the background sweep scheduler.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.clock import now_ms
from fakes import HOUR_MS
from schemas.activity import ActivityCreate
from services.lifecycle import ActivityLifecycleManager


@pytest.mark.unit
class TestSweepJob:
    """Sweep job wiring."""

    async def test_sweep_job_runs_manager(self, activity_repo, vote_repo, admin) -> None:
        """Test the job sweeps at the current time and re-arms the next publish."""
        from services import background_scheduler

        manager = ActivityLifecycleManager(activity_repo, vote_repo)
        overdue = await manager.create(
            ActivityCreate(title="Due", description="Body", publish_at=now_ms() + HOUR_MS), admin, now_ms()
        )
        activity_repo.items[overdue.id]["publish_at"] = now_ms() - 1
        upcoming = await manager.create(
            ActivityCreate(title="Later", description="Body", publish_at=now_ms() + HOUR_MS), admin, now_ms()
        )

        with (
            patch.object(background_scheduler, "_build_lifecycle_manager", AsyncMock(return_value=manager)),
            patch.object(background_scheduler, "schedule_next_publish") as mock_arm,
        ):
            result = await background_scheduler.sweep_job()

        assert result.updated == 1
        mock_arm.assert_called_once_with(upcoming.publish_at)

    async def test_sweep_job_swallows_failures(self) -> None:
        """Test a failing sweep is logged instead of killing the scheduler."""
        from services import background_scheduler

        manager = MagicMock()
        manager.sweep = AsyncMock(side_effect=RuntimeError("store down"))

        with patch.object(background_scheduler, "_build_lifecycle_manager", AsyncMock(return_value=manager)):
            assert await background_scheduler.sweep_job() is None

    def test_next_publish_not_armed_when_stopped(self) -> None:
        """Test nothing is scheduled while the scheduler is not running."""
        from services import background_scheduler

        scheduler = MagicMock()
        scheduler.running = False

        with patch.object(background_scheduler, "get_scheduler", return_value=scheduler):
            background_scheduler.schedule_next_publish(now_ms() + HOUR_MS)

        scheduler.add_job.assert_not_called()

    def test_next_publish_armed_as_one_shot(self) -> None:
        """Test the next publish time becomes a replaceable one-shot job."""
        from apscheduler.triggers.date import DateTrigger

        from services import background_scheduler

        scheduler = MagicMock()
        scheduler.running = True

        with patch.object(background_scheduler, "get_scheduler", return_value=scheduler):
            background_scheduler.schedule_next_publish(now_ms() + HOUR_MS)

        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == background_scheduler.NEXT_PUBLISH_JOB_ID
        assert kwargs["replace_existing"] is True
        assert isinstance(kwargs["trigger"], DateTrigger)
