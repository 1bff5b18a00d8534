"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for the background sweep scheduler and
Cosmos DB connections.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info(f"Starting {settings.APP_NAME} API...")

        from repositories.provider import is_cosmos_enabled

        if not is_cosmos_enabled():
            logger.warning("Cosmos DB is not configured; activity endpoints will be unavailable")
        elif settings.ENABLE_SWEEP_SCHEDULER:
            try:
                from services.background_scheduler import start_scheduler

                await start_scheduler()
                logger.info("Background scheduler started successfully")
            except Exception as e:
                logger.exception("Failed to start background scheduler", error=str(e))
                logger.warning("Scheduled activities will only publish when a sweep is requested")

        logger.info(f"{settings.APP_NAME} API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info(f"Shutting down {settings.APP_NAME} API...")

        try:
            from services.background_scheduler import stop_scheduler

            await stop_scheduler()
            logger.info("Background scheduler stopped")
        except Exception as e:
            logger.warning(f"Background scheduler cleanup failed: {e}")

        from db.cosmos_session import close_cosmos

        await close_cosmos()

        logger.info(f"{settings.APP_NAME} API shutdown complete")

    return stop_app
