"""feedback-buffer FastAPI application."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from .api import api_router
from .core.config import settings
from .core.logging_config import setup_logging
from .services.sync_coordinator import SyncCoordinator


def create_app(coordinator: SyncCoordinator | None = None) -> FastAPI:
    """Build the API; pass ``coordinator`` to reuse an existing one (tests, embedding hosts)."""
    setup_logging()
    logger = logging.getLogger(__name__)

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        """Provide a friendly landing response for the bare hostname."""

        return {
            "message": (
                "feedback-buffer is online. Try GET "
                f"{settings.api_prefix}/pending/count for the pending report badge."
            )
        }

    @app.on_event("startup")
    async def _start_buffer() -> None:
        app.state.coordinator = coordinator or SyncCoordinator.from_settings(settings)
        app.state.coordinator.start_auto_sync()
        logger.info("Submission buffer ready (database=%s)", settings.database_url)

    @app.on_event("shutdown")
    async def _stop_buffer() -> None:
        await app.state.coordinator.aclose()

    return app


app = create_app()
