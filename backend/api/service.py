"""
API service entrypoint.
Runs the FastAPI application via uvicorn. The daily sync scheduler lives in
the same process, so a single worker is used whatever MC_API_WORKERS says.
PORT overrides the configured port when present.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def main() -> None:
    """Start the API service."""
    settings = get_settings()
    port = int(os.environ.get("PORT", settings.api_port))

    if settings.api_workers != 1 and settings.sync_schedule_enabled:
        logger.warning("api_workers_forced_single", requested=settings.api_workers)

    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=port,
        workers=1 if settings.sync_schedule_enabled else settings.api_workers,
        log_level=settings.log_level.lower(),
        access_log=False,  # We handle logging via middleware
        timeout_keep_alive=30,
    )


if __name__ == "__main__":
    main()
