"""Worker process for scheduled status syncs.

Runs one pass at startup and then one at every instant of the configured
cron expression (SYNC_CRON, every 15 minutes by default). The HTTP app
starts the same loop as a background task; this module also runs it
standalone.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from croniter import croniter

from status_sync.config import get_settings
from status_sync.services.reconcile import get_zone
from status_sync.services.triggers import run_scheduled_sync

logger = logging.getLogger(__name__)


def seconds_until_next(expression: str, now: datetime) -> float:
    """Seconds from `now` to the next instant matching `expression`."""
    next_run = croniter(expression, now).get_next(datetime)
    return max((next_run - now).total_seconds(), 0.0)


async def run_sync_loop(expression: str | None = None, *, run_on_startup: bool | None = None) -> None:
    """Main worker loop. Never returns; cancel the task to stop it."""
    settings = get_settings()
    expression = expression or settings.sync_cron
    if run_on_startup is None:
        run_on_startup = settings.sync_on_startup
    if not croniter.is_valid(expression):
        msg = f"Invalid SYNC_CRON expression: {expression!r}"
        raise ValueError(msg)

    logger.info("Sync worker started (cron: %s)", expression)
    if run_on_startup:
        await run_scheduled_sync()

    while True:
        # Recomputed from the clock each time so an overrunning pass skips
        # missed slots instead of firing them back to back.
        delay = seconds_until_next(expression, datetime.now(get_zone()))
        logger.debug("Next scheduled sync in %.0fs", delay)
        await asyncio.sleep(delay)
        logger.info("Running scheduled sync")
        await run_scheduled_sync()


def start_sync_task() -> asyncio.Task[None]:
    """Start the loop on the running event loop."""
    return asyncio.create_task(run_sync_loop(), name="status-sync-scheduler")


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def main() -> None:
    """Entry point for the worker process."""
    from status_sync.main import configure_services

    configure_logging()
    configure_services(get_settings())
    asyncio.run(run_sync_loop())


if __name__ == "__main__":
    main()
