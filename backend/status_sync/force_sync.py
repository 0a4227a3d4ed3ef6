"""Run one sync pass from a shell.

Run with:  python -m status_sync.force_sync [YYYY-MM-DD]
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date

from status_sync.config import get_settings
from status_sync.main import configure_services
from status_sync.services.reconcile import run_reconciliation
from status_sync.worker import configure_logging

logger = logging.getLogger(__name__)


async def force_sync(target_date: date | None = None) -> int:
    """Run a pass and print its counts. Returns the process exit code."""
    try:
        result = await run_reconciliation(target_date)
    except Exception as exc:
        logger.exception("Force sync failed")
        print(f"Force sync failed: {exc}")
        return 1

    print(f"Sync results for {result.target_date}:")
    print(f"  Updated: {result.updated} status(es)")
    print(f"  Cleared: {result.cleared} status(es)")
    print(f"  Skipped: {result.skipped} leave request(s)")
    print(f"  Errors:  {result.errors}")
    if result.updated == 0 and result.cleared == 0:
        print("No statuses changed: no active leave, no matching Slack users, or everything is current.")
    return 1 if result.errors else 0


def main() -> None:
    """Entry point for the force-sync command."""
    configure_logging()
    configure_services(get_settings())
    target_date = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else None
    sys.exit(asyncio.run(force_sync(target_date)))


if __name__ == "__main__":
    main()
