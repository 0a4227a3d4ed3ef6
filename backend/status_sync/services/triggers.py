"""Entry points that start a reconciliation pass and report its outcome."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from status_sync.services.reconcile import PassResult, run_reconciliation
from status_sync.services.slack import get_slack_gateway

if TYPE_CHECKING:
    from status_sync.schemas.sync import PeopleForceEvent

logger = logging.getLogger(__name__)


async def run_scheduled_sync() -> PassResult | None:
    """Timer trigger. Nobody awaits the outcome, so failures are only logged."""
    try:
        return await run_reconciliation()
    except Exception:
        logger.exception("Scheduled sync failed")
        return None


async def process_webhook_event(event: PeopleForceEvent) -> PassResult | None:
    """Webhook trigger, run after the delivery has been acknowledged."""
    if not event.is_leave_event:
        logger.info("Ignoring PeopleForce webhook event %r", event.event_type)
        return None

    payload = event.payload if isinstance(event.payload, dict) else {}
    logger.info(
        "PeopleForce webhook %s (leave request %s), triggering sync",
        event.event_type,
        payload.get("id"),
    )
    try:
        result = await run_reconciliation()
    except Exception:
        logger.exception("Webhook-triggered sync failed for event %s", event.event_type)
        return None
    logger.info(
        "Webhook sync complete: %d updated, %d cleared, %d errors",
        result.updated,
        result.cleared,
        result.errors,
    )
    return result


def format_result(result: PassResult) -> str:
    return f"✅ Sync complete!\n\n• Updated: {result.updated}\n• Cleared: {result.cleared}\n• Errors: {result.errors}"


async def run_manual_sync(user_id: str) -> PassResult | None:
    """/sync-statuses trigger: DM the invoker the counts or the failure."""
    slack = get_slack_gateway()
    try:
        result = await run_reconciliation()
    except Exception as exc:
        logger.exception("Manual sync requested by %s failed", user_id)
        await slack.post_message(user_id, f"❌ Sync failed: {exc}")
        return None
    await slack.post_message(user_id, format_result(result))
    return result
