"""PeopleForce webhook receiver."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Request, status
from fastapi.responses import PlainTextResponse

from status_sync.exceptions import AppError
from status_sync.schemas.sync import PeopleForceEvent
from status_sync.services.triggers import process_webhook_event

logger = logging.getLogger(__name__)

webhook_router = APIRouter(
    prefix="/webhook",
    tags=["webhooks"],
)


@webhook_router.post("/peopleforce", response_class=PlainTextResponse)
async def peopleforce_webhook(request: Request, background_tasks: BackgroundTasks) -> PlainTextResponse:
    """Acknowledge a PeopleForce delivery and sync after responding.

    PeopleForce gives up on slow receivers, so the pass runs as a background
    task once the 200 has been sent; its errors are only logged.
    """
    raw = await request.body()
    try:
        body = json.loads(raw)
    except ValueError as exc:
        logger.warning("Rejected PeopleForce webhook with a non-JSON body")
        raise AppError("Invalid JSON", status_code=status.HTTP_400_BAD_REQUEST) from exc
    if not isinstance(body, dict):
        raise AppError("Webhook body must be a JSON object", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        event = PeopleForceEvent.from_body(body)
        logger.info("Received PeopleForce webhook: %s", event.event_type)
        background_tasks.add_task(process_webhook_event, event)
    except Exception as exc:
        logger.exception("Error handling PeopleForce webhook")
        raise AppError("Error processing webhook") from exc

    return PlainTextResponse("OK")
