"""Slack slash commands and interactivity."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status

from status_sync.api.deps import verify_slack_request
from status_sync.exceptions import AppError, ValidationFailed
from status_sync.services.leave_form import (
    CALLBACK_ID,
    TYPE_ACTION,
    TYPE_BLOCK,
    find_leave_type,
    leave_types_from_view,
    open_leave_request_form,
    parse_submission,
    refresh_leave_request_form,
    submit_leave_request,
    validate_submission,
)
from status_sync.services.triggers import run_manual_sync

logger = logging.getLogger(__name__)

REQUEST_TIME_OFF_COMMAND = "/request-time-off"
SYNC_STATUSES_COMMAND = "/sync-statuses"

slack_router = APIRouter(
    prefix="/slack",
    tags=["slack"],
    dependencies=[Depends(verify_slack_request)],
)


def _ephemeral(text: str) -> dict[str, Any]:
    return {"response_type": "ephemeral", "text": text}


@slack_router.post("/commands", response_model=None)
async def slack_command(request: Request, background_tasks: BackgroundTasks) -> Response | dict[str, Any]:
    """Acknowledge a slash command within Slack's 3s budget and do the work after."""
    form = await request.form()
    command = form.get("command")
    user_id = str(form.get("user_id") or "")
    logger.info("Slash command %s from %s", command, user_id)

    if command == REQUEST_TIME_OFF_COMMAND:
        background_tasks.add_task(open_leave_request_form, str(form.get("trigger_id") or ""), user_id)
        return Response(status_code=status.HTTP_200_OK)

    if command == SYNC_STATUSES_COMMAND:
        background_tasks.add_task(run_manual_sync, user_id)
        return _ephemeral("🔄 Starting manual sync...")

    return _ephemeral(f"Unknown command {command}")


@slack_router.post("/interactions", response_model=None)
async def slack_interaction(request: Request, background_tasks: BackgroundTasks) -> Response | dict[str, Any]:
    """Handle leave form selection changes and submissions."""
    form = await request.form()
    try:
        payload = json.loads(str(form.get("payload") or ""))
    except ValueError as exc:
        raise AppError("Invalid interaction payload", status_code=status.HTTP_400_BAD_REQUEST) from exc
    if not isinstance(payload, dict):
        raise AppError("Invalid interaction payload", status_code=status.HTTP_400_BAD_REQUEST)

    view = payload.get("view")
    if not isinstance(view, dict) or view.get("callback_id") != CALLBACK_ID:
        logger.debug("Ignoring %s interaction outside the time-off modal", payload.get("type"))
        return Response(status_code=status.HTTP_200_OK)

    if payload.get("type") == "block_actions":
        action = next((a for a in payload.get("actions", []) if a.get("action_id") == TYPE_ACTION), None)
        if action is not None:
            selected_id = (action.get("selected_option") or {}).get("value")
            background_tasks.add_task(refresh_leave_request_form, view, selected_id)
        return Response(status_code=status.HTTP_200_OK)

    if payload.get("type") == "view_submission":
        submission = parse_submission(view)
        leave_type = find_leave_type(leave_types_from_view(view), submission.leave_type_id)
        try:
            validate_submission(submission, leave_type)
        except ValidationFailed as exc:
            return {"response_action": "errors", "errors": {exc.field or TYPE_BLOCK: exc.message}}
        user_id = (payload.get("user") or {}).get("id")
        if not user_id:
            raise AppError("Interaction payload has no user", status_code=status.HTTP_400_BAD_REQUEST)
        background_tasks.add_task(submit_leave_request, user_id, submission, leave_type)
        return Response(status_code=status.HTTP_200_OK)

    return Response(status_code=status.HTTP_200_OK)
