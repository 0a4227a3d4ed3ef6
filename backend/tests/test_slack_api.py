"""Tests for Slack slash commands and interactivity endpoints."""

from __future__ import annotations

import json
import time
from datetime import date
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from slack_sdk.signature import SignatureVerifier

from status_sync.exceptions import SourceUnavailable
from status_sync.schemas.leave import Employee, LeaveType
from status_sync.services.leave_form import build_leave_request_view

if TYPE_CHECKING:
    from httpx import AsyncClient

    from status_sync.config import Settings
    from status_sync.services.peopleforce import InMemoryLeaveSource
    from status_sync.services.slack import InMemorySlackGateway

LEAVE_TYPES = [
    LeaveType(id=1, name="Vacation"),
    LeaveType(id=2, name="Sick Leave", requires_comment=True),
]


def _view(leave_type_id: str | None, start: str, end: str, comment: str = "") -> dict[str, Any]:
    view = build_leave_request_view(LEAVE_TYPES, selected_id=leave_type_id, today=date(2025, 11, 5))
    view.update(
        id="V42",
        hash="hash-1",
        state={
            "values": {
                "type_block": {"leave_type": {"selected_option": {"value": leave_type_id}}},
                "start_block": {"start_date": {"selected_date": start}},
                "end_block": {"end_date": {"selected_date": end}},
                "comment_block": {"comment": {"value": comment}},
            }
        },
    )
    return view


async def _interact(client: AsyncClient, payload: dict[str, Any]) -> Any:
    return await client.post("/slack/interactions", data={"payload": json.dumps(payload)})


# ---------------------------------------------------------------------------
# Slash commands
# ---------------------------------------------------------------------------


async def test_sync_command_acknowledges_and_reports(
    async_client: AsyncClient, slack: InMemorySlackGateway
) -> None:
    slack.seed("U1", "ana@example.com")

    response = await async_client.post("/slack/commands", data={"command": "/sync-statuses", "user_id": "U1"})

    assert response.status_code == 200
    assert response.json() == {"response_type": "ephemeral", "text": "🔄 Starting manual sync..."}
    [(channel, text)] = slack.messages
    assert channel == "U1"
    assert text.startswith("✅ Sync complete!")
    assert "• Updated: 0" in text


async def test_sync_command_reports_failure(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway
) -> None:
    leave_source.fail_with = SourceUnavailable("PeopleForce GET /leave_requests failed with 401: Unauthorized")

    response = await async_client.post("/slack/commands", data={"command": "/sync-statuses", "user_id": "U1"})

    assert response.status_code == 200
    [(_, text)] = slack.messages
    assert text == "❌ Sync failed: PeopleForce GET /leave_requests failed with 401: Unauthorized"


async def test_request_time_off_command_opens_modal(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway
) -> None:
    leave_source.leave_types = LEAVE_TYPES

    response = await async_client.post(
        "/slack/commands",
        data={"command": "/request-time-off", "user_id": "U1", "trigger_id": "13345224609.738474920.8088930838d88f008e0"},
    )

    assert response.status_code == 200
    assert response.content == b""
    [view] = slack.opened_views
    assert view["callback_id"] == "timeoff_request"


async def test_unknown_command(async_client: AsyncClient) -> None:
    response = await async_client.post("/slack/commands", data={"command": "/dance", "user_id": "U1"})

    assert response.status_code == 200
    assert response.json()["text"] == "Unknown command /dance"


async def test_signature_is_required_when_secret_set(async_client: AsyncClient, settings: Settings) -> None:
    settings.slack_signing_secret = "8f742231b10e8888abcd99yyyzzz85a5"

    response = await async_client.post("/slack/commands", data={"command": "/sync-statuses", "user_id": "U1"})

    assert response.status_code == 401


async def test_signed_request_is_accepted(
    async_client: AsyncClient, settings: Settings, slack: InMemorySlackGateway
) -> None:
    secret = "8f742231b10e8888abcd99yyyzzz85a5"
    settings.slack_signing_secret = secret
    body = urlencode({"command": "/sync-statuses", "user_id": "U1"})
    timestamp = str(int(time.time()))
    signature = SignatureVerifier(secret).generate_signature(timestamp=timestamp, body=body)

    response = await async_client.post(
        "/slack/commands",
        content=body.encode(),
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Slack-Request-Timestamp": timestamp,
            "X-Slack-Signature": signature,
        },
    )

    assert response.status_code == 200
    assert len(slack.messages) == 1


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------


async def test_end_before_start_returns_field_error(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource
) -> None:
    payload = {"type": "view_submission", "user": {"id": "U1"}, "view": _view("1", "2025-12-05", "2025-12-01")}

    response = await _interact(async_client, payload)

    assert response.status_code == 200
    assert response.json() == {
        "response_action": "errors",
        "errors": {"end_block": "End date must be on or after the start date."},
    }
    assert leave_source.calls == []


async def test_missing_required_comment_returns_field_error(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource
) -> None:
    payload = {"type": "view_submission", "user": {"id": "U1"}, "view": _view("2", "2025-12-01", "2025-12-02")}

    response = await _interact(async_client, payload)

    assert response.json()["errors"] == {"comment_block": "A comment is required for Sick Leave."}
    assert leave_source.calls == []


async def test_valid_submission_creates_request(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway
) -> None:
    slack.seed("U1", "ana@example.com")
    leave_source.seed_employee(Employee(id=7, email="ana@example.com"))
    payload = {
        "type": "view_submission",
        "user": {"id": "U1"},
        "view": _view("1", "2025-12-01", "2025-12-05", comment="Beach"),
    }

    response = await _interact(async_client, payload)

    assert response.status_code == 200
    assert response.content == b""
    [draft] = leave_source.created
    assert (draft.employee_id, draft.leave_type_id) == (7, 1)
    assert draft.starts_on == date(2025, 12, 1)
    assert draft.ends_on == date(2025, 12, 5)
    assert "Time-off request submitted" in slack.messages[0][1]


async def test_leave_type_change_refreshes_modal(async_client: AsyncClient, slack: InMemorySlackGateway) -> None:
    payload = {
        "type": "block_actions",
        "user": {"id": "U1"},
        "view": _view(None, "2025-12-01", "2025-12-05"),
        "actions": [{"action_id": "leave_type", "block_id": "type_block", "selected_option": {"value": "2"}}],
    }

    response = await _interact(async_client, payload)

    assert response.status_code == 200
    [(view_id, view)] = slack.updated_views
    assert view_id == "V42"
    blocks = {b["block_id"]: b for b in view["blocks"]}
    assert blocks["type_block"]["element"]["initial_option"]["value"] == "2"
    assert "optional" not in blocks["comment_block"]


async def test_other_block_actions_are_ignored(async_client: AsyncClient, slack: InMemorySlackGateway) -> None:
    payload = {
        "type": "block_actions",
        "view": _view("1", "2025-12-01", "2025-12-05"),
        "actions": [{"action_id": "start_date", "selected_date": "2025-12-02"}],
    }

    response = await _interact(async_client, payload)

    assert response.status_code == 200
    assert slack.updated_views == []


async def test_foreign_view_is_ignored(async_client: AsyncClient, leave_source: InMemoryLeaveSource) -> None:
    payload = {"type": "view_submission", "user": {"id": "U1"}, "view": {"callback_id": "something_else"}}

    response = await _interact(async_client, payload)

    assert response.status_code == 200
    assert leave_source.calls == []


async def test_invalid_payload_is_rejected(async_client: AsyncClient) -> None:
    response = await async_client.post("/slack/interactions", data={"payload": "{not json"})
    assert response.status_code == 400


async def test_non_object_payload_is_rejected(async_client: AsyncClient) -> None:
    response = await async_client.post("/slack/interactions", data={"payload": json.dumps(["view_submission"])})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid interaction payload"


async def test_submission_without_user_is_rejected(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource
) -> None:
    payload = {"type": "view_submission", "view": _view("1", "2025-12-01", "2025-12-05")}

    response = await _interact(async_client, payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Interaction payload has no user"
    assert leave_source.calls == []
