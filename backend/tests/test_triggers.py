"""Tests for the sync triggers and webhook event parsing."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from status_sync.exceptions import SourceUnavailable
from status_sync.schemas.sync import PeopleForceEvent
from status_sync.services.reconcile import PassResult
from status_sync.services.triggers import (
    format_result,
    process_webhook_event,
    run_manual_sync,
    run_scheduled_sync,
)

if TYPE_CHECKING:
    from status_sync.services.peopleforce import InMemoryLeaveSource
    from status_sync.services.slack import InMemorySlackGateway


# ---------------------------------------------------------------------------
# PeopleForceEvent
# ---------------------------------------------------------------------------


def test_event_type_alias_order() -> None:
    event = PeopleForceEvent.from_body({"type": "ping", "action": "leave_request.approved"})
    assert event.event_type == "leave_request.approved"


def test_event_payload_aliases() -> None:
    assert PeopleForceEvent.from_body({"event": "x", "data": {"id": 1}}).payload == {"id": 1}
    assert PeopleForceEvent.from_body({"event": "x", "leave_request": {"id": 2}}).payload == {"id": 2}


def test_event_payload_defaults_to_body() -> None:
    body = {"event": "leave_request.created", "id": 5}
    assert PeopleForceEvent.from_body(body).payload == body


def test_leave_event_detection() -> None:
    assert PeopleForceEvent.from_body({"action": "leave_request.approved"}).is_leave_event
    assert PeopleForceEvent.from_body({"topic": "TIME_OFF.created"}).is_leave_event
    assert not PeopleForceEvent.from_body({"event": "employee.updated"}).is_leave_event
    assert not PeopleForceEvent.from_body({}).is_leave_event


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


async def test_scheduled_sync_returns_result() -> None:
    result = await run_scheduled_sync()
    assert isinstance(result, PassResult)


async def test_scheduled_sync_swallows_failures(leave_source: InMemoryLeaveSource) -> None:
    leave_source.fail_with = SourceUnavailable("down")
    assert await run_scheduled_sync() is None


async def test_webhook_event_ignored_without_leave_type(leave_source: InMemoryLeaveSource) -> None:
    result = await process_webhook_event(PeopleForceEvent(event_type="employee.created"))

    assert result is None
    assert leave_source.calls == []


async def test_webhook_event_runs_pass(leave_source: InMemoryLeaveSource) -> None:
    result = await process_webhook_event(PeopleForceEvent(event_type="leave_request.withdrawn", payload={"id": 1}))

    assert result is not None
    assert "fetch_approved_leave" in leave_source.calls


async def test_webhook_event_failure_is_logged_not_raised(leave_source: InMemoryLeaveSource) -> None:
    leave_source.fail_with = SourceUnavailable("down")
    assert await process_webhook_event(PeopleForceEvent(event_type="leave_request.approved")) is None


async def test_manual_sync_reports_counts(slack: InMemorySlackGateway) -> None:
    result = await run_manual_sync("U7")

    assert result is not None
    assert slack.messages == [("U7", format_result(result))]


async def test_manual_sync_reports_failure(leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway) -> None:
    leave_source.fail_with = SourceUnavailable("PeopleForce GET /leave_requests failed: timed out")

    assert await run_manual_sync("U7") is None
    assert slack.messages == [("U7", "❌ Sync failed: PeopleForce GET /leave_requests failed: timed out")]


def test_format_result() -> None:
    result = PassResult(target_date=date(2025, 11, 5), updated=3, cleared=1, errors=2)
    assert format_result(result) == "✅ Sync complete!\n\n• Updated: 3\n• Cleared: 1\n• Errors: 2"
