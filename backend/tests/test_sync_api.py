"""Tests for the operator sync endpoint."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from status_sync.exceptions import SourceUnavailable
from status_sync.schemas.leave import LeaveRecord
from status_sync.schemas.slack import SlackStatus

if TYPE_CHECKING:
    from httpx import AsyncClient

    from status_sync.config import Settings
    from status_sync.services.peopleforce import InMemoryLeaveSource
    from status_sync.services.slack import InMemorySlackGateway


async def test_sync_returns_counts(
    async_client: AsyncClient, leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway
) -> None:
    slack.seed("U1", "ana@example.com")
    slack.seed("U2", "bo@example.com", status=SlackStatus(text="Sick till Nov 4", emoji=":face_with_thermometer:"))
    leave_source.seed(
        LeaveRecord(
            id=1,
            employee_email="ana@example.com",
            leave_type_name="Vacation",
            start_date=date(2025, 11, 3),
            end_date=date(2025, 11, 10),
        )
    )

    response = await async_client.post("/sync", params={"target_date": "2025-11-05"})

    assert response.status_code == 200
    data = response.json()
    assert data["target_date"] == "2025-11-05"
    assert (data["updated"], data["cleared"], data["skipped"], data["errors"]) == (1, 1, 0, 0)
    actions = {d["account_id"]: d["action"] for d in data["decisions"]}
    assert actions == {"U1": "SET", "U2": "CLEAR"}


async def test_sync_source_failure_returns_503(async_client: AsyncClient, leave_source: InMemoryLeaveSource) -> None:
    leave_source.fail_with = SourceUnavailable("PeopleForce GET /leave_requests failed: timed out")

    response = await async_client.post("/sync")

    assert response.status_code == 503
    data = response.json()
    assert data["error"] == "SourceUnavailable"
    assert "timed out" in data["detail"]


async def test_sync_rejects_invalid_date(async_client: AsyncClient) -> None:
    response = await async_client.post("/sync", params={"target_date": "next tuesday"})

    assert response.status_code == 422
    data = response.json()
    assert data["error"] == "RequestValidationError"
    assert data["field"] == "query.target_date"


async def test_sync_token_required_when_configured(async_client: AsyncClient, settings: Settings) -> None:
    settings.sync_api_token = "ops-token"

    missing = await async_client.post("/sync")
    wrong = await async_client.post("/sync", headers={"Authorization": "Bearer nope"})
    ok = await async_client.post("/sync", headers={"Authorization": "Bearer ops-token"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200
