"""Tests for service wiring and the force-sync command."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

from status_sync.config import Settings
from status_sync.exceptions import SourceUnavailable
from status_sync.force_sync import force_sync
from status_sync.main import configure_services
from status_sync.schemas.leave import LeaveRecord
from status_sync.services.peopleforce import InMemoryLeaveSource, PeopleForceClient, get_leave_source
from status_sync.services.slack import InMemorySlackGateway, SlackWebGateway, get_slack_gateway

if TYPE_CHECKING:
    import pytest


def test_configure_services_without_credentials_keeps_stubs() -> None:
    configure_services(Settings(peopleforce_api_key=None, slack_bot_token=None))

    assert isinstance(get_leave_source(), InMemoryLeaveSource)
    assert isinstance(get_slack_gateway(), InMemorySlackGateway)


def test_configure_services_installs_real_clients() -> None:
    configure_services(
        Settings(
            peopleforce_api_key="pf-key",
            peopleforce_api_url="https://pf.test/api/public/v3/",
            slack_bot_token="xoxb-test",
            slack_user_token="xoxp-test",
        )
    )

    source = get_leave_source()
    gateway = get_slack_gateway()
    assert isinstance(source, PeopleForceClient)
    assert source.base_url == "https://pf.test/api/public/v3"
    assert isinstance(gateway, SlackWebGateway)
    assert gateway.user_client is not gateway.bot_client


def test_bot_token_alone_is_used_for_writes() -> None:
    configure_services(Settings(peopleforce_api_key=None, slack_bot_token="xoxb-test", slack_user_token=None))

    gateway = get_slack_gateway()
    assert isinstance(gateway, SlackWebGateway)
    assert gateway.user_client is gateway.bot_client


async def test_force_sync_prints_counts(
    leave_source: InMemoryLeaveSource, slack: InMemorySlackGateway, capsys: pytest.CaptureFixture[str]
) -> None:
    slack.seed("U1", "ana@example.com")
    leave_source.seed(
        LeaveRecord(
            id=1,
            employee_email="ana@example.com",
            leave_type_name="Vacation",
            start_date=date(2025, 11, 3),
            end_date=date(2025, 11, 10),
        )
    )

    exit_code = await force_sync(date(2025, 11, 5))

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Sync results for 2025-11-05:" in out
    assert "Updated: 1 status(es)" in out


async def test_force_sync_failure_exit_code(
    leave_source: InMemoryLeaveSource, capsys: pytest.CaptureFixture[str]
) -> None:
    leave_source.fail_with = SourceUnavailable("PeopleForce GET /leave_requests failed: timed out")

    exit_code = await force_sync(date(2025, 11, 5))

    assert exit_code == 1
    assert "Force sync failed: PeopleForce GET /leave_requests failed: timed out" in capsys.readouterr().out
