from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from status_sync import config
from status_sync.config import Settings
from status_sync.main import app
from status_sync.services.directory import EmailOverrides, set_email_overrides
from status_sync.services.peopleforce import InMemoryLeaveSource, set_leave_source
from status_sync.services.slack import InMemorySlackGateway, set_slack_gateway

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


@pytest.fixture(autouse=True)
def settings() -> Iterator[Settings]:
    """Deterministic settings: UTC, no scheduler, no auth secrets."""
    test_settings = Settings(
        timezone="UTC",
        scheduler_enabled=False,
        sync_on_startup=False,
        slack_bot_token=None,
        slack_user_token=None,
        slack_signing_secret=None,
        peopleforce_api_key=None,
        sync_api_token=None,
        max_concurrency=4,
        leave_types_timeout_seconds=3.0,
    )
    config._settings = test_settings
    yield test_settings
    config._settings = None


@pytest.fixture(autouse=True)
def leave_source() -> Iterator[InMemoryLeaveSource]:
    source = InMemoryLeaveSource()
    set_leave_source(source)
    yield source
    set_leave_source(InMemoryLeaveSource())


@pytest.fixture(autouse=True)
def slack() -> Iterator[InMemorySlackGateway]:
    gateway = InMemorySlackGateway()
    set_slack_gateway(gateway)
    yield gateway
    set_slack_gateway(InMemorySlackGateway())


@pytest.fixture(autouse=True)
def overrides() -> Iterator[EmailOverrides]:
    email_overrides = EmailOverrides()
    set_email_overrides(email_overrides)
    yield email_overrides
    set_email_overrides(EmailOverrides())


@pytest.fixture
async def async_client() -> AsyncIterator[AsyncClient]:
    """Async HTTP client against the app. Background tasks finish before each call returns."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
