from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from status_sync.api.health import router as health_router
from status_sync.api.router import api_router
from status_sync.config import Settings, get_settings
from status_sync.exceptions import setup_exception_handlers
from status_sync.services.peopleforce import PeopleForceClient, set_leave_source
from status_sync.services.slack import SlackWebGateway, set_slack_gateway
from status_sync.worker import configure_logging, start_sync_task

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def configure_services(settings: Settings) -> None:
    """Install the real PeopleForce and Slack clients when credentials are set.

    Without credentials the in-memory stand-ins stay installed, which is what
    local development and tests run against.
    """
    if settings.peopleforce_api_key:
        set_leave_source(
            PeopleForceClient(
                settings.peopleforce_api_url,
                settings.peopleforce_api_key,
                timeout=settings.peopleforce_timeout_seconds,
            )
        )
    else:
        logger.warning("PEOPLEFORCE_API_KEY is not set, using the in-memory leave source")

    if settings.slack_bot_token:
        set_slack_gateway(SlackWebGateway.from_tokens(settings.slack_bot_token, settings.slack_user_token))
    else:
        logger.warning("SLACK_BOT_TOKEN is not set, using the in-memory Slack gateway")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()
    configure_logging()
    configure_services(settings)
    print(f"Starting {settings.app_name} v{settings.app_version} [{settings.environment}] on port {settings.port}")

    scheduler: asyncio.Task[None] | None = None
    if settings.scheduler_enabled:
        scheduler = start_sync_task()
    yield
    if scheduler is not None:
        scheduler.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler
    print(f"Shutting down {settings.app_name}")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()


def run() -> None:
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run("status_sync.main:app", host="0.0.0.0", port=get_settings().port)  # noqa: S104


if __name__ == "__main__":
    run()
