"""Slack Web API gateway and an in-memory stand-in."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from status_sync.exceptions import AccountMutationFailed, PermissionDegraded, SourceUnavailable
from status_sync.schemas.slack import SlackStatus, SlackUser, StatusPresentation

logger = logging.getLogger(__name__)

# Error codes meaning "this token may not do that", as opposed to a failure.
CAPABILITY_ERRORS = frozenset(
    {
        "not_allowed_token_type",
        "missing_scope",
        "no_permission",
        "user_not_visible",
        "access_denied",
    }
)

USERS_PAGE_SIZE = 200


def _error_code(exc: SlackApiError) -> str:
    """Slack's error code, or the exception text when the body was not JSON."""
    data = getattr(exc.response, "data", None)
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return str(exc)


@runtime_checkable
class SlackGateway(Protocol):
    """Interface for the Slack operations the service needs."""

    async def list_users(self) -> list[SlackUser]:
        """List every workspace member."""
        ...

    async def get_status(self, account_id: str) -> SlackStatus:
        """Read a member's current custom status."""
        ...

    async def set_status(self, account_id: str, presentation: StatusPresentation) -> None:
        """Set a member's custom status."""
        ...

    async def clear_status(self, account_id: str) -> None:
        """Remove a member's custom status."""
        ...

    async def get_user_email(self, account_id: str) -> str | None:
        """Return the profile email of a member, if any."""
        ...

    async def post_message(self, channel: str, text: str) -> None:
        """Post a message; a user ID as channel sends a DM."""
        ...

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> None:
        """Open a modal."""
        ...

    async def update_view(self, view_id: str, view: dict[str, Any], view_hash: str | None = None) -> None:
        """Replace an open modal."""
        ...


class SlackWebGateway:
    """Gateway over slack_sdk's AsyncWebClient.

    Status writes go through the user client: users.profile.set on another
    member requires a user token with users.profile:write.
    """

    def __init__(self, bot_client: AsyncWebClient, user_client: AsyncWebClient | None = None) -> None:
        self.bot_client = bot_client
        self.user_client = user_client or bot_client

    @classmethod
    def from_tokens(cls, bot_token: str, user_token: str | None = None) -> SlackWebGateway:
        bot_client = AsyncWebClient(token=bot_token, timeout=30)
        user_client = AsyncWebClient(token=user_token, timeout=30) if user_token else bot_client
        return cls(bot_client, user_client)

    async def list_users(self) -> list[SlackUser]:
        users: list[SlackUser] = []
        try:
            async for page in await self.bot_client.users_list(limit=USERS_PAGE_SIZE):
                for member in page.get("members", []):
                    profile = member.get("profile") or {}
                    users.append(
                        SlackUser(
                            id=member["id"],
                            email=profile.get("email"),
                            is_bot=bool(member.get("is_bot")) or member.get("id") == "USLACKBOT",
                            deleted=bool(member.get("deleted")),
                        )
                    )
        except SlackApiError as exc:
            msg = f"Slack users.list failed: {_error_code(exc)}"
            raise SourceUnavailable(msg) from exc
        return users

    async def get_status(self, account_id: str) -> SlackStatus:
        try:
            response = await self.bot_client.users_profile_get(user=account_id)
        except SlackApiError as exc:
            code = _error_code(exc)
            if code in CAPABILITY_ERRORS:
                raise PermissionDegraded(account_id, code) from exc
            raise
        profile = response.get("profile") or {}
        return SlackStatus(
            text=profile.get("status_text") or "",
            emoji=profile.get("status_emoji") or "",
            expiration=profile.get("status_expiration") or 0,
        )

    async def _write_profile(self, account_id: str, profile: dict[str, Any]) -> None:
        try:
            await self.user_client.users_profile_set(user=account_id, profile=profile)
        except SlackApiError as exc:
            code = _error_code(exc)
            if code == "not_allowed_token_type":
                logger.error("Status writes need a user token with users.profile:write (SLACK_USER_TOKEN)")
            raise AccountMutationFailed(account_id, code) from exc

    async def set_status(self, account_id: str, presentation: StatusPresentation) -> None:
        await self._write_profile(
            account_id,
            {
                "status_text": presentation.text,
                "status_emoji": presentation.emoji,
                "status_expiration": presentation.expiration,
            },
        )

    async def clear_status(self, account_id: str) -> None:
        await self._write_profile(account_id, {"status_text": "", "status_emoji": "", "status_expiration": 0})

    async def get_user_email(self, account_id: str) -> str | None:
        response = await self.bot_client.users_info(user=account_id)
        profile = (response.get("user") or {}).get("profile") or {}
        return profile.get("email")

    async def post_message(self, channel: str, text: str) -> None:
        await self.bot_client.chat_postMessage(channel=channel, text=text)

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> None:
        await self.bot_client.views_open(trigger_id=trigger_id, view=view)

    async def update_view(self, view_id: str, view: dict[str, Any], view_hash: str | None = None) -> None:
        if view_hash:
            await self.bot_client.views_update(view_id=view_id, view=view, hash=view_hash)
        else:
            await self.bot_client.views_update(view_id=view_id, view=view)


class InMemorySlackGateway:
    """In-memory stub implementation for development and tests."""

    def __init__(self) -> None:
        self.users: dict[str, SlackUser] = {}
        self.statuses: dict[str, SlackStatus] = {}
        self.messages: list[tuple[str, str]] = []
        self.opened_views: list[dict[str, Any]] = []
        self.updated_views: list[tuple[str, dict[str, Any]]] = []
        self.set_calls: list[str] = []
        self.clear_calls: list[str] = []
        self.unreadable: set[str] = set()
        self.failing_writes: set[str] = set()
        self.fail_list: bool = False
        self.fail_open_view: bool = False

    def seed(self, account_id: str, email: str | None, status: SlackStatus | None = None, **flags: bool) -> None:
        """Seed a workspace member for testing."""
        self.users[account_id] = SlackUser(id=account_id, email=email, **flags)
        if status is not None:
            self.statuses[account_id] = status

    async def list_users(self) -> list[SlackUser]:
        if self.fail_list:
            msg = "Slack users.list failed: ratelimited"
            raise SourceUnavailable(msg)
        return list(self.users.values())

    async def get_status(self, account_id: str) -> SlackStatus:
        if account_id in self.unreadable:
            raise PermissionDegraded(account_id, "not_allowed_token_type")
        return self.statuses.get(account_id, SlackStatus())

    async def set_status(self, account_id: str, presentation: StatusPresentation) -> None:
        self.set_calls.append(account_id)
        if account_id in self.failing_writes:
            raise AccountMutationFailed(account_id, "not_allowed_token_type")
        self.statuses[account_id] = SlackStatus(
            text=presentation.text,
            emoji=presentation.emoji,
            expiration=presentation.expiration,
        )

    async def clear_status(self, account_id: str) -> None:
        self.clear_calls.append(account_id)
        if account_id in self.failing_writes:
            raise AccountMutationFailed(account_id, "not_allowed_token_type")
        self.statuses[account_id] = SlackStatus()

    async def get_user_email(self, account_id: str) -> str | None:
        user = self.users.get(account_id)
        return user.email if user else None

    async def post_message(self, channel: str, text: str) -> None:
        self.messages.append((channel, text))

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> None:
        if self.fail_open_view:
            msg = "expired_trigger_id"
            raise RuntimeError(msg)
        self.opened_views.append(view)

    async def update_view(self, view_id: str, view: dict[str, Any], view_hash: str | None = None) -> None:
        self.updated_views.append((view_id, view))


_slack_gateway: SlackGateway = InMemorySlackGateway()


def get_slack_gateway() -> SlackGateway:
    """Return the installed Slack gateway."""
    return _slack_gateway


def set_slack_gateway(gateway: SlackGateway) -> None:
    """Override the gateway (for testing or production wiring)."""
    global _slack_gateway
    _slack_gateway = gateway
