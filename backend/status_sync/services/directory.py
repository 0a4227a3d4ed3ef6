"""Email <-> Slack account directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from status_sync.schemas.slack import Directory

if TYPE_CHECKING:
    from status_sync.services.slack import SlackGateway

logger = logging.getLogger(__name__)


class EmailOverrides:
    """Email -> account associations confirmed through the leave form.

    Process-scoped and append-only; lost on restart. The roster listing
    stays the primary source, these entries only fill its gaps.
    """

    def __init__(self) -> None:
        self._by_email: dict[str, str] = {}

    def remember(self, email: str, account_id: str) -> None:
        self._by_email[email.lower()] = account_id

    def snapshot(self) -> dict[str, str]:
        return dict(self._by_email)

    def __len__(self) -> int:
        return len(self._by_email)


async def resolve_directory(slack: SlackGateway, overrides: EmailOverrides | None = None) -> Directory:
    """Build the directory from one full roster listing plus overrides.

    Raises SourceUnavailable if the roster cannot be listed.
    """
    directory = Directory()
    for user in await slack.list_users():
        if user.deleted or user.is_bot or not user.email:
            continue
        email = user.email.lower()
        if email in directory.by_email:
            logger.warning("Email %s is shared by %s and %s, keeping the first", email, directory.by_email[email], user.id)
            continue
        directory.by_email[email] = user.id
        directory.by_account[user.id] = email

    if overrides is not None:
        for email, account_id in overrides.snapshot().items():
            directory.by_email.setdefault(email, account_id)

    logger.debug("Directory resolved: %d roster accounts, %d emails", len(directory.by_account), len(directory.by_email))
    return directory


_email_overrides = EmailOverrides()


def get_email_overrides() -> EmailOverrides:
    return _email_overrides


def set_email_overrides(overrides: EmailOverrides) -> None:
    """Replace the override map (for testing)."""
    global _email_overrides
    _email_overrides = overrides
