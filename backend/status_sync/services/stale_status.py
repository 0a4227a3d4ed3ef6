"""Decide whether a status the service may have set is now stale.

Nothing records which statuses this service wrote, so authorship is
approximated from the status content and then confirmed against
PeopleForce before anything is cleared. A leave type whose name carries
none of the keywords is never cleared by the sweep; its expiration still
removes it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from status_sync.exceptions import SourceUnavailable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import date

    from status_sync.schemas.leave import LeaveRecord
    from status_sync.schemas.slack import SlackStatus
    from status_sync.services.peopleforce import LeaveSource

logger = logging.getLogger(__name__)

LEAVE_STATUS_KEYWORDS = (
    "vacation",
    "sick",
    "leave",
    "time off",
    "holiday",
    "personal",
    "maternity",
    "paternity",
    "till",
)


def looks_leave_related(status: SlackStatus) -> bool:
    """True when the status has an emoji or mentions a leave keyword."""
    if status.emoji:
        return True
    text = status.text.lower()
    return any(keyword in text for keyword in LEAVE_STATUS_KEYWORDS)


class StaleStatusDetector:
    """Keyword heuristic plus a fresh PeopleForce re-query.

    The re-query runs once per pass, on the first candidate, and is shared by
    every later candidate. If it fails, `has_active_leave` keeps raising so
    that nothing is cleared on unconfirmed data.
    """

    def __init__(
        self,
        source: LeaveSource,
        today: date,
        email_for: Callable[[LeaveRecord], Awaitable[str | None]],
    ) -> None:
        self._source = source
        self._today = today
        self._email_for = email_for
        self._lock = asyncio.Lock()
        self._active_emails: set[str] | None = None
        self._failure: Exception | None = None

    @property
    def confirmation_failed(self) -> bool:
        return self._failure is not None

    def looks_leave_related(self, status: SlackStatus) -> bool:
        return looks_leave_related(status)

    async def _load(self) -> set[str]:
        records = await self._source.fetch_active_approved_leave(self._today)
        emails: set[str] = set()
        for record in records:
            email = await self._email_for(record)
            if email:
                emails.add(email.lower())
        return emails

    async def has_active_leave(self, email: str) -> bool:
        async with self._lock:
            if self._failure is not None:
                raise self._failure
            if self._active_emails is None:
                try:
                    self._active_emails = await self._load()
                except SourceUnavailable as exc:
                    logger.exception("Could not confirm active leave for %s, skipping clears", self._today)
                    self._failure = exc
                    raise
                except Exception as exc:
                    logger.exception("Could not confirm active leave for %s, skipping clears", self._today)
                    self._failure = SourceUnavailable(f"Leave confirmation failed: {exc}")
                    raise self._failure from exc
        return email.lower() in self._active_emails
