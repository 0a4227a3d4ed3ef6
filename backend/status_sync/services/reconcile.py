"""Reconciliation engine: align Slack statuses with PeopleForce leave.

A pass runs four phases in order:

1. Gather:      active approved leave for today and the email directory.
2. Match & Set: one SET per account with active leave.
3. Sweep:       clear leave-looking statuses nobody is on leave for.
4. Report:      return the counts.

No state survives a pass; everything is recomputed from both systems.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from status_sync.config import get_settings
from status_sync.exceptions import PermissionDegraded, SourceUnavailable
from status_sync.models.enums import StatusAction
from status_sync.schemas.slack import StatusDecision
from status_sync.services.directory import get_email_overrides, resolve_directory
from status_sync.services.peopleforce import get_leave_source
from status_sync.services.presenter import present
from status_sync.services.slack import get_slack_gateway
from status_sync.services.stale_status import StaleStatusDetector

if TYPE_CHECKING:
    from status_sync.schemas.leave import LeaveRecord
    from status_sync.schemas.slack import Directory
    from status_sync.services.peopleforce import LeaveSource
    from status_sync.services.slack import SlackGateway

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Summary of one reconciliation pass."""

    target_date: date
    updated: int = 0
    cleared: int = 0
    skipped: int = 0
    errors: int = 0
    decisions: list[StatusDecision] = field(default_factory=list)


def get_zone() -> ZoneInfo | None:
    """Configured time zone, or None for the host's local zone."""
    name = get_settings().timezone
    return ZoneInfo(name) if name else None


def local_today() -> date:
    return datetime.now(get_zone()).date()


class _EmployeeEmails:
    """Per-pass cache of employee ID -> email lookups."""

    def __init__(self, source: LeaveSource) -> None:
        self._source = source
        self._cache: dict[str, str | None] = {}

    async def email_for(self, record: LeaveRecord) -> str | None:
        if record.employee_email:
            return record.employee_email.lower()
        if record.employee_id is None:
            return None
        key = str(record.employee_id)
        if key not in self._cache:
            employee = await self._source.get_employee(record.employee_id)
            email = employee.primary_email if employee else None
            self._cache[key] = email.lower() if email else None
        return self._cache[key]


async def _match_records(
    records: list[LeaveRecord],
    directory: Directory,
    emails: _EmployeeEmails,
    result: PassResult,
) -> dict[str, LeaveRecord]:
    """Map active records to Slack accounts. One record per account."""
    matched: dict[str, LeaveRecord] = {}
    for record in records:
        try:
            email = await emails.email_for(record)
        except Exception:
            logger.exception("Employee lookup failed for leave request %s", record.id)
            result.errors += 1
            continue
        if not email:
            logger.warning("No email for leave request %s (employee %s), skipping", record.id, record.employee_id)
            result.skipped += 1
            continue
        account_id = directory.account_for(email)
        if account_id is None:
            logger.warning("No Slack account for %s (leave request %s), skipping", email, record.id)
            result.skipped += 1
            continue
        current = matched.get(account_id)
        # Overlapping requests for one person: show the one ending last.
        if current is None or record.end_date > current.end_date:
            matched[account_id] = record
    return matched


async def _apply_set(
    slack: SlackGateway,
    account_id: str,
    record: LeaveRecord,
    semaphore: asyncio.Semaphore,
    covered: set[str],
    result: PassResult,
) -> None:
    presentation = present(record, get_zone())
    covered.add(account_id)
    result.decisions.append(StatusDecision(account_id=account_id, action=StatusAction.SET, presentation=presentation))
    async with semaphore:
        try:
            await slack.set_status(account_id, presentation)
        except Exception:
            logger.exception("Failed to set status for %s (leave request %s)", account_id, record.id)
            result.errors += 1
            return
    logger.info("Set status for %s: %s %s", account_id, presentation.emoji, presentation.text)
    result.updated += 1


async def _sweep_account(
    slack: SlackGateway,
    account_id: str,
    email: str,
    detector: StaleStatusDetector,
    semaphore: asyncio.Semaphore,
    result: PassResult,
) -> None:
    action = StatusAction.NONE
    async with semaphore:
        try:
            status = await slack.get_status(account_id)
            if detector.looks_leave_related(status) and not await detector.has_active_leave(email):
                action = StatusAction.CLEAR
                await slack.clear_status(account_id)
                logger.info("Cleared status for %s (%s): leave ended or was withdrawn", account_id, email)
                result.cleared += 1
        except PermissionDegraded:
            logger.debug("Cannot read status of %s with the configured token, skipping", account_id)
        except SourceUnavailable:
            # Counted once for the pass via detector.confirmation_failed.
            pass
        except Exception:
            logger.exception("Failed to sweep status for %s", account_id)
            result.errors += 1
    result.decisions.append(StatusDecision(account_id=account_id, action=action))


async def run_reconciliation(today: date | None = None) -> PassResult:
    """Run one full reconciliation pass.

    Per-account failures are counted in `errors` and never stop the pass.
    Raises SourceUnavailable when PeopleForce or the Slack roster cannot be
    read, since an empty pass from missing data must not look like a pass
    with nothing to do.
    """
    if today is None:
        today = local_today()

    settings = get_settings()
    source = get_leave_source()
    slack = get_slack_gateway()
    result = PassResult(target_date=today)

    try:
        active_leave = await source.fetch_active_approved_leave(today)
        directory = await resolve_directory(slack, get_email_overrides())
    except SourceUnavailable:
        raise
    except Exception as exc:
        msg = f"Gather failed: {exc}"
        raise SourceUnavailable(msg) from exc
    logger.info(
        "Sync pass for %s: %d active leave request(s), %d Slack account(s)",
        today,
        len(active_leave),
        len(directory.by_account),
    )

    semaphore = asyncio.Semaphore(settings.max_concurrency)
    emails = _EmployeeEmails(source)
    covered: set[str] = set()

    matched = await _match_records(active_leave, directory, emails, result)
    await asyncio.gather(
        *(_apply_set(slack, account_id, record, semaphore, covered, result) for account_id, record in matched.items())
    )

    detector = StaleStatusDetector(source, today, emails.email_for)
    await asyncio.gather(
        *(
            _sweep_account(slack, entry.account_id, entry.email, detector, semaphore, result)
            for entry in directory.entries()
            if entry.account_id not in covered
        )
    )
    if detector.confirmation_failed:
        result.errors += 1

    logger.info(
        "Sync pass complete for %s: updated=%d cleared=%d skipped=%d errors=%d",
        today,
        result.updated,
        result.cleared,
        result.skipped,
        result.errors,
    )
    return result
