"""Map a leave record to the Slack status that represents it."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from status_sync.schemas.slack import StatusPresentation

if TYPE_CHECKING:
    from zoneinfo import ZoneInfo

    from status_sync.schemas.leave import LeaveRecord

# Ordered; the first rule whose keyword occurs in the leave type name wins,
# so "Sick Vacation" resolves to the vacation rule.
# (keywords, Slack emoji code, unicode glyph for form labels)
EMOJI_RULES: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("vacation", "annual", "holiday"), ":palm_tree:", "🌴"),
    (("sick",), ":face_with_thermometer:", "🤒"),
    (("personal", "unpaid"), ":calendar:", "🕓"),
    (("maternity", "paternity"), ":baby:", "👶"),
    (("bereavement",), ":broken_heart:", "💔"),
)
DEFAULT_EMOJI = ":beach_with_umbrella:"
DEFAULT_ICON = "🏖️"


def _match_rule(leave_type_name: str | None) -> tuple[str, str]:
    name = (leave_type_name or "").lower()
    for keywords, emoji, icon in EMOJI_RULES:
        if any(keyword in name for keyword in keywords):
            return emoji, icon
    return DEFAULT_EMOJI, DEFAULT_ICON


def emoji_for(leave_type_name: str | None) -> str:
    return _match_rule(leave_type_name)[0]


def type_icon(leave_type_name: str | None) -> str:
    return _match_rule(leave_type_name)[1]


def return_day(end_date: date) -> date:
    """The first day back: statuses read as covering the whole last day off."""
    return end_date + timedelta(days=1)


def format_short(day: date) -> str:
    """'Nov 11' style, without a leading zero on the day."""
    return f"{day:%b} {day.day}"


def expiration_timestamp(end_date: date, tz: ZoneInfo | None = None) -> int:
    """Epoch seconds of midnight starting the day after `end_date`.

    With no `tz` the host's local time zone is used.
    """
    midnight = datetime.combine(return_day(end_date), time.min, tzinfo=tz)
    return int(midnight.timestamp())


def present(record: LeaveRecord, tz: ZoneInfo | None = None) -> StatusPresentation:
    """Build the status for an active leave record."""
    back_on = return_day(record.end_date)
    return StatusPresentation(
        emoji=emoji_for(record.leave_type_name),
        text=f"{record.leave_type_name} till {format_short(back_on)}",
        expiration=expiration_timestamp(record.end_date, tz),
    )
