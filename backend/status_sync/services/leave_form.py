"""Leave request modal: build, re-render on selection, validate, submit."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from status_sync.config import get_settings
from status_sync.exceptions import AppError, ValidationFailed
from status_sync.schemas.form import FormField, LeaveRequestForm
from status_sync.schemas.leave import LeaveRequestDraft, LeaveType
from status_sync.services.directory import get_email_overrides
from status_sync.services.peopleforce import get_leave_source
from status_sync.services.presenter import type_icon
from status_sync.services.reconcile import local_today
from status_sync.services.slack import get_slack_gateway

if TYPE_CHECKING:
    from status_sync.services.peopleforce import LeaveSource

logger = logging.getLogger(__name__)

CALLBACK_ID = "timeoff_request"
TYPE_BLOCK = "type_block"
START_BLOCK = "start_block"
END_BLOCK = "end_block"
COMMENT_BLOCK = "comment_block"
ON_DEMAND_BLOCK = "on_demand_block"
DOCUMENT_NOTE_BLOCK = "document_note"

TYPE_ACTION = "leave_type"
START_ACTION = "start_date"
END_ACTION = "end_date"
COMMENT_ACTION = "comment"
ON_DEMAND_ACTION = "on_demand"

# Offered when PeopleForce is slow or returns nothing, so the modal still
# opens inside Slack's trigger window.
DEFAULT_LEAVE_TYPES = (
    LeaveType(id="1", name="Vacation"),
    LeaveType(id="2", name="Sick Leave"),
    LeaveType(id="3", name="Personal"),
    LeaveType(id="4", name="Unpaid Leave"),
)


async def load_leave_types(source: LeaveSource, timeout: float) -> list[LeaveType]:
    """Fetch leave types, falling back to the defaults on timeout or failure."""
    try:
        leave_types = await asyncio.wait_for(source.list_leave_types(), timeout=timeout)
    except TimeoutError:
        logger.warning("Leave type lookup exceeded %.1fs, using default options", timeout)
        return list(DEFAULT_LEAVE_TYPES)
    except Exception:
        logger.exception("Leave type lookup failed, using default options")
        return list(DEFAULT_LEAVE_TYPES)
    return leave_types or list(DEFAULT_LEAVE_TYPES)


def find_leave_type(leave_types: list[LeaveType], leave_type_id: str | None) -> LeaveType | None:
    if leave_type_id is None:
        return None
    return next((t for t in leave_types if str(t.id) == str(leave_type_id)), None)


def build_form_fields(selected: LeaveType | None) -> list[FormField]:
    """Fields shown for the selected leave type's policy."""
    fields = [
        FormField(block_id=TYPE_BLOCK, kind="leave_type", label="Leave Type"),
        FormField(block_id=START_BLOCK, kind="date", label="Start Date"),
        FormField(block_id=END_BLOCK, kind="date", label="End Date"),
    ]
    comment_required = selected is not None and selected.requires_comment
    fields.append(
        FormField(
            block_id=COMMENT_BLOCK,
            kind="comment",
            label="Comment" if comment_required else "Comment (optional)",
            optional=not comment_required,
            hint=f"{selected.name} requires a comment." if comment_required and selected else None,
        )
    )
    if selected is not None and selected.supports_on_demand:
        fields.append(FormField(block_id=ON_DEMAND_BLOCK, kind="on_demand", label="On-demand", optional=True))
    if selected is not None and selected.requires_document:
        fields.append(
            FormField(
                block_id=DOCUMENT_NOTE_BLOCK,
                kind="note",
                label=f"{selected.name} requires a supporting document. Attach it in PeopleForce after submitting.",
            )
        )
    return fields


def _plain(text: str) -> dict[str, Any]:
    return {"type": "plain_text", "text": text}


def _option(leave_type: LeaveType) -> dict[str, Any]:
    return {"text": _plain(f"{leave_type.name} {type_icon(leave_type.name)}"), "value": str(leave_type.id)}


def _render_field(
    form_field: FormField,
    leave_types: list[LeaveType],
    selected: LeaveType | None,
    today: date,
) -> dict[str, Any]:
    if form_field.kind == "note":
        return {"type": "context", "block_id": form_field.block_id, "elements": [{"type": "mrkdwn", "text": form_field.label}]}

    if form_field.kind == "leave_type":
        element: dict[str, Any] = {
            "type": "static_select",
            "action_id": TYPE_ACTION,
            "placeholder": _plain("Select leave type"),
            "options": [_option(t) for t in leave_types],
        }
        if selected is not None:
            element["initial_option"] = _option(selected)
        block: dict[str, Any] = {"type": "input", "dispatch_action": True}
    elif form_field.kind == "date":
        action_id = START_ACTION if form_field.block_id == START_BLOCK else END_ACTION
        element = {"type": "datepicker", "action_id": action_id, "initial_date": today.isoformat()}
        block = {"type": "input"}
    elif form_field.kind == "comment":
        element = {
            "type": "plain_text_input",
            "action_id": COMMENT_ACTION,
            "multiline": True,
            "placeholder": _plain("Add any additional details..."),
        }
        block = {"type": "input"}
    else:
        element = {
            "type": "checkboxes",
            "action_id": ON_DEMAND_ACTION,
            "options": [{"text": _plain("Request as on-demand leave"), "value": "on_demand"}],
        }
        block = {"type": "input"}

    block.update(block_id=form_field.block_id, label=_plain(form_field.label), element=element)
    if form_field.optional:
        block["optional"] = True
    if form_field.hint:
        block["hint"] = _plain(form_field.hint)
    return block


def build_leave_request_view(
    leave_types: list[LeaveType],
    selected_id: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Render the modal. Leave types ride along in private_metadata so a
    selection change can re-render without server-side state."""
    if today is None:
        today = local_today()
    selected = find_leave_type(leave_types, selected_id)
    fields = build_form_fields(selected)
    return {
        "type": "modal",
        "callback_id": CALLBACK_ID,
        "title": _plain("Request Time Off"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "private_metadata": json.dumps({"leave_types": [t.model_dump(mode="json") for t in leave_types]}),
        "blocks": [_render_field(f, leave_types, selected, today) for f in fields],
    }


def leave_types_from_view(view: dict[str, Any]) -> list[LeaveType]:
    try:
        metadata = json.loads(view.get("private_metadata") or "{}")
        return [LeaveType.model_validate(item) for item in metadata.get("leave_types", [])]
    except (ValueError, ValidationError):
        logger.warning("Leave request view carried unreadable metadata, using default options")
        return list(DEFAULT_LEAVE_TYPES)


def _value(values: dict[str, Any], block_id: str, action_id: str) -> dict[str, Any]:
    return (values.get(block_id) or {}).get(action_id) or {}


def _parse_date(raw: str | None) -> date | None:
    return date.fromisoformat(raw) if raw else None


def parse_submission(view: dict[str, Any]) -> LeaveRequestForm:
    values = (view.get("state") or {}).get("values") or {}
    selected_option = _value(values, TYPE_BLOCK, TYPE_ACTION).get("selected_option") or {}
    return LeaveRequestForm(
        leave_type_id=selected_option.get("value"),
        start_date=_parse_date(_value(values, START_BLOCK, START_ACTION).get("selected_date")),
        end_date=_parse_date(_value(values, END_BLOCK, END_ACTION).get("selected_date")),
        comment=(_value(values, COMMENT_BLOCK, COMMENT_ACTION).get("value") or "").strip(),
        on_demand=bool(_value(values, ON_DEMAND_BLOCK, ON_DEMAND_ACTION).get("selected_options")),
    )


def validate_submission(form: LeaveRequestForm, leave_type: LeaveType | None) -> None:
    """Raise ValidationFailed for input PeopleForce must never see."""
    if form.leave_type_id is None:
        raise ValidationFailed("Please select a leave type.", field=TYPE_BLOCK)
    if form.start_date is None:
        raise ValidationFailed("Please pick a start date.", field=START_BLOCK)
    if form.end_date is None:
        raise ValidationFailed("Please pick an end date.", field=END_BLOCK)
    if form.end_date < form.start_date:
        raise ValidationFailed("End date must be on or after the start date.", field=END_BLOCK)
    if leave_type is not None and leave_type.requires_comment and not form.comment:
        raise ValidationFailed(f"A comment is required for {leave_type.name}.", field=COMMENT_BLOCK)


def _long_date(day: date) -> str:
    return f"{day:%b} {day.day}, {day.year}"


def _type_id(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw


async def open_leave_request_form(trigger_id: str, user_id: str) -> None:
    """Open the modal for a /request-time-off invocation."""
    slack = get_slack_gateway()
    leave_types = await load_leave_types(get_leave_source(), get_settings().leave_types_timeout_seconds)
    try:
        await slack.open_view(trigger_id, build_leave_request_view(leave_types))
    except Exception:
        logger.exception("Could not open the time-off modal for %s", user_id)
        await slack.post_message(user_id, "❌ Sorry, I couldn't open the time-off request form. Please try again later.")


async def refresh_leave_request_form(view: dict[str, Any], selected_id: str | None = None) -> None:
    """Re-render the open modal after the leave type selection changed."""
    leave_types = leave_types_from_view(view)
    if selected_id is None:
        selected_id = parse_submission(view).leave_type_id
    await get_slack_gateway().update_view(
        view["id"],
        build_leave_request_view(leave_types, selected_id=selected_id),
        view_hash=view.get("hash"),
    )


async def submit_leave_request(account_id: str, form: LeaveRequestForm, leave_type: LeaveType | None = None) -> None:
    """Create the request in PeopleForce and DM the outcome to the submitter.

    `form` must already have passed validate_submission.
    """
    slack = get_slack_gateway()
    source = get_leave_source()
    try:
        email = await slack.get_user_email(account_id)
        if not email:
            msg = "Could not find your email address. Please make sure your Slack profile has an email."
            raise AppError(msg, status_code=404)

        employee = await source.resolve_employee_by_email(email)
        if employee is None:
            msg = f"Employee not found in PeopleForce for email: {email}"
            raise AppError(msg, status_code=404)

        get_email_overrides().remember(email, account_id)

        on_demand = True if form.on_demand and leave_type is not None and leave_type.supports_on_demand else None
        created = await source.create_leave_request(
            LeaveRequestDraft(
                employee_id=employee.id,
                leave_type_id=_type_id(form.leave_type_id or ""),
                starts_on=form.start_date,
                ends_on=form.end_date,
                description=form.comment,
                on_demand=on_demand,
            )
        )
    except AppError as exc:
        logger.warning("Time-off request for %s failed: %s", account_id, exc.message)
        await slack.post_message(account_id, _failure_text(exc.message))
        return
    except Exception as exc:
        logger.exception("Time-off request for %s failed", account_id)
        await slack.post_message(account_id, _failure_text(str(exc)))
        return

    logger.info("Time-off request created for %s (%s -> %s)", email, form.start_date, form.end_date)
    await slack.post_message(
        account_id,
        "✅ *Time-off request submitted!*\n\n"
        f"📅 Dates: {_long_date(form.start_date)} → {_long_date(form.end_date)}\n"
        f"📋 Status: {created.status or 'Pending approval'}\n"
        "\nYour request has been sent to PeopleForce and will be reviewed by your manager.",
    )


def _failure_text(reason: str) -> str:
    return f"❌ *Failed to create time-off request*\n\n{reason}\n\nPlease try again or contact your administrator."
