# ruff: noqa: TC003
from __future__ import annotations

from datetime import date
from typing import Any, Self

from pydantic import AliasChoices, BaseModel, Field, model_validator

from status_sync.models.enums import LeaveState

DEFAULT_LEAVE_TYPE_NAME = "Time off"


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _nested_name(value: Any) -> str | None:
    if isinstance(value, dict):
        return _first(value, "name", "title")
    if isinstance(value, str) and value:
        return value
    return None


class Employee(BaseModel):
    """Employee record from PeopleForce."""

    id: int | str
    email: str | None = None
    contact_email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def primary_email(self) -> str | None:
        return self.email or self.contact_email

    def matches_email(self, email: str) -> bool:
        """Case-insensitive match against the work or contact email."""
        wanted = email.lower()
        return any(candidate and candidate.lower() == wanted for candidate in (self.email, self.contact_email))


class LeaveRecord(BaseModel):
    """A PeopleForce leave request, normalized from the API payload.

    Dates are calendar days, both inclusive.
    """

    id: int | str
    employee_id: int | str | None = None
    employee_email: str | None = None
    leave_type_name: str = DEFAULT_LEAVE_TYPE_NAME
    start_date: date
    end_date: date
    state: str = LeaveState.APPROVED.value

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be >= start_date"
            raise ValueError(msg)
        return self

    @property
    def is_approved(self) -> bool:
        return self.state.lower() == LeaveState.APPROVED.value

    def is_active_on(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> LeaveRecord:
        """Build a record from a /leave_requests item.

        The v3 API has shipped the same fields under several names, so each
        one is read from the first key that carries a value.
        """
        employee = item.get("employee") if isinstance(item.get("employee"), dict) else {}
        leave_type = (
            _nested_name(item.get("leave_type"))
            or _nested_name(item.get("time_off_type"))
            or item.get("type_name")
            or DEFAULT_LEAVE_TYPE_NAME
        )
        return cls(
            id=item["id"],
            employee_id=_first(item, "employee_id") or employee.get("id"),
            employee_email=employee.get("email") or item.get("email") or None,
            leave_type_name=leave_type,
            start_date=_first(item, "starts_on", "start_date"),
            end_date=_first(item, "ends_on", "end_date"),
            state=_first(item, "state", "status") or LeaveState.APPROVED.value,
        )


class LeaveType(BaseModel):
    """Leave type metadata with the policy flags the request form reacts to."""

    id: int | str
    name: str
    description: str | None = None
    requires_comment: bool = False
    requires_document: bool = False
    supports_on_demand: bool = False


class LeaveRequestDraft(BaseModel):
    """Payload for creating a leave request in PeopleForce."""

    employee_id: int | str
    leave_type_id: int | str
    starts_on: date
    ends_on: date
    description: str = ""
    on_demand: bool | None = None

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.ends_on < self.starts_on:
            msg = "ends_on must be >= starts_on"
            raise ValueError(msg)
        return self

    def core_payload(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "starts_on": self.starts_on.isoformat(),
            "ends_on": self.ends_on.isoformat(),
            "description": self.description,
            "reason": self.description,
        }

    def full_payload(self) -> dict[str, Any]:
        payload = self.core_payload()
        payload.update(self.optional_fields())
        return payload

    def optional_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.on_demand is not None:
            fields["on_demand"] = self.on_demand
        return fields


class LeaveRequestCreated(BaseModel):
    """Subset of the create-leave-request response shown to the submitter."""

    id: int | str | None = None
    status: str | None = Field(default=None, validation_alias=AliasChoices("status", "state"))
