# ruff: noqa: TC003
from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel

FieldKind = Literal["leave_type", "date", "comment", "on_demand", "note"]


class FormField(BaseModel):
    """One field of the leave request form, before rendering to Block Kit."""

    block_id: str
    kind: FieldKind
    label: str
    optional: bool = False
    hint: str | None = None


class LeaveRequestForm(BaseModel):
    """Values submitted through the leave request modal."""

    leave_type_id: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    comment: str = ""
    on_demand: bool = False
