# ruff: noqa: TC001, TC003
from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from status_sync.schemas.slack import StatusDecision

EVENT_TYPE_KEYS = ("action", "event", "type", "topic")
EVENT_PAYLOAD_KEYS = ("data", "leave_request")


class SyncRunResponse(BaseModel):
    """Response from the manual sync trigger."""

    target_date: date
    updated: int
    cleared: int
    skipped: int
    errors: int
    decisions: list[StatusDecision] = Field(default_factory=list)


class PeopleForceEvent(BaseModel):
    """A PeopleForce webhook delivery, normalized across its field aliases."""

    event_type: str | None = None
    payload: Any = None

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> PeopleForceEvent:
        event_type = next((body[key] for key in EVENT_TYPE_KEYS if body.get(key)), None)
        payload = next((body[key] for key in EVENT_PAYLOAD_KEYS if body.get(key) is not None), body)
        return cls(event_type=str(event_type) if event_type is not None else None, payload=payload)

    @property
    def is_leave_event(self) -> bool:
        if not self.event_type:
            return False
        name = self.event_type.lower()
        return "leave" in name or "time_off" in name
