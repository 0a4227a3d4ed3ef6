from __future__ import annotations

import enum


class StatusAction(enum.StrEnum):
    """What a sync pass decided to do with one Slack account's status."""

    SET = "SET"
    CLEAR = "CLEAR"
    NONE = "NONE"


class LeaveState(enum.StrEnum):
    """Approval state of a PeopleForce leave request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    CANCELED = "canceled"
