from status_sync.models.enums import LeaveState, StatusAction

__all__ = [
    "LeaveState",
    "StatusAction",
]
