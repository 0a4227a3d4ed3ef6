from __future__ import annotations

from pydantic import BaseModel, Field

from status_sync.models.enums import StatusAction


class SlackUser(BaseModel):
    """One member of the Slack workspace roster."""

    id: str
    email: str | None = None
    is_bot: bool = False
    deleted: bool = False


class SlackStatus(BaseModel):
    """A user's current custom status as read from their profile."""

    text: str = ""
    emoji: str = ""
    expiration: int = 0


class StatusPresentation(BaseModel):
    """What a leave record looks like as a Slack status."""

    emoji: str
    text: str
    expiration: int  # epoch seconds; Slack clears the status at this instant


class DirectoryEntry(BaseModel):
    """Association between a Slack account and a lower-cased email."""

    account_id: str
    email: str


class Directory(BaseModel):
    """Email <-> Slack account mapping used to correlate both systems."""

    by_email: dict[str, str] = Field(default_factory=dict)
    by_account: dict[str, str] = Field(default_factory=dict)

    def account_for(self, email: str) -> str | None:
        return self.by_email.get(email.lower())

    def entries(self) -> list[DirectoryEntry]:
        return [DirectoryEntry(account_id=account_id, email=email) for account_id, email in self.by_account.items()]


class StatusDecision(BaseModel):
    """The outcome decided for one account in a sync pass."""

    account_id: str
    action: StatusAction
    presentation: StatusPresentation | None = None
