"""Leave source: PeopleForce v3 REST API and an in-memory stand-in."""

# ruff: noqa: TC003
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from status_sync.exceptions import RemoteRejected, SourceUnavailable
from status_sync.models.enums import LeaveState
from status_sync.schemas.leave import (
    Employee,
    LeaveRecord,
    LeaveRequestCreated,
    LeaveRequestDraft,
    LeaveType,
)

logger = logging.getLogger(__name__)

# Ordered alias probe per policy flag. The key name differs between
# PeopleForce deployments; the first key present wins.
LEAVE_TYPE_FLAG_ALIASES: dict[str, tuple[str, ...]] = {
    "requires_comment": (
        "comment_required",
        "description_required",
        "reason_required",
        "requires_comment",
        "requires_description",
    ),
    "requires_document": (
        "document_required",
        "requires_document",
        "attachment_required",
        "requires_attachment",
        "documents_required",
    ),
    "supports_on_demand": (
        "on_demand",
        "allow_on_demand",
        "on_demand_enabled",
        "supports_on_demand",
        "is_on_demand",
    ),
}

_NESTED_FLAG_CONTAINERS = ("attributes", "settings")


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "required", "enabled"}
    return bool(value)


def probe_flag(item: dict[str, Any], flag: str) -> bool:
    """Resolve a leave-type policy flag through its alias chain."""
    scopes = [item] + [item[key] for key in _NESTED_FLAG_CONTAINERS if isinstance(item.get(key), dict)]
    for scope in scopes:
        for alias in LEAVE_TYPE_FLAG_ALIASES[flag]:
            if alias in scope and scope[alias] is not None:
                return _coerce_flag(scope[alias])
    return False


def leave_type_from_api(item: dict[str, Any]) -> LeaveType:
    return LeaveType(
        id=item["id"],
        name=item.get("name") or item.get("title") or "Unknown",
        description=item.get("description"),
        **{flag: probe_flag(item, flag) for flag in LEAVE_TYPE_FLAG_ALIASES},
    )


def _unwrap(body: Any) -> list[dict[str, Any]]:
    """Responses come either as {"data": [...]} or as a bare list."""
    if isinstance(body, dict):
        data = body.get("data", [])
        if isinstance(data, dict):
            return [data]
        return data or []
    return body or []


def _page_count(body: Any) -> int:
    if not isinstance(body, dict):
        return 1
    pagination = (body.get("metadata") or {}).get("pagination") or {}
    try:
        return max(int(pagination.get("pages", 1)), 1)
    except (TypeError, ValueError):
        return 1


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("errors")
        if message:
            return message if isinstance(message, str) else str(message)
    return response.text or response.reason_phrase


def filter_active(records: list[LeaveRecord], today: date) -> list[LeaveRecord]:
    """Keep approved records whose interval contains `today`.

    The API filters by window overlap, which is wider than containment.
    """
    return [r for r in records if r.is_approved and r.is_active_on(today)]


@runtime_checkable
class LeaveSource(Protocol):
    """Interface for the HR system's leave data."""

    async def fetch_approved_leave(self, start: date, end: date) -> list[LeaveRecord]:
        """List approved leave requests overlapping [start, end]."""
        ...

    async def fetch_active_approved_leave(self, today: date) -> list[LeaveRecord]:
        """List approved leave requests whose interval contains `today`."""
        ...

    async def resolve_employee_by_email(self, email: str) -> Employee | None:
        """Find an active employee by work or contact email."""
        ...

    async def get_employee(self, employee_id: int | str) -> Employee | None:
        """Fetch an employee by ID. Returns None if not found."""
        ...

    async def list_leave_types(self) -> list[LeaveType]:
        """List leave types with their policy flags."""
        ...

    async def create_leave_request(self, draft: LeaveRequestDraft) -> LeaveRequestCreated:
        """Create a leave request. Raises RemoteRejected if refused."""
        ...


class PeopleForceClient:
    """Leave source backed by the PeopleForce public API (v3)."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"X-API-KEY": self._api_key, "Accept": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            async with self._client() as client:
                r = await client.get(path, params=params)
                r.raise_for_status()
                return r.json()
        except httpx.HTTPStatusError as exc:
            msg = f"PeopleForce GET {path} failed with {exc.response.status_code}: {_error_message(exc.response)}"
            raise SourceUnavailable(msg) from exc
        except (httpx.HTTPError, ValueError) as exc:
            msg = f"PeopleForce GET {path} failed: {exc}"
            raise SourceUnavailable(msg) from exc

    async def fetch_approved_leave(self, start: date, end: date) -> list[LeaveRecord]:
        records: list[LeaveRecord] = []
        page = 1
        while True:
            body = await self._get(
                "/leave_requests",
                params={
                    "starts_on": start.isoformat(),
                    "ends_on": end.isoformat(),
                    "states[]": LeaveState.APPROVED.value,
                    "page": page,
                },
            )
            for item in _unwrap(body):
                try:
                    records.append(LeaveRecord.from_api(item))
                except (KeyError, ValidationError):
                    logger.warning("Skipping malformed leave request: %s", item.get("id"))
            if page >= _page_count(body):
                break
            page += 1
        return records

    async def fetch_active_approved_leave(self, today: date) -> list[LeaveRecord]:
        return filter_active(await self.fetch_approved_leave(today, today), today)

    async def resolve_employee_by_email(self, email: str) -> Employee | None:
        body = await self._get("/employees", params={"emails[]": email, "status": "active"})
        employees = [Employee.model_validate(item) for item in _unwrap(body)]
        for employee in employees:
            if employee.matches_email(email):
                return employee
        if employees:
            # Filter was applied server-side; trust the first hit.
            logger.debug("No exact email match for %s, using employee %s", email, employees[0].id)
            return employees[0]
        return None

    async def get_employee(self, employee_id: int | str) -> Employee | None:
        try:
            body = await self._get(f"/employees/{employee_id}")
        except SourceUnavailable as exc:
            cause = exc.__cause__
            if isinstance(cause, httpx.HTTPStatusError) and cause.response.status_code == 404:
                return None
            raise
        items = _unwrap(body)
        return Employee.model_validate(items[0]) if items else None

    async def list_leave_types(self) -> list[LeaveType]:
        body = await self._get("/leave_types")
        return [leave_type_from_api(item) for item in _unwrap(body)]

    async def _post_leave_request(self, payload: dict[str, Any]) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.post("/leave_requests", json=payload)
        except httpx.HTTPError as exc:
            msg = f"PeopleForce is unreachable: {exc}"
            raise SourceUnavailable(msg) from exc

    async def create_leave_request(self, draft: LeaveRequestDraft) -> LeaveRequestCreated:
        response = await self._post_leave_request(draft.full_payload())
        if response.status_code in (400, 422) and draft.optional_fields():
            logger.warning(
                "PeopleForce rejected optional fields %s (%s), retrying without them",
                sorted(draft.optional_fields()),
                _error_message(response),
            )
            response = await self._post_leave_request(draft.core_payload())
        if response.is_error:
            raise RemoteRejected(_error_message(response))
        items = _unwrap(response.json()) if response.content else []
        return LeaveRequestCreated.model_validate(items[0]) if items else LeaveRequestCreated()


class InMemoryLeaveSource:
    """In-memory stub implementation for development and tests."""

    def __init__(self) -> None:
        self.records: list[LeaveRecord] = []
        self.employees: list[Employee] = []
        self.leave_types: list[LeaveType] = []
        self.created: list[LeaveRequestDraft] = []
        self.calls: list[str] = []
        self.fail_with: Exception | None = None
        self.leave_types_delay: float = 0.0
        self.reject_with: str | None = None

    def seed(self, record: LeaveRecord) -> None:
        """Seed a leave record for testing."""
        self.records.append(record)

    def seed_employee(self, employee: Employee) -> None:
        self.employees.append(employee)

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_approved_leave(self, start: date, end: date) -> list[LeaveRecord]:
        self._record("fetch_approved_leave")
        return [
            r for r in self.records if r.is_approved and r.start_date <= end and r.end_date >= start
        ]

    async def fetch_active_approved_leave(self, today: date) -> list[LeaveRecord]:
        return filter_active(await self.fetch_approved_leave(today, today), today)

    async def resolve_employee_by_email(self, email: str) -> Employee | None:
        self._record("resolve_employee_by_email")
        return next((e for e in self.employees if e.matches_email(email)), None)

    async def get_employee(self, employee_id: int | str) -> Employee | None:
        self._record("get_employee")
        return next((e for e in self.employees if str(e.id) == str(employee_id)), None)

    async def list_leave_types(self) -> list[LeaveType]:
        self._record("list_leave_types")
        if self.leave_types_delay:
            await asyncio.sleep(self.leave_types_delay)
        return list(self.leave_types)

    async def create_leave_request(self, draft: LeaveRequestDraft) -> LeaveRequestCreated:
        self._record("create_leave_request")
        if self.reject_with is not None:
            raise RemoteRejected(self.reject_with)
        self.created.append(draft)
        return LeaveRequestCreated(id=len(self.created), status="pending")


_leave_source: LeaveSource = InMemoryLeaveSource()


def get_leave_source() -> LeaveSource:
    """Return the installed leave source."""
    return _leave_source


def set_leave_source(source: LeaveSource) -> None:
    """Override the leave source (for testing or production wiring)."""
    global _leave_source
    _leave_source = source
