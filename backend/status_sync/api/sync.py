# ruff: noqa: B008, TC003
"""Operator endpoint for running a sync pass on demand."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from status_sync.api.deps import require_sync_token
from status_sync.schemas.sync import SyncRunResponse
from status_sync.services.reconcile import run_reconciliation

sync_router = APIRouter(
    prefix="/sync",
    tags=["sync"],
    dependencies=[Depends(require_sync_token)],
)


@sync_router.post("", response_model=SyncRunResponse)
async def trigger_sync(target_date: date | None = Query(default=None)) -> SyncRunResponse:
    """Run one reconciliation pass and return its counts.

    Returns 503 when PeopleForce or the Slack roster is unreachable.
    """
    result = await run_reconciliation(target_date)
    return SyncRunResponse(
        target_date=result.target_date,
        updated=result.updated,
        cleared=result.cleared,
        skipped=result.skipped,
        errors=result.errors,
        decisions=result.decisions,
    )
