# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request, status
from slack_sdk.signature import SignatureVerifier

from status_sync.config import get_settings
from status_sync.exceptions import AppError


async def verify_slack_request(request: Request) -> bytes:
    """Check the Slack request signature when a signing secret is configured.

    Returns the raw body, which the signature is computed over.
    """
    body = await request.body()
    secret = get_settings().slack_signing_secret
    if secret and not SignatureVerifier(secret).is_valid_request(body, dict(request.headers)):
        raise AppError("Invalid Slack signature", status_code=status.HTTP_401_UNAUTHORIZED)
    return body


SlackRequestDep = Annotated[bytes, Depends(verify_slack_request)]


async def require_sync_token(authorization: str | None = Header(default=None)) -> None:
    """Require `Authorization: Bearer <SYNC_API_TOKEN>` when a token is configured."""
    token = get_settings().sync_api_token
    if token and authorization != f"Bearer {token}":
        raise AppError("Sync token required", status_code=status.HTTP_401_UNAUTHORIZED)
