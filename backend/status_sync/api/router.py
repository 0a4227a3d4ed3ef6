from fastapi import APIRouter

from status_sync.api.slack import slack_router
from status_sync.api.sync import sync_router
from status_sync.api.webhooks import webhook_router

api_router = APIRouter()
api_router.include_router(webhook_router)
api_router.include_router(slack_router)
api_router.include_router(sync_router)
