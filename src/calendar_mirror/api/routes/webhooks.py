"""Push-notification routes.

- POST /api/watch - (Re)subscribe the current user to calendar changes
- POST /api/webhooks/calendar - Receiver for Google's notifications
- GET /api/webhooks/calendar - Liveness check used during verification
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import PlainTextResponse

from calendar_mirror.api.dependencies import (
    MessageResponse,
    calendar_http_error,
    get_webhook_manager,
)
from calendar_mirror.auth.dependencies import get_current_user
from calendar_mirror.calendar.errors import CalendarError
from calendar_mirror.calendar.webhooks import WebhookManager
from calendar_mirror.database.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/watch", response_model=MessageResponse)
async def watch_calendar(
    user: User = Depends(get_current_user),
    webhooks: WebhookManager = Depends(get_webhook_manager),
) -> MessageResponse:
    """Set up a push-notification channel for the current user."""
    try:
        await webhooks.setup(user)
    except CalendarError as e:
        raise calendar_http_error(e)

    return MessageResponse(message="Webhook set up successfully")


@router.post("/webhooks/calendar", response_class=PlainTextResponse)
async def receive_notification(
    x_goog_channel_id: str | None = Header(default=None),
    x_goog_resource_state: str | None = Header(default=None),
    x_goog_resource_id: str | None = Header(default=None),
    x_goog_channel_token: str | None = Header(default=None),
    webhooks: WebhookManager = Depends(get_webhook_manager),
) -> PlainTextResponse:
    """Acknowledge a Google Calendar push notification.

    Google retries anything that is not a 2xx, so verified notifications are
    always answered with 200.
    """
    try:
        await webhooks.handle_notification(
            channel_id=x_goog_channel_id,
            resource_state=x_goog_resource_state,
            resource_id=x_goog_resource_id,
            token=x_goog_channel_token,
        )
    except CalendarError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    return PlainTextResponse("OK")


@router.get("/webhooks/calendar", response_class=PlainTextResponse)
async def webhook_status() -> PlainTextResponse:
    return PlainTextResponse("Webhook endpoint active")
