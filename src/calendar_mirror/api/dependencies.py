"""Shared route dependencies and response helpers."""

from __future__ import annotations

from fastapi import Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_mirror.auth.google import GoogleOAuth, get_google_oauth
from calendar_mirror.calendar.errors import CalendarError
from calendar_mirror.calendar.service import CalendarService
from calendar_mirror.calendar.webhooks import WebhookManager
from calendar_mirror.database.connection import get_db_session


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    success: bool = True
    message: str


def get_calendar_service(
    db: AsyncSession = Depends(get_db_session),
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> CalendarService:
    return CalendarService(db, oauth=oauth)


def get_webhook_manager(
    db: AsyncSession = Depends(get_db_session),
    calendar: CalendarService = Depends(get_calendar_service),
) -> WebhookManager:
    return WebhookManager(db, calendar=calendar)


def calendar_http_error(error: CalendarError) -> HTTPException:
    """Re-surface a calendar error with its user-friendly message."""
    return HTTPException(status_code=error.status_code, detail=error.message)
