"""Calendar event routes.

Every request goes straight to Google Calendar; nothing is cached locally
except the user's sync token.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from calendar_mirror.api.dependencies import (
    CamelModel,
    MessageResponse,
    calendar_http_error,
    get_calendar_service,
)
from calendar_mirror.auth.dependencies import get_current_user
from calendar_mirror.calendar.errors import CalendarError
from calendar_mirror.calendar.google_calendar import EventDraft
from calendar_mirror.calendar.service import CalendarService
from calendar_mirror.database.models import User

router = APIRouter()


class EventSourceResponse(CamelModel):
    title: str | None = None
    url: str | None = None


class EventResponse(CamelModel):
    """A Google Calendar event."""

    id: str
    summary: str
    start: str
    end: str
    description: str | None = None
    location: str | None = None
    etag: str | None = None
    status: str | None = None
    updated: str | None = None
    event_type: str | None = None
    visibility: str | None = None
    source: EventSourceResponse | None = None


class EventListResponse(CamelModel):
    success: bool = True
    events: list[EventResponse]


class SingleEventResponse(CamelModel):
    success: bool = True
    event: EventResponse


class SyncResponse(CamelModel):
    success: bool = True
    has_changes: bool
    changes: list[EventResponse]
    change_count: int
    timestamp: datetime


class EventInput(BaseModel):
    """Create or update event request.

    Naive datetimes are taken as UTC.
    """

    summary: str = Field(min_length=1, max_length=1024)
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None

    @model_validator(mode="after")
    def check_time_range(self) -> EventInput:
        if _utc(self.end) < _utc(self.start):
            raise ValueError("Event end must not be before its start")
        return self

    def to_draft(self) -> EventDraft:
        return EventDraft(
            summary=self.summary,
            start=self.start,
            end=self.end,
            description=self.description,
            location=self.location,
        )


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.get("/events", response_model=EventListResponse)
async def list_events(
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> EventListResponse:
    """List the user's upcoming events."""
    try:
        events = await calendar.fetch_upcoming_events(user)
    except CalendarError as e:
        raise calendar_http_error(e)

    return EventListResponse(
        events=[EventResponse.model_validate(event) for event in events]
    )


@router.post("/create", response_model=SingleEventResponse)
async def create_event(
    data: EventInput,
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> SingleEventResponse:
    """Create an event on the user's calendar."""
    try:
        event = await calendar.create_event(user, data.to_draft())
    except CalendarError as e:
        raise calendar_http_error(e)

    return SingleEventResponse(event=EventResponse.model_validate(event))


@router.put("/events/{event_id}", response_model=SingleEventResponse)
async def update_event(
    event_id: str,
    data: EventInput,
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> SingleEventResponse:
    """Update an event. Birthdays and system events are refused."""
    try:
        event = await calendar.update_event(user, event_id, data.to_draft())
    except CalendarError as e:
        raise calendar_http_error(e)

    return SingleEventResponse(event=EventResponse.model_validate(event))


@router.delete("/events/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: str,
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> MessageResponse:
    """Delete an event. Birthdays and system events are refused."""
    try:
        await calendar.delete_event(user, event_id)
    except CalendarError as e:
        raise calendar_http_error(e)

    return MessageResponse(message="Event deleted")


@router.get("/sync", response_model=SyncResponse)
async def sync_events(
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> SyncResponse:
    """Return the events that changed since the previous sync.

    Cancelled events in `changes` are deletions.
    """
    try:
        sync_result = await calendar.sync_events(user)
    except CalendarError as e:
        raise calendar_http_error(e)

    return SyncResponse(
        has_changes=sync_result.has_changes,
        changes=[EventResponse.model_validate(event) for event in sync_result.events],
        change_count=len(sync_result.events),
        timestamp=sync_result.synced_at,
    )
