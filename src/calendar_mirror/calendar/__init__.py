"""Calendar integration module.

Mirrors a user's Google Calendar: Google stays the system of record and every
read or write goes straight to the Calendar API v3.

## Features

- List upcoming events
- Incremental sync with sync tokens
- Create, update and delete events (Google-managed events are protected)
- Push-notification channels that tell clients when to sync

## Google Calendar API

- https://developers.google.com/calendar/api/v3/reference
"""

from calendar_mirror.calendar.errors import CalendarError
from calendar_mirror.calendar.google_calendar import (
    CalendarEvent,
    EventDraft,
    GoogleCalendarClient,
)
from calendar_mirror.calendar.service import CalendarService, SyncResult
from calendar_mirror.calendar.webhooks import WebhookManager

__all__ = [
    "CalendarError",
    "CalendarEvent",
    "EventDraft",
    "GoogleCalendarClient",
    "CalendarService",
    "SyncResult",
    "WebhookManager",
]
