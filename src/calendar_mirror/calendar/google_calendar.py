"""Google Calendar API client.

Provides methods for interacting with a user's calendar:
- List upcoming events
- Incremental sync with sync tokens
- Create, update and delete events
- Watch for changes (push notifications)

## API Documentation

https://developers.google.com/calendar/api/v3/reference

## Authentication

Uses OAuth 2.0 access tokens obtained during user authentication.
`CalendarService` refreshes expired tokens before building a client, so the
client itself never refreshes.

## Blocking I/O

googleapiclient is synchronous. Async callers must run these methods in a
worker thread (`fastapi.concurrency.run_in_threadpool`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from calendar_mirror.auth.google import GOOGLE_TOKEN_URL
from calendar_mirror.calendar.errors import (
    CancelledEventError,
    ProtectedEventError,
    UpstreamError,
    translate_http_error,
)

logger = logging.getLogger(__name__)

UNTITLED_EVENT = "Untitled Event"


@dataclass
class EventSource:
    """Where Google says an event came from (e.g. Contacts birthdays)."""

    title: str | None = None
    url: str | None = None


@dataclass
class CalendarEvent:
    """A calendar event as shown to the frontend.

    `start` and `end` hold the RFC 3339 `dateTime` for timed events or the
    `YYYY-MM-DD` `date` for all-day events.
    """

    id: str
    summary: str = UNTITLED_EVENT
    start: str = ""
    end: str = ""
    description: str | None = None
    location: str | None = None
    etag: str | None = None
    status: str | None = None
    updated: str | None = None
    event_type: str | None = None
    visibility: str | None = None
    source: EventSource | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CalendarEvent:
        """Create from Google Calendar API response."""
        start_data = data.get("start") or {}
        end_data = data.get("end") or {}
        source_data = data.get("source")

        return cls(
            id=data["id"],
            summary=data.get("summary") or UNTITLED_EVENT,
            start=start_data.get("dateTime") or start_data.get("date") or "",
            end=end_data.get("dateTime") or end_data.get("date") or "",
            description=data.get("description"),
            location=data.get("location"),
            etag=data.get("etag"),
            status=data.get("status"),
            updated=data.get("updated"),
            event_type=data.get("eventType"),
            visibility=data.get("visibility"),
            source=(
                EventSource(title=source_data.get("title"), url=source_data.get("url"))
                if source_data
                else None
            ),
        )

    @property
    def is_birthday(self) -> bool:
        if self.event_type == "birthday":
            return True
        title = (self.source.title or "") if self.source else ""
        return "birthday" in title.lower()

    @property
    def is_system_event(self) -> bool:
        url = (self.source.url or "") if self.source else ""
        return "plus.google.com" in url

    @property
    def is_google_managed(self) -> bool:
        """Birthdays and system events can't be edited through the API."""
        return self.is_birthday or self.is_system_event

    def ensure_modifiable(self, action: str) -> None:
        """Raise if the user may not `action` ("update" or "delete") this event."""
        outcome = "modified" if action == "update" else "removed"

        if self.is_birthday:
            raise ProtectedEventError(
                f"Cannot {action} birthday events. These events are managed "
                f"by Google and cannot be {outcome}."
            )
        if self.is_system_event:
            raise ProtectedEventError(
                f"Cannot {action} system events. These events are managed "
                f"by Google and cannot be {outcome}."
            )
        if self.status == "cancelled":
            if action == "delete":
                raise CancelledEventError("Event is already cancelled")
            raise CancelledEventError(f"Cannot {action} cancelled events.")


@dataclass
class EventDraft:
    """Fields the user can set when creating or editing an event."""

    summary: str
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None

    def to_api_body(self) -> dict[str, Any]:
        """Convert to an events.insert / events.update request body."""
        return {
            "summary": self.summary,
            "description": self.description,
            "location": self.location,
            "start": {"dateTime": _rfc3339(self.start)},
            "end": {"dateTime": _rfc3339(self.end)},
        }


def _rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@dataclass
class WatchChannel:
    """Response of events.watch."""

    channel_id: str
    resource_id: str
    expiration: datetime
    raw_data: dict[str, Any] = field(default_factory=dict)


class GoogleCalendarClient:
    """Client for the Google Calendar API, bound to one user and calendar.

    Example:
        ```python
        client = GoogleCalendarClient(access_token, refresh_token)

        events = client.list_upcoming_events(max_results=100)
        changes, next_sync_token = client.list_changes(sync_token)
        client.delete_event(event_id)
        ```
    """

    def __init__(
        self,
        access_token: str,
        refresh_token: str | None = None,
        calendar_id: str = "primary",
        client_id: str | None = None,
        client_secret: str | None = None,
    ):
        self.calendar_id = calendar_id

        self._credentials = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=GOOGLE_TOKEN_URL,
            client_id=client_id,
            client_secret=client_secret,
        )

        self._service = build(
            "calendar", "v3", credentials=self._credentials, cache_discovery=False
        )

    def _execute(self, request: Any, action: str) -> Any:
        """Run a prepared API request, translating every failure.

        Raises:
            CalendarError: Google answered with an error status, or the
                request never got an answer (connection, timeout)
        """
        try:
            return request.execute()
        except HttpError as e:
            raise translate_http_error(e, action) from e
        except (httplib2.HttpLib2Error, OSError) as e:
            logger.error(f"Google Calendar {action} request failed: {e!r}")
            raise UpstreamError(
                "Could not reach Google Calendar. Please try again later."
            ) from e

    def list_upcoming_events(
        self,
        max_results: int = 100,
        time_min: datetime | None = None,
    ) -> list[CalendarEvent]:
        """List events starting from `time_min` (default: now), soonest first."""
        time_min = time_min or datetime.now(timezone.utc)

        request = self._service.events().list(
            calendarId=self.calendar_id,
            timeMin=_rfc3339(time_min),
            maxResults=max_results,
            singleEvents=True,
            orderBy="startTime",
        )
        result = self._execute(request, "list")

        return [CalendarEvent.from_api(item) for item in result.get("items", [])]

    def list_changes(
        self,
        sync_token: str | None = None,
        page_size: int = 50,
    ) -> tuple[list[CalendarEvent], str | None]:
        """Walk every page of an events.list sync.

        Without a sync token this is a full sync that only establishes a new
        cursor. Cancelled events are kept: they are deletions.

        Returns:
            Tuple of (changed events, nextSyncToken from the last page)

        Raises:
            SyncTokenExpiredError: If Google invalidated `sync_token`
        """
        events: list[CalendarEvent] = []
        page_token = None

        while True:
            params: dict[str, Any] = {
                "calendarId": self.calendar_id,
                "maxResults": page_size,
                "singleEvents": True,
            }
            if sync_token:
                params["syncToken"] = sync_token
            if page_token:
                params["pageToken"] = page_token

            # 410 Gone is translated to SyncTokenExpiredError
            result = self._execute(self._service.events().list(**params), "sync")

            events.extend(CalendarEvent.from_api(item) for item in result.get("items", []))

            page_token = result.get("nextPageToken")
            if not page_token:
                return events, result.get("nextSyncToken")

    def get_event(self, event_id: str) -> CalendarEvent:
        request = self._service.events().get(calendarId=self.calendar_id, eventId=event_id)
        return CalendarEvent.from_api(self._execute(request, "fetch"))

    def insert_event(self, draft: EventDraft) -> CalendarEvent:
        request = self._service.events().insert(
            calendarId=self.calendar_id, body=draft.to_api_body()
        )
        return CalendarEvent.from_api(self._execute(request, "create"))

    def update_event(self, event_id: str, draft: EventDraft) -> CalendarEvent:
        """Replace the editable fields of an event."""
        request = self._service.events().update(
            calendarId=self.calendar_id,
            eventId=event_id,
            body=draft.to_api_body(),
        )
        return CalendarEvent.from_api(self._execute(request, "update"))

    def delete_event(self, event_id: str) -> None:
        request = self._service.events().delete(
            calendarId=self.calendar_id, eventId=event_id
        )
        self._execute(request, "delete")

    def watch_events(
        self,
        channel_id: str,
        address: str,
        expiration: datetime,
        token: str | None = None,
    ) -> WatchChannel:
        """Subscribe `address` to change notifications for this calendar.

        Args:
            channel_id: Unique channel identifier chosen by us
            address: HTTPS URL that receives notifications
            expiration: Requested expiry (Google may shorten it)
            token: Opaque value echoed back in X-Goog-Channel-Token
        """
        body: dict[str, Any] = {
            "id": channel_id,
            "type": "web_hook",
            "address": address,
            "expiration": str(int(expiration.timestamp() * 1000)),
        }
        if token:
            body["token"] = token

        request = self._service.events().watch(calendarId=self.calendar_id, body=body)
        result = self._execute(request, "watch")

        granted = result.get("expiration")
        return WatchChannel(
            channel_id=result.get("id", channel_id),
            resource_id=result["resourceId"],
            expiration=(
                datetime.fromtimestamp(int(granted) / 1000, tz=timezone.utc)
                if granted
                else expiration
            ),
            raw_data=result,
        )

    def stop_channel(self, channel_id: str, resource_id: str) -> None:
        """Stop a push-notification channel."""
        request = self._service.channels().stop(
            body={"id": channel_id, "resourceId": resource_id}
        )
        self._execute(request, "stop")
