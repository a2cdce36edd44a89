"""Calendar service.

Per-request facade over `GoogleCalendarClient` that owns the user's
credentials and sync cursor.

## Token Handling

Before any API call the stored access token is checked. If `token_expiry`
has passed, the refresh token is exchanged for a new access token and the
user row is updated before the client is built.

## Incremental Sync

1. Call events.list with the stored `sync_token` (none on first sync)
2. Follow `nextPageToken` until the last page
3. Store the last page's `nextSyncToken`
4. If Google answers 410 Gone, clear the stored token and do one full sync

Google stays the system of record: the changed events are handed to the
caller, nothing is stored locally.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_mirror.auth.google import GoogleOAuth, get_google_oauth
from calendar_mirror.auth.tokens import (
    apply_tokens,
    get_access_token,
    get_refresh_token,
    is_token_expired,
)
from calendar_mirror.calendar.errors import (
    CalendarNotConfiguredError,
    ReauthenticationRequiredError,
    SyncTokenExpiredError,
    UpstreamError,
)
from calendar_mirror.calendar.google_calendar import (
    CalendarEvent,
    EventDraft,
    GoogleCalendarClient,
)
from calendar_mirror.config import get_settings
from calendar_mirror.database.models import User

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of an incremental sync."""

    events: list[CalendarEvent] = field(default_factory=list)
    full_sync: bool = False
    synced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_changes(self) -> bool:
        return len(self.events) > 0


class CalendarService:
    """Service for reading and writing a user's Google Calendar.

    Example:
        ```python
        service = CalendarService(db_session)

        events = await service.fetch_upcoming_events(user)
        result = await service.sync_events(user)
        ```
    """

    def __init__(self, db: AsyncSession, oauth: GoogleOAuth | None = None):
        """Initialize the service.

        Args:
            db: Database session
            oauth: OAuth client used for token refresh (default: shared instance)
        """
        self.db = db
        self.oauth = oauth or get_google_oauth()
        self.settings = get_settings()

    async def refresh_tokens(self, user: User) -> datetime:
        """Exchange the user's refresh token for a new access token.

        Returns:
            The new token expiry

        Raises:
            ReauthenticationRequiredError: If Google refuses the refresh token
            UpstreamError: If Google could not be reached
        """
        try:
            tokens = await self.oauth.refresh_access_token(get_refresh_token(user))
        except RuntimeError as e:
            raise CalendarNotConfiguredError("Google OAuth is not configured") from e
        except ValueError as e:
            logger.warning(f"Token refresh failed for {user.email}: {e}")
            raise ReauthenticationRequiredError(
                "Your Google session has expired. Please sign in again."
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Token refresh request failed for {user.email}: {e!r}")
            raise UpstreamError(
                "Could not reach Google to refresh your session. Please try again later."
            ) from e

        apply_tokens(user, tokens)
        await self.db.commit()

        logger.info(f"Refreshed access token for {user.email}")
        return user.token_expiry

    async def force_token_expiry(self, user: User) -> datetime:
        """Mark the stored access token as expired one hour ago."""
        user.token_expiry = datetime.now(timezone.utc) - timedelta(hours=1)
        await self.db.commit()
        return user.token_expiry

    async def get_calendar_client(self, user: User) -> GoogleCalendarClient:
        """Build a calendar client with a valid access token."""
        if is_token_expired(user):
            logger.info(f"Access token expired for {user.email}, refreshing")
            await self.refresh_tokens(user)

        try:
            access_token = get_access_token(user)
            refresh_token = get_refresh_token(user)
        except ValueError as e:
            raise ReauthenticationRequiredError(
                "Stored Google credentials are unreadable. Please sign in again."
            ) from e

        # discovery.build reads and parses the bundled API document
        return await run_in_threadpool(
            GoogleCalendarClient,
            access_token=access_token,
            refresh_token=refresh_token or None,
            calendar_id=self.settings.calendar_id,
            client_id=self.oauth.client_id,
            client_secret=self.oauth.client_secret,
        )

    async def fetch_upcoming_events(self, user: User) -> list[CalendarEvent]:
        client = await self.get_calendar_client(user)
        events = await run_in_threadpool(
            client.list_upcoming_events,
            max_results=self.settings.upcoming_events_limit,
        )
        logger.info(f"Fetched {len(events)} events for {user.email}")
        return events

    async def sync_events(self, user: User) -> SyncResult:
        """Fetch everything that changed since the last sync."""
        client = await self.get_calendar_client(user)
        page_size = self.settings.sync_page_size

        sync_result = SyncResult(full_sync=user.sync_token is None)

        try:
            events, next_sync_token = await run_in_threadpool(
                client.list_changes, user.sync_token, page_size
            )
        except SyncTokenExpiredError:
            logger.warning(f"Sync token expired for {user.email}, performing full sync")
            user.sync_token = None
            await self.db.commit()

            sync_result.full_sync = True
            try:
                events, next_sync_token = await run_in_threadpool(
                    client.list_changes, None, page_size
                )
            except SyncTokenExpiredError as e:
                raise UpstreamError(
                    "Failed to sync calendar data. Please try again later."
                ) from e

        sync_result.events = events

        if next_sync_token:
            user.sync_token = next_sync_token
            await self.db.commit()

        logger.info(
            f"Synced calendar for {user.email}: {len(events)} changes"
            f"{' (full sync)' if sync_result.full_sync else ''}"
        )
        return sync_result

    async def create_event(self, user: User, draft: EventDraft) -> CalendarEvent:
        client = await self.get_calendar_client(user)
        event = await run_in_threadpool(client.insert_event, draft)
        logger.info(f"Created event {event.id} for {user.email}")
        return event

    async def update_event(
        self,
        user: User,
        event_id: str,
        draft: EventDraft,
    ) -> CalendarEvent:
        """Update an event after checking Google allows it to be modified."""
        client = await self.get_calendar_client(user)

        existing = await run_in_threadpool(client.get_event, event_id)
        existing.ensure_modifiable("update")

        event = await run_in_threadpool(client.update_event, event_id, draft)
        logger.info(f"Updated event {event_id} for {user.email}")
        return event

    async def delete_event(self, user: User, event_id: str) -> None:
        """Delete an event after checking Google allows it to be removed."""
        client = await self.get_calendar_client(user)

        existing = await run_in_threadpool(client.get_event, event_id)
        existing.ensure_modifiable("delete")

        await run_in_threadpool(client.delete_event, event_id)
        logger.info(f"Deleted event {event_id} for {user.email}")
