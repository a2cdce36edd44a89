"""Calendar errors and translation of Google API failures.

Every error carries the HTTP status the API layer should answer with and a
message that can be shown to the user as-is.
"""

from __future__ import annotations

import logging

from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)


class CalendarError(Exception):
    """Base exception for calendar operations."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class CalendarNotConfiguredError(CalendarError):
    """Raised when a required Google integration setting is missing."""

    status_code = 501


class ReauthenticationRequiredError(CalendarError):
    """Raised when the stored Google credentials can no longer be used."""

    status_code = 401


class ProtectedEventError(CalendarError):
    """Raised for events Google manages itself (birthdays, system events)."""

    status_code = 400


class CancelledEventError(CalendarError):
    status_code = 409


class EventNotFoundError(CalendarError):
    status_code = 404


class EventPermissionError(CalendarError):
    status_code = 403


class UpstreamError(CalendarError):
    """Raised when Google Calendar fails in a way we can't explain."""

    status_code = 502


class SyncTokenExpiredError(CalendarError):
    """Raised when Google answers 410 Gone to a syncToken request.

    The caller must drop its stored token and run a full sync.
    """

    status_code = 410

    def __init__(self, message: str = "Sync token is no longer valid"):
        super().__init__(message)


def translate_http_error(error: HttpError, action: str) -> CalendarError:
    """Map a Google API error to a user-facing CalendarError.

    Args:
        error: Error raised by googleapiclient
        action: One of "create", "update", "delete", "fetch", "sync", "watch"

    Returns:
        The CalendarError to raise in place of `error`
    """
    status = error.resp.status
    reason = str(error).lower()

    if status == 400:
        if "birthday" in reason or "not valid for this event type" in reason:
            return ProtectedEventError(
                f"Cannot {action} birthday or system events. "
                "These events are managed by Google."
            )
        if action == "delete" and "deleted" in reason:
            return EventNotFoundError("Event has already been deleted.")

    if status == 401:
        return ReauthenticationRequiredError(
            "Google rejected the stored credentials. Please sign in again."
        )

    if status == 403:
        return EventPermissionError(f"You do not have permission to {action} this event.")

    if status in (404, 410) and action in ("update", "delete", "fetch"):
        if action == "delete":
            return EventNotFoundError("Event not found or has already been deleted.")
        return EventNotFoundError("Event not found or has been deleted.")

    if status == 410 and action == "sync":
        return SyncTokenExpiredError()

    logger.error(f"Google Calendar {action} failed with status {status}: {error}")
    return UpstreamError(f"Failed to {action} calendar data. Please try again later.")
