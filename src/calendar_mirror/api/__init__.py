"""FastAPI application and routes.

This module provides the REST API consumed by the calendar frontend.

## API Structure

- /api/auth - Authentication endpoints (Google OAuth)
- /api/calendar - Upcoming events, event CRUD, incremental sync
- /api/watch - Push-notification subscription
- /api/webhooks/calendar - Google push-notification receiver
- /api/test - Debug helpers (only with ENABLE_TEST_ROUTES)

## Authentication

Most endpoints require authentication via session cookie.
Sessions are created during OAuth login.
"""

from calendar_mirror.api.app import create_app

__all__ = ["create_app"]
