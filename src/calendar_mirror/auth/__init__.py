"""Authentication module for calendar mirror.

Provides Google OAuth authentication and session management.

## OAuth Flow

1. User opens /api/auth/google
2. Redirect to Google OAuth consent screen
3. Google redirects back to /api/auth/google/callback with a code
4. Exchange code for access token and refresh token
5. Create/update user in database (tokens encrypted)
6. Subscribe to calendar push notifications (best effort)
7. Create session and set cookie

## Security

- All tokens are encrypted at rest
- Sessions use signed JWT cookies
- HTTPS required in production
"""

from calendar_mirror.auth.dependencies import (
    get_current_user,
    get_current_user_optional,
)
from calendar_mirror.auth.google import (
    GoogleOAuth,
    GoogleTokens,
    get_google_oauth,
)
from calendar_mirror.auth.session import (
    SessionData,
    create_session_token,
    verify_session_token,
)

__all__ = [
    "GoogleOAuth",
    "GoogleTokens",
    "get_google_oauth",
    "create_session_token",
    "verify_session_token",
    "SessionData",
    "get_current_user",
    "get_current_user_optional",
]
