"""Google OAuth authentication.

Implements the OAuth 2.0 authorization code flow for Google sign-in.

## Required Setup

1. Create a project in Google Cloud Console
2. Enable Google Calendar API
3. Create OAuth 2.0 credentials (Web application)
4. Add the callback URL (GOOGLE_REDIRECT_URI) to authorized redirect URIs
5. Set GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET environment variables

## OAuth Endpoints

- Authorization: https://accounts.google.com/o/oauth2/v2/auth
- Token: https://oauth2.googleapis.com/token
- User Info: https://www.googleapis.com/oauth2/v2/userinfo

## Scopes Used

- https://www.googleapis.com/auth/calendar: Read calendars and events
- https://www.googleapis.com/auth/calendar.events: Create, update, delete events
- https://www.googleapis.com/auth/userinfo.email: Identify the user
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from urllib.parse import urlencode

import httpx

from calendar_mirror.config import get_settings

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


@dataclass
class GoogleUserInfo:
    """User information from Google."""

    id: str
    email: str
    verified_email: bool


@dataclass
class GoogleTokens:
    """OAuth tokens from Google."""

    access_token: str
    refresh_token: str | None
    token_type: str
    expires_at: datetime | None
    scope: str


def _expiry_from_response(data: dict) -> datetime | None:
    if "expires_in" not in data:
        return None
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return now + timedelta(seconds=int(data["expires_in"]))


class GoogleOAuth:
    """Google OAuth 2.0 client.

    Example:
        ```python
        oauth = GoogleOAuth()

        # Generate authorization URL
        auth_url = oauth.get_authorization_url(state="random-state")
        # Redirect user to auth_url

        # Handle callback
        tokens = await oauth.exchange_code(code)
        user_info = await oauth.get_user_info(tokens.access_token)
        ```
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        scopes: list[str] | None = None,
    ):
        """Initialize Google OAuth client.

        Args:
            client_id: Google OAuth client ID (or from settings)
            client_secret: Google OAuth client secret (or from settings)
            redirect_uri: OAuth callback URL (or from settings)
            scopes: OAuth scopes to request (or from settings)
        """
        settings = get_settings()

        self.client_id = client_id or settings.google_client_id
        self.client_secret = client_secret or settings.google_client_secret
        self.redirect_uri = redirect_uri or settings.google_redirect_uri
        self.scopes = scopes or list(settings.google_scopes)

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET environment variables."
            )

    @property
    def is_configured(self) -> bool:
        """Check if Google OAuth is properly configured."""
        return bool(self.client_id and self.client_secret)

    def get_authorization_url(
        self,
        state: str,
        access_type: str = "offline",
        prompt: str = "consent",
    ) -> str:
        """Generate the Google OAuth authorization URL.

        Args:
            state: Random state parameter for CSRF protection
            access_type: "offline" to get refresh token
            prompt: "consent" so Google returns a refresh token on every login

        Returns:
            URL to redirect the user to
        """
        if not self.is_configured:
            raise RuntimeError("Google OAuth not configured")

        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": access_type,
            "prompt": prompt,
        }

        return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleTokens:
        """Exchange authorization code for tokens.

        Raises:
            ValueError: If token exchange fails
        """
        if not self.is_configured:
            raise RuntimeError("Google OAuth not configured")

        async with httpx.AsyncClient() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )

            if response.status_code != 200:
                logger.error(f"Token exchange failed: {response.text}")
                raise ValueError(f"Token exchange failed: {response.status_code}")

            data = response.json()

        return GoogleTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type", "Bearer"),
            expires_at=_expiry_from_response(data),
            scope=data.get("scope", ""),
        )

    async def refresh_access_token(self, refresh_token: str) -> GoogleTokens:
        """Refresh an expired access token.

        Returns:
            New GoogleTokens (refresh_token may be the same)

        Raises:
            ValueError: If refresh fails
        """
        if not self.is_configured:
            raise RuntimeError("Google OAuth not configured")

        if not refresh_token:
            raise ValueError("No refresh token available")

        async with httpx.AsyncClient() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )

            if response.status_code != 200:
                logger.error(f"Token refresh failed: {response.text}")
                raise ValueError(f"Token refresh failed: {response.status_code}")

            data = response.json()

        return GoogleTokens(
            access_token=data["access_token"],
            # Google only returns a new refresh token when it rotates it
            refresh_token=data.get("refresh_token", refresh_token),
            token_type=data.get("token_type", "Bearer"),
            expires_at=_expiry_from_response(data),
            scope=data.get("scope", ""),
        )

    async def get_user_info(self, access_token: str) -> GoogleUserInfo:
        """Get user information from Google.

        Raises:
            ValueError: If request fails
        """
        async with httpx.AsyncClient() as client:
            response = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )

            if response.status_code != 200:
                logger.error(f"User info request failed: {response.text}")
                raise ValueError(f"User info request failed: {response.status_code}")

            data = response.json()

        if not data.get("email"):
            raise ValueError("Google account has no email address")

        return GoogleUserInfo(
            id=data["id"],
            email=data["email"],
            verified_email=data.get("verified_email", False),
        )


@lru_cache
def get_google_oauth() -> GoogleOAuth:
    """Get cached Google OAuth client instance."""
    return GoogleOAuth()
