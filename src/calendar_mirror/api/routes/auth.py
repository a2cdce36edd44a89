"""Authentication routes.

Handles Google OAuth login flow and session management.

## OAuth Flow

1. GET /api/auth/google - Redirect to Google consent screen
2. GET /api/auth/google/callback - Handle OAuth callback, redirect to /calendar
3. POST /api/auth/logout - Stop push channels and clear session
4. POST /api/auth/refresh - Force a Google token refresh
5. GET /api/auth/user - Get current user info

## Session Management

Sessions are stored in HTTP-only cookies. The session token is a signed JWT
containing the user ID, email and expiration time.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from calendar_mirror.api.dependencies import (
    CamelModel,
    MessageResponse,
    calendar_http_error,
    get_calendar_service,
    get_webhook_manager,
)
from calendar_mirror.auth.dependencies import get_current_user, get_current_user_optional
from calendar_mirror.auth.google import GoogleOAuth, get_google_oauth
from calendar_mirror.auth.session import create_session_token
from calendar_mirror.auth.tokens import apply_tokens
from calendar_mirror.calendar.errors import CalendarError
from calendar_mirror.calendar.service import CalendarService
from calendar_mirror.calendar.webhooks import WebhookManager
from calendar_mirror.config import get_settings
from calendar_mirror.database.connection import get_db_session
from calendar_mirror.database.models import User

logger = logging.getLogger(__name__)

router = APIRouter()

# State tokens expire after 10 minutes
STATE_MAX_AGE_SECONDS = 600


class UserInfoResponse(CamelModel):
    success: bool = True
    user_id: str
    email: str


class RefreshResponse(CamelModel):
    success: bool = True
    message: str
    new_expiry: datetime


# Store state tokens temporarily (in production, use Redis or similar)
_oauth_states: dict[str, datetime] = {}


def _generate_state() -> str:
    """Generate a random state token for OAuth.

    States of abandoned logins are purged here.
    """
    now = datetime.now(timezone.utc)
    expired = [
        s
        for s, created in _oauth_states.items()
        if (now - created).total_seconds() >= STATE_MAX_AGE_SECONDS
    ]
    for s in expired:
        del _oauth_states[s]

    state = secrets.token_urlsafe(32)
    _oauth_states[state] = now
    return state


def _verify_state(state: str | None) -> bool:
    """Verify and consume a state token."""
    if not state or state not in _oauth_states:
        return False

    created = _oauth_states.pop(state)
    age = (datetime.now(timezone.utc) - created).total_seconds()
    return age < STATE_MAX_AGE_SECONDS


def _frontend_redirect(path: str) -> RedirectResponse:
    settings = get_settings()
    return RedirectResponse(
        url=f"{settings.frontend_url.rstrip('/')}{path}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/google")
async def login(
    oauth: GoogleOAuth = Depends(get_google_oauth),
) -> RedirectResponse:
    """Initiate Google OAuth login.

    Redirects the user to Google's consent screen. After consent,
    Google redirects back to /api/auth/google/callback.
    """
    if not oauth.is_configured:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Google OAuth not configured",
        )

    auth_url = oauth.get_authorization_url(state=_generate_state())
    return RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    state: str | None = None,
    oauth: GoogleOAuth = Depends(get_google_oauth),
    db: AsyncSession = Depends(get_db_session),
    webhooks: WebhookManager = Depends(get_webhook_manager),
) -> RedirectResponse:
    """Handle Google OAuth callback.

    Exchanges the authorization code for tokens, creates/updates the user,
    subscribes to calendar changes and sets the session cookie. Failures send
    the browser back to the login page with an error code.
    """
    settings = get_settings()

    if not code:
        return _frontend_redirect("/login?error=no_code")

    if not _verify_state(state):
        logger.warning("OAuth callback with invalid or expired state")
        return _frontend_redirect("/login?error=invalid_state")

    try:
        tokens = await oauth.exchange_code(code)
        user_info = await oauth.get_user_info(tokens.access_token)
    except (ValueError, RuntimeError, httpx.HTTPError) as e:
        logger.error(f"OAuth error: {e}")
        return _frontend_redirect("/login?error=auth_failed")

    result = await db.execute(select(User).where(User.email == user_info.email))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(email=user_info.email)
        db.add(user)

    apply_tokens(user, tokens)
    await db.commit()

    # Rollback below expires the instance
    user_id, email = user.id, user.email
    logger.info(f"User authenticated successfully: {email}")

    # Login must not fail because push notifications could not be set up
    try:
        await webhooks.setup(user)
    except CalendarError as e:
        logger.warning(f"Webhook setup failed (non-blocking): {e}")
        await db.rollback()
    except Exception:
        logger.exception("Webhook setup failed (non-blocking)")
        await db.rollback()

    session_token = create_session_token(user_id, email)

    redirect = _frontend_redirect("/calendar")
    redirect.set_cookie(
        key=settings.session_cookie_name,
        value=session_token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return redirect


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    user: User | None = Depends(get_current_user_optional),
    webhooks: WebhookManager = Depends(get_webhook_manager),
) -> MessageResponse:
    """Log out the current user.

    Stops the user's push channels and clears the session cookie. Cleanup
    failures never prevent logout.
    """
    settings = get_settings()

    if user:
        email = user.email
        try:
            await webhooks.stop_all(user)
        except Exception:
            logger.exception(f"Error during logout cleanup for {email}")
        logger.info(f"User {email} logged out")

    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )

    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    user: User = Depends(get_current_user),
    calendar: CalendarService = Depends(get_calendar_service),
) -> RefreshResponse:
    """Exchange the stored refresh token for a new access token."""
    try:
        new_expiry = await calendar.refresh_tokens(user)
    except CalendarError as e:
        raise calendar_http_error(e)

    return RefreshResponse(message="Token refreshed successfully", new_expiry=new_expiry)


@router.get("/user", response_model=UserInfoResponse)
async def get_user(
    user: User = Depends(get_current_user),
) -> UserInfoResponse:
    """Get the logged-in user's id and email."""
    return UserInfoResponse(user_id=str(user.id), email=user.email)
