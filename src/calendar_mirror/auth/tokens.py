"""Reading and writing a user's Google OAuth tokens.

The `users` table stores ciphertext; these helpers are the only place that
encrypts or decrypts it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from calendar_mirror.auth.google import GoogleTokens
from calendar_mirror.config import get_settings
from calendar_mirror.database.encryption import decrypt_token, encrypt_token
from calendar_mirror.database.models import User


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def apply_tokens(user: User, tokens: GoogleTokens) -> None:
    """Store freshly issued tokens on a user.

    The refresh token is only replaced when Google sent a new one.
    """
    settings = get_settings()

    user.access_token = encrypt_token(tokens.access_token)
    if tokens.refresh_token:
        user.refresh_token = encrypt_token(tokens.refresh_token)
    elif user.refresh_token is None:
        user.refresh_token = ""

    user.token_expiry = tokens.expires_at or (
        datetime.now(timezone.utc)
        + timedelta(seconds=settings.default_token_lifetime_seconds)
    )


def get_access_token(user: User) -> str:
    return decrypt_token(user.access_token)


def get_refresh_token(user: User) -> str:
    return decrypt_token(user.refresh_token)


def is_token_expired(user: User, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return as_utc(user.token_expiry) <= now
