"""Pytest fixtures for calendar mirror tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Google OAuth, Google Calendar)
2. Each test gets its own throwaway SQLite database
3. Isolated test environment with controlled configuration
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

# Set test environment BEFORE importing application modules
# This ensures no real services are contacted during test collection
os.environ.setdefault("SECRET_KEY", "test-secret-key-at-least-32-characters-long")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("WEBHOOK_URL", "https://hooks.example.com/api/webhooks/calendar")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")
os.environ.setdefault("ENABLE_TEST_ROUTES", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from calendar_mirror.api import create_app
from calendar_mirror.auth.google import GoogleTokens, GoogleUserInfo, get_google_oauth
from calendar_mirror.auth.session import create_session_token
from calendar_mirror.calendar.google_calendar import CalendarEvent, WatchChannel
from calendar_mirror.database.connection import get_db_session
from calendar_mirror.database.encryption import encrypt_token
from calendar_mirror.database.models import Base, User, Webhook


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from calendar_mirror.api.routes import auth as auth_routes
    from calendar_mirror.config import get_settings

    get_settings.cache_clear()
    get_google_oauth.cache_clear()
    auth_routes._oauth_states.clear()
    yield
    get_settings.cache_clear()
    get_google_oauth.cache_clear()


def make_http_error(status: int, message: str = "error") -> HttpError:
    """Build the error googleapiclient raises for a failed request."""
    content = f'{{"error": {{"code": {status}, "message": "{message}"}}}}'.encode()
    return HttpError(httplib2.Response({"status": status}), content)


def make_event(event_id: str = "evt-1", **overrides) -> CalendarEvent:
    data = {
        "id": event_id,
        "summary": "Team standup",
        "start": "2026-10-20T09:00:00+00:00",
        "end": "2026-10-20T09:15:00+00:00",
        "status": "confirmed",
        "etag": '"3181161784712000"',
        "event_type": "default",
    }
    data.update(overrides)
    return CalendarEvent(**data)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "calendar_mirror.db"
    engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(engine)
    engine.dispose()
    return path


@pytest.fixture
def db_engine(db_path):
    """Synchronous engine for seeding and inspecting the test database."""
    engine = create_engine(f"sqlite:///{db_path}")
    yield engine
    engine.dispose()


@pytest.fixture
def async_session_factory(db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


def load_user(db_engine, email: str) -> User | None:
    with Session(db_engine, expire_on_commit=False) as session:
        return session.execute(select(User).where(User.email == email)).scalar_one_or_none()


def load_webhooks(db_engine) -> list[Webhook]:
    with Session(db_engine, expire_on_commit=False) as session:
        return list(session.execute(select(Webhook)).scalars().all())


@pytest.fixture
def user(db_engine) -> User:
    """A signed-up user whose access token is still valid."""
    with Session(db_engine, expire_on_commit=False) as session:
        user = User(
            email="ada@example.com",
            access_token=encrypt_token("stored-access-token"),
            refresh_token=encrypt_token("stored-refresh-token"),
            token_expiry=datetime.now(timezone.utc) + timedelta(hours=1),
            sync_token=None,
        )
        session.add(user)
        session.commit()
    return user


@pytest.fixture
def webhook(db_engine, user: User) -> Webhook:
    with Session(db_engine, expire_on_commit=False) as session:
        webhook = Webhook(
            user_id=user.id,
            channel_id=f"{user.id}-1760000000000",
            resource_id="resource-abc",
            expiration=datetime.now(timezone.utc) + timedelta(days=7),
        )
        session.add(webhook)
        session.commit()
    return webhook


# =============================================================================
# External Service Mocks
# =============================================================================


@pytest.fixture
def mock_google_oauth():
    """Mock Google OAuth to prevent external authentication calls."""
    mock_instance = MagicMock()
    mock_instance.client_id = "test-client-id"
    mock_instance.client_secret = "test-client-secret"
    mock_instance.is_configured = True
    mock_instance.get_authorization_url.return_value = (
        "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client-id"
    )
    mock_instance.exchange_code = AsyncMock(
        return_value=GoogleTokens(
            access_token="new-access-token",
            refresh_token="new-refresh-token",
            token_type="Bearer",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            scope="https://www.googleapis.com/auth/calendar",
        )
    )
    mock_instance.get_user_info = AsyncMock(
        return_value=GoogleUserInfo(
            id="google-123", email="ada@example.com", verified_email=True
        )
    )
    mock_instance.refresh_access_token = AsyncMock(
        return_value=GoogleTokens(
            access_token="refreshed-access-token",
            refresh_token="stored-refresh-token",
            token_type="Bearer",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            scope="",
        )
    )
    return mock_instance


@pytest.fixture
def mock_calendar_client():
    """Mock GoogleCalendarClient to prevent Calendar API calls."""
    with patch("calendar_mirror.calendar.service.GoogleCalendarClient") as mock_client:
        mock_instance = MagicMock()
        mock_instance.list_upcoming_events.return_value = [make_event()]
        mock_instance.list_changes.return_value = ([], "sync-token-1")
        mock_instance.get_event.return_value = make_event()
        mock_instance.insert_event.return_value = make_event("evt-new")
        mock_instance.update_event.return_value = make_event(summary="Renamed")
        mock_instance.delete_event.return_value = None
        mock_instance.watch_events.side_effect = lambda channel_id, *args, **kwargs: (
            WatchChannel(
                channel_id=channel_id,
                resource_id="resource-new",
                expiration=datetime.now(timezone.utc) + timedelta(days=7),
            )
        )
        mock_instance.stop_channel.return_value = None
        mock_client.return_value = mock_instance
        yield mock_instance


@pytest.fixture
def mock_httpx_client():
    """Mock httpx client to prevent any external HTTP calls."""
    with patch("calendar_mirror.auth.google.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.get = AsyncMock()
        mock_instance.post = AsyncMock()
        mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        mock_client.return_value = mock_instance
        yield mock_instance


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def app(async_session_factory, mock_google_oauth):
    app = create_app()

    async def override_db_session():
        async with async_session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_google_oauth] = lambda: mock_google_oauth
    return app


@pytest.fixture
def client(app) -> TestClient:
    """Unauthenticated client. The lifespan is not run; the DB is overridden."""
    return TestClient(app)


@pytest.fixture
def auth_client(app, user: User) -> TestClient:
    """Client carrying a valid session cookie for `user`."""
    client = TestClient(app)
    client.cookies.set("session", create_session_token(user.id, user.email))
    return client
