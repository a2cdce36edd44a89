"""Tests for the authentication routes."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from conftest import load_user, load_webhooks, make_http_error

from calendar_mirror.api.routes.auth import _generate_state, _oauth_states
from calendar_mirror.auth.session import verify_session_token
from calendar_mirror.calendar.errors import translate_http_error
from calendar_mirror.database.encryption import decrypt_token


class TestLogin:
    """Tests for GET /api/auth/google."""

    def test_redirects_to_google(self, client, mock_google_oauth):
        response = client.get("/api/auth/google", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://accounts.google.com/")
        state = mock_google_oauth.get_authorization_url.call_args.kwargs["state"]
        assert state in _oauth_states

    def test_not_configured(self, client, mock_google_oauth):
        mock_google_oauth.is_configured = False

        response = client.get("/api/auth/google", follow_redirects=False)

        assert response.status_code == 501


class TestCallback:
    """Tests for GET /api/auth/google/callback."""

    def test_missing_code(self, client):
        response = client.get("/api/auth/google/callback", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "http://frontend.test/login?error=no_code"

    def test_unknown_state(self, client, mock_google_oauth):
        response = client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": "forged"},
            follow_redirects=False,
        )

        assert response.headers["location"] == "http://frontend.test/login?error=invalid_state"
        mock_google_oauth.exchange_code.assert_not_awaited()

    def test_state_is_single_use(self, client, mock_calendar_client):
        state = _generate_state()
        params = {"code": "auth-code", "state": state}

        client.get("/api/auth/google/callback", params=params, follow_redirects=False)
        response = client.get("/api/auth/google/callback", params=params, follow_redirects=False)

        assert response.headers["location"].endswith("error=invalid_state")

    def test_exchange_failure(self, client, mock_google_oauth):
        mock_google_oauth.exchange_code.side_effect = ValueError("Token exchange failed: 400")

        response = client.get(
            "/api/auth/google/callback",
            params={"code": "bad-code", "state": _generate_state()},
            follow_redirects=False,
        )

        assert response.headers["location"] == "http://frontend.test/login?error=auth_failed"

    @pytest.mark.parametrize("step", ["exchange_code", "get_user_info"])
    def test_network_failure(self, client, mock_google_oauth, step):
        """Google being unreachable is an auth failure, not a server error."""
        getattr(mock_google_oauth, step).side_effect = httpx.ConnectError("connection refused")

        response = client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == "http://frontend.test/login?error=auth_failed"

    def test_new_user_signed_in(self, client, db_engine, mock_calendar_client):
        response = client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == "http://frontend.test/calendar"

        user = load_user(db_engine, "ada@example.com")
        assert user is not None
        assert user.access_token != "new-access-token"
        assert decrypt_token(user.access_token) == "new-access-token"
        assert decrypt_token(user.refresh_token) == "new-refresh-token"

        cookie = response.cookies.get("session")
        session = verify_session_token(cookie)
        assert session.user_id == user.id
        assert session.email == "ada@example.com"

        set_cookie = response.headers["set-cookie"].lower()
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie

        webhooks = load_webhooks(db_engine)
        assert len(webhooks) == 1
        assert webhooks[0].user_id == user.id
        assert webhooks[0].channel_id.startswith(f"{user.id}-")
        assert webhooks[0].resource_id == "resource-new"

    def test_existing_user_updated(self, client, db_engine, user, mock_calendar_client):
        client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        stored = load_user(db_engine, "ada@example.com")
        assert stored.id == user.id
        assert decrypt_token(stored.access_token) == "new-access-token"

    def test_missing_refresh_token_keeps_stored_one(
        self, client, db_engine, user, mock_google_oauth, mock_calendar_client
    ):
        mock_google_oauth.exchange_code.return_value.refresh_token = None

        client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        stored = load_user(db_engine, "ada@example.com")
        assert decrypt_token(stored.refresh_token) == "stored-refresh-token"

    def test_old_channels_replaced(self, client, db_engine, webhook, mock_calendar_client):
        client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        mock_calendar_client.stop_channel.assert_called_once_with(
            webhook.channel_id, "resource-abc"
        )
        webhooks = load_webhooks(db_engine)
        assert len(webhooks) == 1
        assert webhooks[0].channel_id != webhook.channel_id

    def test_webhook_failure_does_not_block_login(
        self, client, db_engine, mock_calendar_client
    ):
        mock_calendar_client.watch_events.side_effect = translate_http_error(
            make_http_error(403), "watch"
        )

        response = client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": _generate_state()},
            follow_redirects=False,
        )

        assert response.headers["location"] == "http://frontend.test/calendar"
        assert response.cookies.get("session")
        assert load_user(db_engine, "ada@example.com") is not None
        assert load_webhooks(db_engine) == []


class TestUser:
    """Tests for GET /api/auth/user."""

    def test_requires_session(self, client):
        response = client.get("/api/auth/user")
        assert response.status_code == 401

    def test_returns_user(self, auth_client, user):
        response = auth_client.get("/api/auth/user")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "userId": str(user.id),
            "email": "ada@example.com",
        }


class TestLogout:
    """Tests for POST /api/auth/logout."""

    def test_clears_cookie_and_channels(self, auth_client, db_engine, webhook, mock_calendar_client):
        response = auth_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        assert 'session=""' in response.headers["set-cookie"]
        mock_calendar_client.stop_channel.assert_called_once_with(
            webhook.channel_id, "resource-abc"
        )
        assert load_webhooks(db_engine) == []

    def test_google_failure_still_logs_out(
        self, auth_client, db_engine, webhook, mock_calendar_client
    ):
        mock_calendar_client.stop_channel.side_effect = translate_http_error(
            make_http_error(404), "stop"
        )

        response = auth_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert load_webhooks(db_engine) == []

    def test_without_session(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 200


class TestRefresh:
    """Tests for POST /api/auth/refresh."""

    def test_refreshes_token(self, auth_client, db_engine, mock_google_oauth):
        response = auth_client.post("/api/auth/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Token refreshed successfully"
        assert "newExpiry" in data
        stored = load_user(db_engine, "ada@example.com")
        assert decrypt_token(stored.access_token) == "refreshed-access-token"

    def test_rejected_refresh(self, auth_client, mock_google_oauth):
        mock_google_oauth.refresh_access_token.side_effect = ValueError("invalid_grant")

        response = auth_client.post("/api/auth/refresh")

        assert response.status_code == 401

    def test_requires_session(self, client):
        assert client.post("/api/auth/refresh").status_code == 401


class TestOAuthState:
    """Tests for the in-memory OAuth state store."""

    def test_abandoned_states_purged(self, client):
        for _ in range(5):
            client.get("/api/auth/google", follow_redirects=False)
        assert len(_oauth_states) == 5

        an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
        for state in _oauth_states:
            _oauth_states[state] = an_hour_ago

        client.get("/api/auth/google", follow_redirects=False)

        assert len(_oauth_states) == 1

    def test_recent_states_kept(self):
        first = _generate_state()
        second = _generate_state()
        assert set(_oauth_states) == {first, second}
