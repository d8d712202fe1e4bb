"""Tests for cloud authentication and token storage."""

import stat
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from watch_minion.core.config import CloudConfig
from watch_minion.domain.session.auth import (
    Session,
    delete_session,
    load_session,
    refresh_session,
    save_session,
    send_password_reset,
    sign_in_with_password,
    sign_out,
    sign_up,
    update_password,
    validate_credentials,
)
from watch_minion.domain.sync.exceptions import AuthenticationError, TransportError

CLOUD = CloudConfig(url="https://demo.supabase.co", anon_key="anon")


def token_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body if body is not None else {}
    return response


GOOD_BODY = {
    "access_token": "new-access",
    "refresh_token": "new-refresh",
    "expires_in": 3600,
    "user": {"id": "user-1", "email": "viewer@example.com"},
}


class TestValidateCredentials:
    @pytest.mark.parametrize(
        "email,password,fragment",
        [
            ("", "secret123", "cannot be empty"),
            ("viewer@example.com", "", "cannot be empty"),
            ("not-an-email", "secret123", "valid email"),
            ("viewer@example.com", "12345", "at least 6"),
        ],
    )
    def test_rejects_bad_input(self, email, password, fragment):
        with pytest.raises(AuthenticationError) as exc_info:
            validate_credentials(email, password)
        assert fragment in str(exc_info.value)

    def test_accepts_valid_input(self):
        validate_credentials("viewer@example.com", "secret123")


class TestSignIn:
    @patch("watch_minion.domain.session.auth.requests.request")
    def test_posts_password_grant(self, mock_request):
        mock_request.return_value = token_response(body=GOOD_BODY)

        session = sign_in_with_password(CLOUD, "viewer@example.com", "secret123")

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://demo.supabase.co/auth/v1/token")
        assert kwargs["params"] == {"grant_type": "password"}
        assert kwargs["json"] == {"email": "viewer@example.com", "password": "secret123"}
        assert kwargs["headers"]["apikey"] == "anon"
        assert session.user_id == "user-1"
        assert session.access_token == "new-access"
        assert session.refresh_token == "new-refresh"
        assert not session.is_expired()

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_invalid_input_makes_no_request(self, mock_request):
        with pytest.raises(AuthenticationError):
            sign_in_with_password(CLOUD, "bad", "secret123")
        mock_request.assert_not_called()

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_rejected_credentials(self, mock_request):
        mock_request.return_value = token_response(
            400, {"error": "invalid_grant", "error_description": "Invalid login credentials"}
        )

        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            sign_in_with_password(CLOUD, "viewer@example.com", "wrong-pass")

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_server_error_is_transport_error(self, mock_request):
        mock_request.return_value = token_response(503)

        with pytest.raises(TransportError) as exc_info:
            sign_in_with_password(CLOUD, "viewer@example.com", "secret123")
        assert exc_info.value.status == 503

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_unreachable_service(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError, match="Could not reach"):
            sign_in_with_password(CLOUD, "viewer@example.com", "secret123")

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_incomplete_response(self, mock_request):
        mock_request.return_value = token_response(body={"access_token": "x"})

        with pytest.raises(AuthenticationError, match="incomplete"):
            sign_in_with_password(CLOUD, "viewer@example.com", "secret123")


class TestRefreshAndSignOut:
    def test_refresh_without_token(self):
        session = Session(user_id="user-1", access_token="a")

        with pytest.raises(AuthenticationError):
            refresh_session(CLOUD, session)

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_refresh_uses_refresh_grant(self, mock_request):
        mock_request.return_value = token_response(
            body={**GOOD_BODY, "expires_at": 4102444800}
        )
        session = Session(user_id="user-1", access_token="a", refresh_token="r")

        refreshed = refresh_session(CLOUD, session)

        kwargs = mock_request.call_args.kwargs
        assert kwargs["params"] == {"grant_type": "refresh_token"}
        assert kwargs["json"] == {"refresh_token": "r"}
        assert refreshed.expires_at == datetime(2100, 1, 1, tzinfo=timezone.utc)

    @patch("watch_minion.domain.session.auth.requests.post")
    def test_sign_out_failures_are_swallowed(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")

        sign_out(CLOUD, Session(user_id="user-1", access_token="a"))

        headers = mock_post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer a"


class TestAccountManagement:
    @patch("watch_minion.domain.session.auth.requests.request")
    def test_sign_up_pending_verification(self, mock_request):
        mock_request.return_value = token_response(
            body={"id": "user-2", "email": "new@example.com"}
        )

        assert sign_up(CLOUD, "new@example.com", "secret123") is None

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://demo.supabase.co/auth/v1/signup")
        assert kwargs["json"] == {"email": "new@example.com", "password": "secret123"}

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_sign_up_with_immediate_session(self, mock_request):
        mock_request.return_value = token_response(body=GOOD_BODY)

        session = sign_up(CLOUD, "viewer@example.com", "secret123")

        assert session.user_id == "user-1"

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_sign_up_validates_before_request(self, mock_request):
        with pytest.raises(AuthenticationError, match="at least 6"):
            sign_up(CLOUD, "new@example.com", "123")
        mock_request.assert_not_called()

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_sign_up_refused(self, mock_request):
        mock_request.return_value = token_response(422, {"msg": "User already registered"})

        with pytest.raises(AuthenticationError, match="already registered"):
            sign_up(CLOUD, "viewer@example.com", "secret123")

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_password_reset_email(self, mock_request):
        mock_request.return_value = token_response(body={})

        send_password_reset(CLOUD, "viewer@example.com", redirect_to="https://app.example")

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://demo.supabase.co/auth/v1/recover")
        assert kwargs["json"] == {"email": "viewer@example.com"}
        assert kwargs["params"] == {"redirect_to": "https://app.example"}

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_password_reset_requires_valid_email(self, mock_request):
        with pytest.raises(AuthenticationError, match="valid email"):
            send_password_reset(CLOUD, "not-an-email")
        mock_request.assert_not_called()

    @patch("watch_minion.domain.session.auth.requests.request")
    def test_update_password_uses_bearer_token(self, mock_request, session):
        mock_request.return_value = token_response(body={"id": session.user_id})

        update_password(CLOUD, session, "new-secret")

        args, kwargs = mock_request.call_args
        assert args == ("PUT", "https://demo.supabase.co/auth/v1/user")
        assert kwargs["json"] == {"password": "new-secret"}
        assert kwargs["headers"]["Authorization"] == "Bearer access-token"

    def test_update_password_too_short(self, session):
        with pytest.raises(AuthenticationError):
            update_password(CLOUD, session, "short")


class TestSessionExpiry:
    def test_no_expiry_never_expires(self):
        assert not Session(user_id="u", access_token="a").is_expired()

    def test_expiry_buffer(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        session = Session(
            user_id="u", access_token="a", expires_at=now + timedelta(minutes=4)
        )

        assert session.is_expired(now)
        assert not session.is_expired(now - timedelta(minutes=2))


class TestTokenStorage:
    def test_save_and_load(self, tmp_path, session):
        path = tmp_path / "session.json"

        save_session(session, path)

        assert load_session(path) == session
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_default_path_in_data_dir(self, tmp_path, session):
        save_session(session)

        assert (tmp_path / "data" / "watch-minion" / "session.json").exists()
        assert load_session() == session

    def test_missing_file(self, tmp_path):
        assert load_session(tmp_path / "absent.json") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")

        assert load_session(path) is None

    def test_delete_is_idempotent(self, tmp_path, session):
        path = tmp_path / "session.json"
        save_session(session, path)

        delete_session(path)
        delete_session(path)

        assert not path.exists()
