"""
Cloud authentication and session token management.

Handles sign-up, password sign-in, token refresh, sign-out, password reset
and password change against the cloud project's auth endpoint, plus secure
token storage.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from loguru import logger

from watch_minion.core.config import CloudConfig, get_data_dir
from watch_minion.domain.sync.exceptions import AuthenticationError, TransportError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
EXPIRY_BUFFER = timedelta(minutes=5)


@dataclass(frozen=True)
class Session:
    """An authenticated cloud session. ``user_id`` scopes every cloud call."""

    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    email: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if the access token is expired (with 5-minute buffer)."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= (self.expires_at - EXPIRY_BUFFER)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        expires_at = data.get("expires_at")
        return cls(
            user_id=data["user_id"],
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            email=data.get("email"),
        )


def validate_email(email: str) -> None:
    if not email or not EMAIL_PATTERN.match(email):
        raise AuthenticationError("Please enter a valid email address.")


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthenticationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )


def validate_credentials(email: str, password: str) -> None:
    """Client-side credential checks, run before any request.

    Raises:
        AuthenticationError: With a message suitable for the user
    """
    if not email or not password:
        raise AuthenticationError("Email and password cannot be empty.")
    validate_email(email)
    validate_password(password)


def _session_from_token_response(data: Dict[str, Any]) -> Session:
    user = data.get("user") or {}
    if not data.get("access_token") or not user.get("id"):
        raise AuthenticationError("Auth service returned an incomplete session.")

    if data.get("expires_at"):
        expires_at = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
    else:
        expires_in = int(data.get("expires_in", 3600))
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

    return Session(
        user_id=user["id"],
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_at=expires_at,
        email=user.get("email"),
    )


def _auth_request(
    config: CloudConfig,
    method: str,
    path: str,
    payload: Dict[str, str],
    params: Optional[Dict[str, str]] = None,
    access_token: Optional[str] = None,
) -> requests.Response:
    """Send one request to the auth service and check its status.

    Raises:
        AuthenticationError: The service rejected the request
        TransportError: Service unreachable or failing
    """
    headers = {"apikey": config.anon_key, "Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    try:
        response = requests.request(
            method,
            f"{config.url}/auth/v1/{path}",
            params=params,
            json=payload,
            headers=headers,
            timeout=config.request_timeout_seconds,
        )
    except requests.RequestException as e:
        raise TransportError(f"Could not reach the auth service: {e}") from e

    _raise_for_auth_status(response)
    return response


def _raise_for_auth_status(response: requests.Response) -> None:
    if response.status_code in (400, 401, 403, 422):
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or "Invalid login credentials"
        )
        raise AuthenticationError(message)
    if response.status_code >= 400:
        raise TransportError(
            f"Auth service error: HTTP {response.status_code}",
            status=response.status_code,
        )


def _token_request(
    config: CloudConfig, grant_type: str, payload: Dict[str, str]
) -> Session:
    response = _auth_request(
        config, "POST", "token", payload, params={"grant_type": grant_type}
    )
    return _session_from_token_response(response.json())


def sign_in_with_password(config: CloudConfig, email: str, password: str) -> Session:
    """Exchange email + password for a session.

    Raises:
        AuthenticationError: Invalid input or rejected credentials
        TransportError: Auth service unreachable
    """
    validate_credentials(email, password)
    session = _token_request(
        config, "password", {"email": email, "password": password}
    )
    logger.info(f"Signed in as {session.email or session.user_id}")
    return session


def refresh_session(config: CloudConfig, session: Session) -> Session:
    """Trade the refresh token for a new access token.

    Raises:
        AuthenticationError: No refresh token, or it was rejected
        TransportError: Auth service unreachable
    """
    if not session.refresh_token:
        raise AuthenticationError("Session cannot be refreshed; please log in again.")
    refreshed = _token_request(
        config, "refresh_token", {"refresh_token": session.refresh_token}
    )
    logger.debug(f"Refreshed session for user {refreshed.user_id}")
    return refreshed


def sign_out(config: CloudConfig, session: Session) -> None:
    """Revoke the session remotely. Best effort: failures are only logged."""
    try:
        response = requests.post(
            f"{config.url}/auth/v1/logout",
            headers={
                "apikey": config.anon_key,
                "Authorization": f"Bearer {session.access_token}",
            },
            timeout=config.request_timeout_seconds,
        )
        if response.status_code >= 400:
            logger.warning(f"Remote sign-out returned HTTP {response.status_code}")
    except requests.RequestException as e:
        logger.warning(f"Remote sign-out failed: {e}")


def sign_up(config: CloudConfig, email: str, password: str) -> Optional[Session]:
    """Create an account.

    Returns:
        A session when the project signs new users in immediately, or None
        when the account must first be confirmed from the verification email

    Raises:
        AuthenticationError: Invalid input or the service refused the account
        TransportError: Auth service unreachable
    """
    validate_credentials(email, password)
    response = _auth_request(
        config, "POST", "signup", {"email": email, "password": password}
    )
    data = response.json()
    if data.get("access_token"):
        session = _session_from_token_response(data)
        logger.info(f"Signed up and signed in as {session.email or session.user_id}")
        return session

    logger.info(f"Signed up {email}; waiting for email verification")
    return None


def send_password_reset(
    config: CloudConfig, email: str, redirect_to: Optional[str] = None
) -> None:
    """Ask the auth service to email a password-reset link.

    Raises:
        AuthenticationError: Invalid email or the request was refused
        TransportError: Auth service unreachable
    """
    validate_email(email)
    params = {"redirect_to": redirect_to} if redirect_to else None
    _auth_request(config, "POST", "recover", {"email": email}, params=params)
    logger.info(f"Password reset requested for {email}")


def update_password(config: CloudConfig, session: Session, new_password: str) -> None:
    """Set a new password for the signed-in user.

    Raises:
        AuthenticationError: Password too short or the update was refused
        TransportError: Auth service unreachable
    """
    validate_password(new_password)
    _auth_request(
        config,
        "PUT",
        "user",
        {"password": new_password},
        access_token=session.access_token,
    )
    logger.info(f"Password updated for user {session.user_id}")


# ==================== Token storage ====================


def get_session_path() -> Path:
    """Get the path of the stored session file."""
    return get_data_dir() / "session.json"


def load_session(path: Optional[Path] = None) -> Optional[Session]:
    """Load the stored session, or None if absent or unreadable."""
    path = path or get_session_path()
    if not path.exists():
        return None

    try:
        with open(path, encoding="utf-8") as f:
            return Session.from_dict(json.load(f))
    except (OSError, ValueError, KeyError) as e:
        logger.warning(f"Ignoring unreadable session file {path}: {e}")
        return None


def save_session(session: Session, path: Optional[Path] = None) -> None:
    """Save session tokens to file with secure permissions."""
    path = path or get_session_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(session.to_dict(), f, indent=2)

    # Owner read/write only
    path.chmod(0o600)


def delete_session(path: Optional[Path] = None) -> None:
    path = path or get_session_path()
    path.unlink(missing_ok=True)
