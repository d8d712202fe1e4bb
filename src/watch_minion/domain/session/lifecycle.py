"""
Session lifecycle: login, logout, session loss and connectivity.

Explicit logout wipes the local store. Implicit session loss (token expiry,
rejected refresh) keeps every local record, clears the gate's session so
sync actions are disabled, and keeps serving cached data.
"""

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

from watch_minion.core.config import CloudConfig
from watch_minion.core.output import log
from watch_minion.domain.sync.exceptions import (
    AuthenticationError,
    NotAuthenticatedError,
    TransportError,
)
from watch_minion.domain.sync.gate import SessionGate
from watch_minion.domain.sync.remote import RemoteStore

from . import auth
from .auth import Session

if TYPE_CHECKING:
    from watch_minion.domain.records.store import LocalRecordStore


class LifecycleState(str, Enum):
    PRE_CONTENT = "pre-content"  # no session, no local data
    GUEST_WITH_DATA = "guest-with-data"
    AUTHENTICATED = "authenticated"
    SESSION_EXPIRED = "session-expired"  # lost session, cached data retained


class SessionController:
    """Drives the gate's session and online flag through the app lifecycle."""

    def __init__(
        self,
        config: CloudConfig,
        gate: SessionGate,
        store: "LocalRecordStore",
        remote: Optional[RemoteStore] = None,
        ping_timeout: float = 2.0,
        session_path: Optional[Path] = None,
    ):
        self.config = config
        self.gate = gate
        self.store = store
        self.remote = remote
        self.ping_timeout = ping_timeout
        self.session_path = session_path
        self._state = LifecycleState.PRE_CONTENT

    @property
    def state(self) -> LifecycleState:
        return self._state

    def _guest_state(self) -> LifecycleState:
        return (
            LifecycleState.GUEST_WITH_DATA
            if self.store.count() > 0
            else LifecycleState.PRE_CONTENT
        )

    def start(self) -> LifecycleState:
        """Restore a saved session, check connectivity, pick the initial state."""
        online = True
        if self.remote is not None:
            # Only time-boxed call in the app
            online = self.remote.ping(self.ping_timeout)
        self.gate.set_online(online)

        session = auth.load_session(self.session_path)
        if session is None:
            self._state = self._guest_state()
            logger.info(f"Started without a session ({self._state.value})")
            return self._state

        if session.is_expired() and online:
            try:
                session = self._refresh(session)
            except AuthenticationError as e:
                return self.session_lost(f"Saved session could not be refreshed: {e}")
            except TransportError as e:
                logger.warning(f"Token refresh deferred: {e}")

        self.gate.set_session(session)
        self._state = LifecycleState.AUTHENTICATED
        if not online:
            log("⚠️  Offline: showing cached data, sync disabled", level="warning")
        return self._state

    def login(self, email: str, password: str) -> Session:
        """Sign in with credentials. Existing local (guest) data is kept.

        Raises:
            AuthenticationError: Invalid or rejected credentials
            TransportError: Auth service unreachable
        """
        session = auth.sign_in_with_password(self.config, email, password)
        auth.save_session(session, self.session_path)
        self.gate.set_session(session)
        self._state = LifecycleState.AUTHENTICATED
        log(f"✅ Logged in as {session.email or session.user_id}")
        return session

    def sign_up(self, email: str, password: str) -> Optional[Session]:
        """Create an account; signs in at once when the project allows it.

        Returns:
            The new session, or None while email verification is pending
        """
        session = auth.sign_up(self.config, email, password)
        if session is None:
            log("📧 Account created. Check your email to verify it, then log in.")
            return None

        auth.save_session(session, self.session_path)
        self.gate.set_session(session)
        self._state = LifecycleState.AUTHENTICATED
        log(f"✅ Account created; logged in as {session.email or session.user_id}")
        return session

    def request_password_reset(self, email: str) -> None:
        auth.send_password_reset(self.config, email)
        log("📧 Password reset link sent. Check your inbox.")

    def change_password(self, new_password: str) -> None:
        """Set a new password for the logged-in user.

        Raises:
            GateError: Not logged in or offline
            AuthenticationError: Password rejected
            TransportError: Auth service unreachable
        """
        session = self.ensure_fresh_token()
        auth.update_password(self.config, session, new_password)
        log("✅ Password updated")

    def logout(self) -> int:
        """Explicit logout: revoke the session and wipe the local store.

        Holds the gate's exclusive lock so an in-flight sync cannot save its
        merged store back after the wipe.

        Returns:
            Number of local records removed

        Raises:
            AlreadyRunningError: A sync-family operation is in progress
        """
        with self.gate.exclusive("Logout"):
            session = self.gate.session
            if session is not None and self.gate.online:
                auth.sign_out(self.config, session)
            auth.delete_session(self.session_path)
            self.gate.clear_session()

            removed = self.store.clear()
            self._state = LifecycleState.PRE_CONTENT

        log(f"👋 Logged out; removed {removed} local records from this device")
        return removed

    def session_lost(self, reason: str) -> LifecycleState:
        """Implicit session loss: disable sync, keep all local data."""
        auth.delete_session(self.session_path)
        self.gate.clear_session()

        if self.store.count() > 0:
            self._state = LifecycleState.SESSION_EXPIRED
            log(
                f"⚠️  {reason}. Your local data is kept; log in again to sync.",
                level="warning",
            )
        else:
            self._state = LifecycleState.PRE_CONTENT
            log(f"⚠️  {reason}. Please log in.", level="warning")
        return self._state

    def connectivity_changed(self, online: bool) -> None:
        self.gate.set_online(online)
        if online and self.gate.authenticated:
            log("🌐 Back online; sync is available")
        elif not online:
            log("📴 Offline: showing cached data, sync disabled", level="warning")

    def ensure_fresh_token(self) -> Session:
        """Refresh the access token if it is about to expire.

        The gate is checked first, so an offline device never contacts the
        auth service.

        Raises:
            GateError: Not authenticated, offline, or a sync is already running
            NotAuthenticatedError: Refresh was rejected
            TransportError: Auth service unreachable
        """
        session = self.gate.can_sync()
        if not session.is_expired():
            return session

        try:
            session = self._refresh(session)
        except AuthenticationError as e:
            self.session_lost(f"Session expired: {e}")
            raise NotAuthenticatedError(
                "Your session has expired. Please log in again."
            ) from e
        self.gate.set_session(session)
        return session

    def _refresh(self, session: Session) -> Session:
        refreshed = auth.refresh_session(self.config, session)
        auth.save_session(refreshed, self.session_path)
        return refreshed
