"""Session/connectivity gate for sync-family operations.

One gate object holds the active session, the online flag and a single
exclusive lock. Reconcile, force pull, force push and cloud erase all pass
through ``operation()``, so at most one of them is mid-flight; a second
trigger fails fast with AlreadyRunningError and is never queued.
"""

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional

from loguru import logger

from .exceptions import AlreadyRunningError, NotAuthenticatedError, OfflineError

if TYPE_CHECKING:
    from watch_minion.domain.session.auth import Session


class SessionGate:
    """Decides whether a sync-family operation may start."""

    def __init__(self, session: Optional["Session"] = None, online: bool = True):
        self._session = session
        self._online = online
        self._state_lock = threading.Lock()
        self._operation_lock = threading.Lock()
        self._current_operation: Optional[str] = None

    # ==================== Accessors ====================

    @property
    def session(self) -> Optional["Session"]:
        with self._state_lock:
            return self._session

    @property
    def authenticated(self) -> bool:
        return self.session is not None

    @property
    def online(self) -> bool:
        with self._state_lock:
            return self._online

    @property
    def running(self) -> Optional[str]:
        """Name of the operation in flight, or None."""
        return self._current_operation

    def access_token(self) -> Optional[str]:
        session = self.session
        return session.access_token if session else None

    def set_session(self, session: Optional["Session"]) -> None:
        with self._state_lock:
            self._session = session
        if session:
            logger.info(f"Session active for user {session.user_id}")
        else:
            logger.info("Session cleared; sync actions disabled")

    def clear_session(self) -> None:
        self.set_session(None)

    def set_online(self, online: bool) -> None:
        with self._state_lock:
            changed = self._online != online
            self._online = online
        if changed:
            logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

    # ==================== Checks ====================

    def can_sync(self) -> "Session":
        """Return the active session if a sync-family operation may start.

        Raises:
            NotAuthenticatedError: No session
            OfflineError: Device is offline
            AlreadyRunningError: Another operation holds the lock
        """
        with self._state_lock:
            session, online = self._session, self._online
        if session is None:
            raise NotAuthenticatedError()
        if not online:
            raise OfflineError()
        if self._operation_lock.locked():
            raise AlreadyRunningError(
                f"{self._current_operation or 'A sync'} is already in progress."
            )
        return session

    @contextmanager
    def operation(self, name: str) -> Iterator["Session"]:
        """Hold the exclusive sync lock for the duration of ``name``.

        Yields the session captured when the operation started.
        """
        session = self.can_sync()
        with self.exclusive(name):
            yield session

    @contextmanager
    def exclusive(self, name: str) -> Iterator[None]:
        """Hold the exclusive lock without the session and connectivity checks.

        Local-only writers (logout, local erase) go through here so they can
        never interleave with a cycle that is about to save the store.

        Raises:
            AlreadyRunningError: Another operation holds the lock
        """
        if not self._operation_lock.acquire(blocking=False):
            raise AlreadyRunningError(
                f"{self._current_operation or 'A sync'} is already in progress."
            )
        self._current_operation = name
        logger.debug(f"{name} started")
        try:
            yield
        finally:
            self._current_operation = None
            self._operation_lock.release()
            logger.debug(f"{name} finished")
