"""Sync-specific exceptions for error handling.

Every exception's message is a human-readable summary suitable for showing
to the user as-is.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for sync-family operations."""

    pass


class GateError(SyncError):
    """Raised when a sync-family operation may not start. Nothing was changed."""

    pass


class NotAuthenticatedError(GateError):
    """Raised when no cloud session is active."""

    def __init__(self, message: str = None):
        super().__init__(message or "Not logged in. Please log in to sync data.")


class OfflineError(GateError):
    """Raised when the device is offline."""

    def __init__(self, message: str = None):
        super().__init__(
            message or "You are offline. Sync will be available when you reconnect."
        )


class AlreadyRunningError(GateError):
    """Raised when another sync-family operation is in flight."""

    def __init__(self, message: str = None):
        super().__init__(message or "A sync is already in progress.")


class TransportError(SyncError):
    """Raised when a cloud request fails.

    Steps already committed remotely stay committed; local sync state is
    left untouched so a retry is exactly correct.
    """

    def __init__(
        self, message: str, step: Optional[str] = None, status: Optional[int] = None
    ):
        self.step = step
        self.status = status
        super().__init__(message)

    def for_step(self, step: str) -> "TransportError":
        """Return a copy labelled with the sync step that failed."""
        return TransportError(f"{step} failed: {self}", step=step, status=self.status)


class TranscodeError(SyncError):
    """Raised when a record cannot be converted between local and cloud shapes."""

    pass


class InvalidRecordError(TranscodeError):
    """Raised when a local record lacks an identifier or owner."""

    pass


class InvalidRemoteRowError(TranscodeError):
    """Raised when a cloud row lacks an identifier."""

    pass


class StoreError(SyncError):
    """Raised when the local durable store cannot be read or written."""

    pass


class DestructiveOperationError(SyncError):
    """Raised when a force pull, force push or erase fails part-way.

    Never retried automatically: repeating a partially-failed force push
    could duplicate or omit rows.
    """

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class AuthenticationError(SyncError):
    """Raised when sign-in or token refresh is rejected."""

    pass
