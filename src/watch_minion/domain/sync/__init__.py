"""Sync domain - local-first reconciliation with the cloud store.

This domain handles:
- Transcoding records between local and cloud shapes
- The session/connectivity gate and its exclusive lock
- Incremental two-way reconcile (push, then pull and merge)
- Force pull / force push / erase recovery operations
"""

from .engine import SyncEngine, SyncSummary
from .exceptions import (
    AlreadyRunningError,
    AuthenticationError,
    DestructiveOperationError,
    GateError,
    NotAuthenticatedError,
    OfflineError,
    StoreError,
    SyncError,
    TranscodeError,
    TransportError,
)
from .gate import SessionGate
from .recovery import EraseResult, EraseScope, RecoveryOperations
from .remote import RemoteStore, RestRemoteStore
from .retry import RetryPolicy

__all__ = [
    "SyncEngine",
    "SyncSummary",
    "AlreadyRunningError",
    "AuthenticationError",
    "DestructiveOperationError",
    "GateError",
    "NotAuthenticatedError",
    "OfflineError",
    "StoreError",
    "SyncError",
    "TranscodeError",
    "TransportError",
    "SessionGate",
    "EraseResult",
    "EraseScope",
    "RecoveryOperations",
    "RemoteStore",
    "RestRemoteStore",
    "RetryPolicy",
]
