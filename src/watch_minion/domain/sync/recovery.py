"""
Disaster-recovery operations: force pull, force push and data erase.

These overwrite one side completely instead of reconciling. Callers must get
explicit confirmation from the user first. Each runs under the gate's
exclusive lock with a single attempt per cloud call; any failure after the
gate check is surfaced as DestructiveOperationError and never retried.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from loguru import logger

from watch_minion.core.output import log
from watch_minion.domain.records.models import SyncState

from .engine import SyncEngine, tombstone_patch
from .exceptions import DestructiveOperationError, NotAuthenticatedError, SyncError
from .gate import SessionGate
from .remote import RemoteStore
from .retry import SINGLE_ATTEMPT
from .transcoder import to_local_batch, to_remote_batch

if TYPE_CHECKING:
    from watch_minion.domain.records.store import LocalRecordStore


class EraseScope(str, Enum):
    LOCAL = "local"
    CLOUD = "cloud"
    BOTH = "both"


@dataclass(frozen=True)
class EraseResult:
    local_removed: int = 0
    cloud_erased: int = 0
    cloud_skipped: bool = False


class RecoveryOperations:
    """Force pull / force push / erase against one gate, cloud and local store."""

    def __init__(
        self,
        gate: SessionGate,
        remote: RemoteStore,
        store: "LocalRecordStore",
        engine: Optional[SyncEngine] = None,
        on_store_changed: Optional[Callable[[], None]] = None,
    ):
        self.gate = gate
        self.remote = remote
        self.store = store
        self.engine = engine
        self.on_store_changed = on_store_changed

    def _notify(self) -> None:
        if self.on_store_changed:
            self.on_store_changed()

    def force_pull(self) -> int:
        """Replace the local store with the owner's live cloud records.

        Unpushed local edits are discarded.

        Returns:
            Number of records now stored locally

        Raises:
            GateError: Operation may not start (nothing changed)
            DestructiveOperationError: Fetch or save failed
        """
        with self.gate.operation("Force pull") as session:
            try:
                rows = SINGLE_ATTEMPT.call(self.remote.select, session.user_id)
                records = [r for r in to_local_batch(rows) if not r.is_deleted]
                self.store.save(records)
            except SyncError as e:
                logger.error(f"Force pull failed: {e}")
                raise DestructiveOperationError("Force pull", e) from e

        self._notify()
        log(f"✅ Force pull complete: {len(records)} records loaded from the cloud")
        return len(records)

    def force_push(self) -> int:
        """Replace the owner's cloud rows with the local non-tombstoned records.

        Local tombstones are purged and the remaining records marked synced.

        Returns:
            Number of rows written to the cloud

        Raises:
            GateError: Operation may not start (nothing changed)
            DestructiveOperationError: Load, delete, insert or save failed
        """
        with self.gate.operation("Force push") as session:
            owner_id = session.user_id
            try:
                live = [r for r in self.store.load() if not r.is_deleted]
                rows, skipped_ids = to_remote_batch(live, owner_id)

                SINGLE_ATTEMPT.call(self.remote.delete_where_owner, owner_id)
                SINGLE_ATTEMPT.call(self.remote.insert, rows)

                unsent = set(skipped_ids)
                self.store.save(
                    [
                        r if r.id in unsent else replace(r, sync_state=SyncState.SYNCED)
                        for r in live
                    ]
                )
            except SyncError as e:
                logger.error(f"Force push failed: {e}")
                raise DestructiveOperationError("Force push", e) from e

        self._notify()
        log(f"✅ Force push complete: {len(rows)} records written to the cloud")
        return len(rows)

    def erase_data(self, scope: EraseScope) -> EraseResult:
        """Erase local data, cloud data, or both.

        Cloud erase soft-deletes every live row for the owner. A cloud-only
        erase is followed by a reconcile so the local store converges.

        Raises:
            NotAuthenticatedError: Cloud-only erase without a session
            GateError: Offline or a sync is already running
            DestructiveOperationError: A cloud call or local clear failed
        """
        scope = EraseScope(scope)
        cloud_erased = 0
        cloud_skipped = False
        local_removed = 0

        if scope in (EraseScope.CLOUD, EraseScope.BOTH):
            if self.gate.authenticated:
                cloud_erased = self._erase_cloud()
            elif scope is EraseScope.CLOUD:
                raise NotAuthenticatedError(
                    "You must be logged in to erase cloud data."
                )
            else:
                log("⚠️  Not logged in; skipping cloud erase", level="warning")
                cloud_skipped = True

        if scope in (EraseScope.LOCAL, EraseScope.BOTH):
            with self.gate.exclusive("Erase local data"):
                try:
                    local_removed = self.store.clear()
                except SyncError as e:
                    raise DestructiveOperationError("Erase local data", e) from e
            self._notify()
            log(f"🗑️  Erased {local_removed} local records")

        if scope is EraseScope.CLOUD and self.engine is not None:
            self.engine.reconcile(silent=True)

        return EraseResult(
            local_removed=local_removed,
            cloud_erased=cloud_erased,
            cloud_skipped=cloud_skipped,
        )

    def _erase_cloud(self) -> int:
        with self.gate.operation("Erase cloud data") as session:
            owner_id = session.user_id
            try:
                index = SINGLE_ATTEMPT.call(self.remote.select_index, owner_id)
                ids = [record_id for record_id, _ in index]
                SINGLE_ATTEMPT.call(
                    self.remote.update_where_id_in, owner_id, ids, tombstone_patch()
                )
            except SyncError as e:
                logger.error(f"Cloud erase failed: {e}")
                raise DestructiveOperationError("Erase cloud data", e) from e

        log(f"🗑️  Erased {len(ids)} cloud records")
        return len(ids)
