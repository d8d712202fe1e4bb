"""
Incremental two-way sync between the local store and the cloud.

One reconcile cycle runs these steps in order, under the gate's exclusive lock:

1. Partition local records by sync state (creates, edits, deletes).
2. Push deletions: tombstone all deleted ids remotely in one request.
3. Push upserts: transcode creates + edits and upsert them in one request.
4. Pull discovery: fetch the owner's live (id, last_modified) index.
5. Diff: pull ids unknown locally or strictly newer remotely.
6. Fetch the pull set in one request and merge it by id.
7. Purge tombstoned records locally.
8. Mark every surviving record ``synced``.
9. Persist the merged store and notify listeners.

Push always precedes pull, so a record edited locally is in the cloud index
before it is read back. Conflicts are whole-record last-write-wins on
``last_modified``; equal timestamps keep the local copy. Nothing is marked
synced until the merged store has been saved, so any failure leaves local
sync state untouched and a retry redoes exactly the unfinished work.
"""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Set

from loguru import logger

from watch_minion.core.output import log, silenced
from watch_minion.domain.records.models import (
    Record,
    SyncState,
    format_timestamp,
    utc_now,
)

from .exceptions import SyncError, TransportError
from .gate import SessionGate
from .remote import RemoteStore
from .retry import RetryPolicy
from .transcoder import normalize_inbound_timestamp, to_local_batch, to_remote_batch

if TYPE_CHECKING:
    from watch_minion.domain.records.store import LocalRecordStore


@dataclass(frozen=True)
class SyncSummary:
    """Counts reported by one reconcile cycle."""

    pulled: int = 0
    pushed: int = 0
    deleted: int = 0
    dropped: int = 0  # synced locally, gone from the cloud

    @property
    def changed(self) -> bool:
        return any((self.pulled, self.pushed, self.deleted, self.dropped))

    def __str__(self) -> str:
        text = f"{self.pulled} pulled, {self.pushed} pushed, {self.deleted} deleted"
        if self.dropped:
            text += f", {self.dropped} removed (deleted on another device)"
        return text


def tombstone_patch() -> Dict[str, object]:
    """Remote patch that soft-deletes rows."""
    return {"is_deleted": True, "last_modified_date": format_timestamp(utc_now())}


class SyncEngine:
    """Runs reconcile cycles for the authenticated owner."""

    def __init__(
        self,
        gate: SessionGate,
        remote: RemoteStore,
        store: "LocalRecordStore",
        retry: Optional[RetryPolicy] = None,
        on_store_changed: Optional[Callable[[], None]] = None,
    ):
        self.gate = gate
        self.remote = remote
        self.store = store
        self.retry = retry or RetryPolicy()
        self.on_store_changed = on_store_changed

    def _call(self, step: str, fn: Callable, *args, **kwargs):
        """Run one remote call under the retry policy, labelling failures."""
        try:
            return self.retry.call(fn, *args, **kwargs)
        except TransportError as e:
            raise e.for_step(step) from e

    def reconcile(self, silent: bool = False) -> SyncSummary:
        """Run one full sync cycle.

        Args:
            silent: Keep user-facing messages out of the console (file log only)

        Returns:
            SyncSummary with pulled / pushed / deleted / dropped counts

        Raises:
            GateError: Not authenticated, offline, or a sync is already running
            TransportError: A cloud request failed (labelled with the step)
            StoreError: The local store could not be read or written
        """
        with silenced(silent):
            with self.gate.operation("Sync") as session:
                try:
                    summary = self._reconcile(session.user_id)
                except SyncError as e:
                    log(f"❌ Sync failed: {e}", level="error")
                    raise

            if summary.changed:
                log(f"✅ Sync complete: {summary}")
            else:
                log("✅ Already up to date")
            return summary

    def _reconcile(self, owner_id: str) -> SyncSummary:
        records = self.store.load()

        # Step 1: partition
        deletes = [
            r for r in records if r.sync_state is SyncState.DELETED or r.is_deleted
        ]
        creates = [
            r for r in records if r.sync_state is SyncState.NEW and not r.is_deleted
        ]
        edits = [
            r for r in records if r.sync_state is SyncState.EDITED and not r.is_deleted
        ]
        logger.info(
            f"Reconcile for {owner_id}: {len(creates)} new, {len(edits)} edited, "
            f"{len(deletes)} deleted locally"
        )

        # Step 2: push deletions
        delete_ids = [r.id for r in deletes]
        if delete_ids:
            self._call(
                "Push deletions",
                self.remote.update_where_id_in,
                owner_id,
                delete_ids,
                tombstone_patch(),
            )

        # Step 3: push upserts
        stale_ids = self._find_stale_edits(owner_id, edits)
        outgoing = creates + [r for r in edits if r.id not in stale_ids]
        rows, skipped_ids = to_remote_batch(outgoing, owner_id)
        if rows:
            self._call("Push changes", self.remote.upsert, rows)

        # Step 4: pull discovery
        index = self._call("Fetch cloud index", self.remote.select_index, owner_id)
        remote_times = {
            record_id: normalize_inbound_timestamp(record_id, modified)
            for record_id, modified in index
        }

        # Step 5: diff
        deleted_ids = set(delete_ids)
        local_by_id = {r.id: r for r in records if r.id not in deleted_ids}
        pull_ids = [
            record_id
            for record_id, remote_time in remote_times.items()
            if record_id not in deleted_ids
            and (
                record_id not in local_by_id
                or remote_time > local_by_id[record_id].last_modified
            )
        ]
        dropped_ids = {
            r.id
            for r in local_by_id.values()
            if r.sync_state is SyncState.SYNCED and r.id not in remote_times
        }

        # Step 6: fetch + merge
        pulled: List[Record] = []
        if pull_ids:
            remote_rows = self._call(
                "Fetch changed records", self.remote.select, owner_id, ids=pull_ids
            )
            pulled = [r for r in to_local_batch(remote_rows) if not r.is_deleted]

        merged = self._merge(records, pulled)

        # Step 7: purge tombstones and remotely-deleted records
        merged = [
            r for r in merged if not r.is_deleted and r.id not in dropped_ids
        ]

        # Step 8: mark synced (records that could not be transcoded keep their state)
        unsent = set(skipped_ids)
        merged = [
            r if r.id in unsent else replace(r, sync_state=SyncState.SYNCED)
            for r in merged
        ]

        # Step 9: persist
        self.store.save(merged)
        if self.on_store_changed:
            self.on_store_changed()

        if stale_ids:
            logger.info(
                f"Kept cloud copy of {len(stale_ids)} records edited more recently elsewhere"
            )

        return SyncSummary(
            pulled=len(pulled),
            pushed=len(rows),
            deleted=len(delete_ids),
            dropped=len(dropped_ids),
        )

    def _find_stale_edits(self, owner_id: str, edits: Sequence[Record]) -> Set[str]:
        """Ids of local edits whose cloud copy is strictly newer.

        Those are not pushed; the diff step pulls the newer cloud copy instead,
        so the surviving record always carries the later timestamp.
        """
        if not edits:
            return set()

        index = self._call(
            "Check cloud versions",
            self.remote.select_index,
            owner_id,
            ids=[r.id for r in edits],
        )
        remote_times = {
            record_id: normalize_inbound_timestamp(record_id, modified)
            for record_id, modified in index
        }
        stale = set()
        for record in edits:
            remote_time = remote_times.get(record.id)
            if remote_time is not None and remote_time > record.last_modified:
                logger.info(
                    f"Not pushing {record.id}: cloud copy ({format_timestamp(remote_time)}) "
                    f"is newer than local ({format_timestamp(record.last_modified)})"
                )
                stale.add(record.id)
        return stale

    @staticmethod
    def _merge(records: List[Record], pulled: List[Record]) -> List[Record]:
        """Replace by id, append unknown ids, keep local order."""
        incoming = {r.id: r for r in pulled}
        merged = [incoming.pop(r.id, r) for r in records]
        merged.extend(incoming.values())
        return merged
