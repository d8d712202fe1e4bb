"""Application context for explicit state passing.

AppContext bundles configuration, the cached record list and the sync
collaborators. Command handlers receive a context and return an updated one
instead of reaching for module-level globals.
"""

import threading
from dataclasses import dataclass, field, replace
from typing import List, Optional

from rich.console import Console

from watch_minion.core.config import Config
from watch_minion.domain.records.models import Record
from watch_minion.domain.records.store import LocalRecordStore
from watch_minion.domain.session.lifecycle import SessionController
from watch_minion.domain.sync.engine import SyncEngine
from watch_minion.domain.sync.gate import SessionGate
from watch_minion.domain.sync.recovery import RecoveryOperations


@dataclass
class AppContext:
    """Application context passed to all command handlers.

    Attributes:
        config: Application configuration
        store: Local durable store
        gate: Session/connectivity gate shared by every sync-family operation
        engine: Incremental reconcile
        recovery: Force pull / force push / erase
        session: Login, logout and connectivity lifecycle
        records: Cached records, reloaded after every store change
        console: Rich Console for formatted output
        store_changed: Set by the engine and recovery operations after they
            write the local store; the command loop reloads records when set
    """

    config: Config
    store: LocalRecordStore
    gate: SessionGate
    engine: SyncEngine
    recovery: RecoveryOperations
    session: SessionController
    records: List[Record] = field(default_factory=list)
    console: Optional[Console] = None
    store_changed: threading.Event = field(default_factory=threading.Event)

    def with_records(self, records: List[Record]) -> "AppContext":
        """Return new context with updated records, other fields unchanged."""
        return replace(self, records=records)

    def reload(self) -> "AppContext":
        """Return new context with records re-read from the local store."""
        return self.with_records(self.store.load())

    def refresh_if_changed(self) -> "AppContext":
        """Reload records if a background writer changed the store."""
        if not self.store_changed.is_set():
            return self
        self.store_changed.clear()
        return self.reload()
