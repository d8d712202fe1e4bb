"""Shared fixtures: isolated directories, a SQLite-backed store and an in-memory cloud."""

import copy
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from watch_minion.domain.records.models import Record, SyncState, new_id
from watch_minion.domain.records.store import LocalRecordStore
from watch_minion.domain.session.auth import Session
from watch_minion.domain.sync.engine import SyncEngine
from watch_minion.domain.sync.exceptions import TransportError
from watch_minion.domain.sync.gate import SessionGate
from watch_minion.domain.sync.transcoder import to_remote

OWNER_ID = "11111111-1111-4111-8111-111111111111"


class InMemoryRemoteStore:
    """RemoteStore double that keeps rows in a dict and records every call.

    Set ``fail_on["upsert"] = TransportError(...)`` to make a call fail.
    """

    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self.reachable = True
        self.holds: Dict[str, Tuple[threading.Event, threading.Event]] = {}

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.holds:
            entered, release = self.holds[name]
            entered.set()
            release.wait(timeout=5)
        if name in self.fail_on:
            raise self.fail_on[name]

    # ==================== RemoteStore ====================

    def upsert(self, rows) -> None:
        self._enter("upsert")
        for row in rows:
            self.rows[row.id] = row.as_dict()

    def update_where_id_in(self, owner_id: str, ids: Sequence[str], patch) -> None:
        self._enter("update_where_id_in")
        for record_id in ids:
            row = self.rows.get(record_id)
            if row is not None and row["user_id"] == owner_id:
                row.update(patch)

    def delete_where_owner(self, owner_id: str) -> None:
        self._enter("delete_where_owner")
        self.rows = {k: v for k, v in self.rows.items() if v["user_id"] != owner_id}

    def insert(self, rows) -> None:
        self._enter("insert")
        for row in rows:
            if row.id in self.rows:
                raise TransportError(f"duplicate key value violates unique constraint: {row.id}")
            self.rows[row.id] = row.as_dict()

    def select(
        self,
        owner_id: str,
        ids: Optional[Sequence[str]] = None,
        include_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        self._enter("select")
        return [
            copy.deepcopy(row)
            for row in self.rows.values()
            if row["user_id"] == owner_id
            and (include_deleted or not row["is_deleted"])
            and (ids is None or row["id"] in ids)
        ]

    def select_index(self, owner_id: str, ids: Optional[Sequence[str]] = None):
        self._enter("select_index")
        return [
            (row["id"], row["last_modified_date"])
            for row in self.rows.values()
            if row["user_id"] == owner_id
            and not row["is_deleted"]
            and (ids is None or row["id"] in ids)
        ]

    def ping(self, timeout: float) -> bool:
        return self.reachable

    # ==================== Test helpers ====================

    def hold(self, name: str) -> Tuple[threading.Event, threading.Event]:
        """Block calls to ``name`` until the returned release event is set."""
        entered, release = threading.Event(), threading.Event()
        self.holds[name] = (entered, release)
        return entered, release

    def put(self, record: Record, owner_id: str = OWNER_ID) -> None:
        """Seed a row as if another device had pushed ``record``."""
        self.rows[record.id] = to_remote(record, owner_id).as_dict()

    def live_ids(self, owner_id: str = OWNER_ID) -> set:
        return {
            row["id"]
            for row in self.rows.values()
            if row["user_id"] == owner_id and not row["is_deleted"]
        }

    @property
    def mutating_calls(self) -> List[str]:
        return [
            c
            for c in self.calls
            if c in ("upsert", "update_where_id_in", "delete_where_owner", "insert")
        ]


def ts(value: str) -> datetime:
    """Parse a short ISO date/time into an aware UTC datetime."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep config, data and session files out of the real home directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("WATCH_MINION_CLOUD_URL", raising=False)
    monkeypatch.delenv("WATCH_MINION_CLOUD_ANON_KEY", raising=False)


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def store(tmp_path):
    return LocalRecordStore(tmp_path / "records.db")


@pytest.fixture
def session():
    return Session(
        user_id=OWNER_ID,
        access_token="access-token",
        refresh_token="refresh-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        email="viewer@example.com",
    )


@pytest.fixture
def gate(session):
    return SessionGate(session=session, online=True)


@pytest.fixture
def engine(gate, remote, store):
    return SyncEngine(gate, remote, store)


@pytest.fixture
def make_record():
    """Factory for records with a fresh id; defaults to an already-synced record."""

    def _make(
        name: str = "Arrival",
        last_modified: Optional[datetime] = None,
        sync_state: SyncState = SyncState.SYNCED,
        **fields: Any,
    ) -> Record:
        return Record(
            id=fields.pop("id", None) or new_id(),
            name=name,
            last_modified=last_modified or ts("2024-01-01T00:00:00"),
            sync_state=sync_state,
            **fields,
        )

    return _make
