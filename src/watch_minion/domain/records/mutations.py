"""
Local record mutations.

Every mutation bumps ``last_modified`` and moves the record's sync state to
``edited`` unless it is still ``new``. Functions take the current record list
and return a new list; records themselves are replaced, never mutated in place.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from .models import (
    EDITABLE_FIELDS,
    Record,
    SyncState,
    WatchEvent,
    is_valid_uuid,
    new_id,
    utc_now,
)

# Fields batch edit may set directly (genre changes go through add/remove)
BATCH_EDITABLE_FIELDS = frozenset(
    {
        "status",
        "category",
        "overall_rating",
        "recommendation",
        "personal_recommendation",
        "year",
        "country",
        "language",
    }
)


class RecordNotFoundError(LookupError):
    """Raised when a record id is not in the local store."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"No record with id {record_id}")


def touch(record: Record, now: Optional[datetime] = None, **changes: Any) -> Record:
    """Apply changes as a local edit: bump timestamp, elevate sync state."""
    state = (
        SyncState.NEW if record.sync_state is SyncState.NEW else SyncState.EDITED
    )
    return replace(record, **changes, last_modified=now or utc_now(), sync_state=state)


def _index_of(records: List[Record], record_id: str) -> int:
    for i, record in enumerate(records):
        if record.id == record_id:
            return i
    raise RecordNotFoundError(record_id)


def active_records(records: Iterable[Record]) -> List[Record]:
    """Records that are not tombstoned."""
    return [r for r in records if not r.is_deleted]


def create_record(records: List[Record], **fields: Any) -> Tuple[List[Record], Record]:
    """Add a new record with a fresh identifier and sync state ``new``.

    Raises:
        ValueError: Unknown field name
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown record fields: {', '.join(sorted(unknown))}")

    record = Record(id=new_id(), **fields)
    logger.debug(f"Created record {record.id} ({record.name})")
    return records + [record], record


def update_record(
    records: List[Record], record_id: str, **changes: Any
) -> List[Record]:
    """Apply field changes to one record. No-op when nothing actually changes.

    Raises:
        RecordNotFoundError: Unknown id
        ValueError: Field is not editable
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    i = _index_of(records, record_id)
    record = records[i]
    effective = {k: v for k, v in changes.items() if getattr(record, k) != v}
    if not effective:
        return records

    updated = list(records)
    updated[i] = touch(record, **effective)
    return updated


def add_watch_event(
    records: List[Record],
    record_id: str,
    date: Optional[str] = None,
    rating: Optional[float] = None,
    notes: str = "",
) -> Tuple[List[Record], WatchEvent]:
    """Append a viewing to a record's watch history."""
    i = _index_of(records, record_id)
    record = records[i]
    event = WatchEvent(watch_id=new_id(), date=date, rating=rating, notes=notes)

    updated = list(records)
    updated[i] = touch(record, watch_history=record.watch_history + [event])
    return updated, event


def delete_records(records: List[Record], record_ids: Iterable[str]) -> List[Record]:
    """Tombstone records and strip their ids from every other record's relations.

    Unknown ids are ignored.
    """
    doomed = set(record_ids)
    now = utc_now()
    updated = []
    for record in records:
        if record.id in doomed:
            if not record.is_deleted:
                record = replace(
                    record,
                    is_deleted=True,
                    sync_state=SyncState.DELETED,
                    last_modified=now,
                )
        elif doomed.intersection(record.related_entries):
            record = touch(
                record,
                now=now,
                related_entries=[
                    ref for ref in record.related_entries if ref not in doomed
                ],
            )
        updated.append(record)
    return updated


def _split_genres(genre: str) -> List[str]:
    return [g.strip() for g in (genre or "").split(",") if g.strip()]


def batch_edit(
    records: List[Record],
    record_ids: Iterable[str],
    changes: Dict[str, Any],
    add_genre: Optional[str] = None,
    remove_genre: Optional[str] = None,
) -> Tuple[List[Record], int]:
    """Apply the same changes to several records.

    Returns:
        (records, number of records actually modified)

    Raises:
        ValueError: A field is not batch-editable
    """
    unknown = set(changes) - BATCH_EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be batch edited: {', '.join(sorted(unknown))}")

    selected = set(record_ids)
    now = utc_now()
    modified = 0
    updated = []
    for record in records:
        if record.id not in selected or record.is_deleted:
            updated.append(record)
            continue

        effective = {k: v for k, v in changes.items() if getattr(record, k) != v}

        genres = set(_split_genres(record.genre))
        if add_genre and add_genre.strip():
            genres.add(add_genre.strip())
        if remove_genre and remove_genre.strip():
            genres.discard(remove_genre.strip())
        genre = ", ".join(sorted(genres))
        if genre != ", ".join(sorted(set(_split_genres(record.genre)))):
            effective["genre"] = genre

        if effective:
            record = touch(record, now=now, **effective)
            modified += 1
        updated.append(record)

    return updated, modified


def check_and_repair(records: List[Record]) -> Tuple[List[Record], List[str]]:
    """Data-integrity pass over the local store.

    Regenerates invalid record ids (such records become ``new``, references
    to the old id follow), repairs invalid watch-event ids, and prunes
    relationship references to unknown or deleted records.

    Returns:
        (repaired records, human-readable issue descriptions)
    """
    issues: List[str] = []
    now = utc_now()

    renamed: Dict[str, str] = {}
    repaired = []
    for record in records:
        if not is_valid_uuid(record.id):
            fresh = new_id()
            renamed[record.id] = fresh
            issues.append(f'Entry "{record.name}" had invalid ID. Regenerated.')
            record = replace(
                record, id=fresh, last_modified=now, sync_state=SyncState.NEW
            )
        repaired.append(record)

    live_ids = {r.id for r in repaired if not r.is_deleted}

    result = []
    for record in repaired:
        changes: Dict[str, Any] = {}

        refs = [renamed.get(ref, ref) for ref in record.related_entries]
        kept = []
        for ref in refs:
            if ref in live_ids and ref != record.id and ref not in kept:
                kept.append(ref)
        if kept != record.related_entries:
            removed = len(record.related_entries) - len(kept)
            if removed:
                issues.append(
                    f'Entry "{record.name}": Removed {removed} orphaned related entries.'
                )
            changes["related_entries"] = kept

        if any(not is_valid_uuid(e.watch_id) for e in record.watch_history):
            issues.append(f'Entry "{record.name}": Repaired watch history IDs.')
            changes["watch_history"] = [
                e if is_valid_uuid(e.watch_id) else replace(e, watch_id=new_id())
                for e in record.watch_history
            ]

        if changes and not record.is_deleted:
            record = touch(record, now=now, **changes)
        result.append(record)

    if issues:
        logger.info(f"Data check fixed {len(issues)} issue(s)")
    return result, issues
