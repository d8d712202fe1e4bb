"""Tests for local record mutations and sync-state transitions."""

from datetime import datetime, timezone

import pytest

from watch_minion.domain.records.models import (
    Record,
    SyncState,
    WatchEvent,
    is_valid_uuid,
)
from watch_minion.domain.records.mutations import (
    RecordNotFoundError,
    active_records,
    add_watch_event,
    batch_edit,
    check_and_repair,
    create_record,
    delete_records,
    update_record,
)

OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)


def record(record_id, state=SyncState.SYNCED, **fields):
    return Record(id=record_id, last_modified=OLD, sync_state=state, **fields)


A = "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"
B = "bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb"
C = "cccccccc-cccc-4ccc-8ccc-cccccccccccc"


class TestCreateAndUpdate:
    def test_create_assigns_uuid_and_new_state(self):
        records, created = create_record([], name="Arrival", year=2016)

        assert records == [created]
        assert is_valid_uuid(created.id)
        assert created.sync_state is SyncState.NEW
        assert created.year == 2016

    def test_create_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            create_record([], sync_state=SyncState.SYNCED)

    def test_update_marks_synced_record_edited(self):
        records = update_record([record(A)], A, status="Watched")

        assert records[0].status == "Watched"
        assert records[0].sync_state is SyncState.EDITED
        assert records[0].last_modified > OLD

    def test_new_record_stays_new(self):
        records = update_record([record(A, SyncState.NEW)], A, name="Renamed")
        assert records[0].sync_state is SyncState.NEW

    def test_no_op_update_changes_nothing(self):
        original = [record(A, status="Watched")]

        assert update_record(original, A, status="Watched") is original

    def test_update_unknown_id(self):
        with pytest.raises(RecordNotFoundError):
            update_record([record(A)], B, name="x")

    def test_update_protected_fields(self):
        with pytest.raises(ValueError):
            update_record([record(A)], A, is_deleted=True)

    def test_add_watch_event(self):
        records, event = add_watch_event([record(A)], A, date="2024-05-01", rating=8.5)

        assert records[0].watch_history == [event]
        assert is_valid_uuid(event.watch_id)
        assert records[0].sync_state is SyncState.EDITED


class TestDelete:
    def test_tombstones_and_strips_references(self):
        records = [
            record(A),
            record(B, related_entries=[A, C]),
            record(C, related_entries=[B]),
        ]

        result = {r.id: r for r in delete_records(records, [A])}

        assert result[A].is_deleted
        assert result[A].sync_state is SyncState.DELETED
        assert result[B].related_entries == [C]
        assert result[B].sync_state is SyncState.EDITED
        assert result[B].last_modified > OLD
        # Untouched records keep their state
        assert result[C].sync_state is SyncState.SYNCED
        assert result[C].last_modified == OLD

    def test_active_records_hides_tombstones(self):
        records = delete_records([record(A), record(B)], [B, "unknown"])
        assert [r.id for r in active_records(records)] == [A]


class TestBatchEdit:
    def test_applies_fields_and_counts_changes(self):
        records = [
            record(A, status="To Watch"),
            record(B, status="Watched"),
            record(C, status="To Watch"),
        ]

        result, modified = batch_edit(records, [A, B], {"status": "Watched"})

        assert modified == 1
        assert [r.status for r in result] == ["Watched", "Watched", "To Watch"]
        assert result[0].sync_state is SyncState.EDITED
        assert result[1].sync_state is SyncState.SYNCED

    def test_add_and_remove_genre(self):
        records = [record(A, genre="Drama, Action"), record(B, genre="Comedy")]

        result, modified = batch_edit(
            records, [A, B], {}, add_genre="Sci-Fi", remove_genre="Drama"
        )

        assert modified == 2
        assert result[0].genre == "Action, Sci-Fi"
        assert result[1].genre == "Comedy, Sci-Fi"

    def test_rejects_non_batch_fields(self):
        with pytest.raises(ValueError):
            batch_edit([record(A)], [A], {"name": "Same name for all"})


class TestCheckAndRepair:
    def test_clean_data_reports_no_issues(self):
        records = [record(A, related_entries=[B]), record(B)]

        repaired, issues = check_and_repair(records)

        assert issues == []
        assert repaired == records

    def test_prunes_orphaned_and_deleted_references(self):
        records = [
            record(A, related_entries=[B, C, "dddddddd-dddd-4ddd-8ddd-dddddddddddd"]),
            record(B),
            record(C, is_deleted=True, state=SyncState.DELETED),
        ]

        repaired, issues = check_and_repair(records)

        assert repaired[0].related_entries == [B]
        assert repaired[0].sync_state is SyncState.EDITED
        assert len(issues) == 1

    def test_regenerates_invalid_ids_and_follows_references(self):
        records = [record("legacy-1", name="Old Entry"), record(B, related_entries=["legacy-1"])]

        repaired, issues = check_and_repair(records)

        fixed = repaired[0]
        assert is_valid_uuid(fixed.id)
        assert fixed.sync_state is SyncState.NEW
        assert repaired[1].related_entries == [fixed.id]
        assert any("invalid ID" in issue for issue in issues)

    def test_repairs_watch_event_ids(self):
        records = [record(A, watch_history=[WatchEvent(watch_id="1", date="2024-01-01")])]

        repaired, issues = check_and_repair(records)

        assert is_valid_uuid(repaired[0].watch_history[0].watch_id)
        assert repaired[0].watch_history[0].date == "2024-01-01"
        assert issues
