"""Records domain - tracked entries and their local lifecycle.

This domain handles:
- The Record model and its local-only sync state
- Local mutations (create, edit, watch events, delete, batch edit)
- Data-integrity check and repair
- The local durable store
"""

from .models import Record, SyncState, WatchEvent, new_id
from .mutations import (
    RecordNotFoundError,
    active_records,
    add_watch_event,
    batch_edit,
    check_and_repair,
    create_record,
    delete_records,
    update_record,
)
from .store import LocalRecordStore

__all__ = [
    "Record",
    "SyncState",
    "WatchEvent",
    "new_id",
    "RecordNotFoundError",
    "active_records",
    "add_watch_event",
    "batch_edit",
    "check_and_repair",
    "create_record",
    "delete_records",
    "update_record",
    "LocalRecordStore",
]
