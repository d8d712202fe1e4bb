"""Local durable store for records, backed by the SQLite document table."""

import sqlite3
from pathlib import Path
from typing import List, Optional

from loguru import logger

from watch_minion.core import database
from watch_minion.domain.sync.exceptions import StoreError

from .models import Record, record_from_dict, record_to_dict


class LocalRecordStore:
    """Persistent keyed collection of records with whole-collection saves."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else database.get_database_path()
        database.init_database(self.db_path)

    def load(self) -> List[Record]:
        try:
            documents = database.load_documents(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Could not read local store: {e}") from e

        records = []
        for document in documents:
            try:
                records.append(record_from_dict(document))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable local record: {e}")
        return records

    def save(self, records: List[Record]) -> None:
        try:
            database.save_documents(
                [record_to_dict(record) for record in records], self.db_path
            )
        except sqlite3.Error as e:
            raise StoreError(f"Could not save local store: {e}") from e
        logger.debug(f"Saved {len(records)} records to {self.db_path}")

    def clear(self) -> int:
        try:
            removed = database.clear_documents(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Could not clear local store: {e}") from e
        logger.info(f"Cleared {removed} records from local store")
        return removed

    def count(self) -> int:
        try:
            return database.count_documents(self.db_path)
        except sqlite3.Error as e:
            raise StoreError(f"Could not read local store: {e}") from e
