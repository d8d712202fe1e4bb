"""
SQLite document storage for Watch Minion

The local durable store is a plain key-indexed collection of JSON documents.
Saves replace the whole collection inside one transaction, so a reader never
sees a half-written collection on disk.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from loguru import logger

from .config import get_data_dir

# Database schema version for migrations
SCHEMA_VERSION = 2


def get_database_path() -> Path:
    """Get the default path to the SQLite database file."""
    return get_data_dir() / "watch_minion.db"


@contextmanager
def get_db_connection(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper cleanup and concurrency support."""
    db_path = db_path or get_database_path()
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    # WAL mode allows UI reads while a sync cycle writes
    conn.execute("PRAGMA journal_mode=WAL")

    try:
        yield conn
    finally:
        conn.close()


def migrate_database(conn: sqlite3.Connection, current_version: int) -> None:
    """Migrate database from current_version to latest schema."""
    if current_version < 2:
        # v1 -> v2: index on last_modified for the remote diff
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_documents_last_modified "
            "ON documents (last_modified)"
        )
        conn.commit()


def init_database(db_path: Optional[Path] = None) -> None:
    """Initialize the database with required tables."""
    db_path = db_path or get_database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                body TEXT NOT NULL,           -- JSON document
                last_modified TEXT,           -- copied out of body for indexing
                position INTEGER NOT NULL     -- preserves collection order
            )
        """)

        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_version")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] else 1

        if current_version < SCHEMA_VERSION:
            logger.info(
                f"Migrating local store {db_path} from v{current_version} to v{SCHEMA_VERSION}"
            )
            migrate_database(conn, current_version)

        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()


def load_documents(db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    """Load every document in collection order."""
    with get_db_connection(db_path) as conn:
        cursor = conn.execute("SELECT id, body FROM documents ORDER BY position")
        documents = []
        for row in cursor.fetchall():
            try:
                documents.append(json.loads(row["body"]))
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping unreadable document {row['id']}: {e}")
        return documents


def save_documents(
    documents: List[Dict[str, Any]], db_path: Optional[Path] = None
) -> None:
    """Replace the whole collection with ``documents``.

    Every document must carry an ``id`` key; later duplicates win.
    """
    rows: Dict[str, tuple] = {}
    for position, document in enumerate(documents):
        rows[document["id"]] = (
            document["id"],
            json.dumps(document, ensure_ascii=False),
            document.get("last_modified"),
            position,
        )

    with get_db_connection(db_path) as conn:
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute("DELETE FROM documents")
            conn.executemany(
                "INSERT INTO documents (id, body, last_modified, position) VALUES (?, ?, ?, ?)",
                list(rows.values()),
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise


def clear_documents(db_path: Optional[Path] = None) -> int:
    """Delete every document. Returns the number removed."""
    with get_db_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM documents")
        conn.commit()
        return cursor.rowcount


def count_documents(db_path: Optional[Path] = None) -> int:
    with get_db_connection(db_path) as conn:
        cursor = conn.execute("SELECT COUNT(*) AS count FROM documents")
        return cursor.fetchone()["count"]
