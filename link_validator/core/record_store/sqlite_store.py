"""
SQLite record store implementation.

Provides a file-backed store for single-host deployments and local runs,
with the same contract as the MongoDB store.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, List, Optional, Union

from ...utils.error_handler import StoreOperationError
from ..data_models import LinkRecord, LinkStatus


class SQLiteRecordStore:
    """
    Link records stored in a single SQLite table.

    One connection is shared by all callers and serialized with a lock, so
    the store can be used from executor threads.

    Example:
        >>> store = SQLiteRecordStore(Path("links.db"))
        >>> store.count_by_status(LinkStatus.PENDING)
        0
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS links (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        reason TEXT,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_links_status ON links(status, id);
    """

    def __init__(self, db_path: Union[str, Path] = Path("link_validator.db")):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ``":memory:"``
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(
            str(self.db_path), check_same_thread=False
        )
        self._conn.row_factory = sqlite3.Row
        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._transaction("init") as conn:
            conn.executescript(self.SCHEMA)
        self.logger.debug(f"Database initialized at {self.db_path}")

    @contextmanager
    def _transaction(self, operation: str) -> Generator[sqlite3.Connection, None, None]:
        """Serialize access to the shared connection and commit on success."""
        if self._conn is None:
            raise StoreOperationError(operation, "store is closed")

        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                self.logger.error(f"SQLite {operation} failed: {e}")
                raise StoreOperationError(operation, str(e)) from e

    @staticmethod
    def _from_row(row: sqlite3.Row) -> LinkRecord:
        return LinkRecord(
            id=str(row["id"]),
            url=row["url"],
            status=LinkStatus(row["status"]),
            reason=row["reason"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def count_by_status(self, status: LinkStatus) -> int:
        with self._transaction("count_by_status") as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM links WHERE status = ?",
                (LinkStatus(status).value,),
            ).fetchone()
        return row[0]

    def fetch_batch_by_status(self, status: LinkStatus, limit: int) -> List[LinkRecord]:
        with self._transaction("fetch_batch_by_status") as conn:
            rows = conn.execute(
                "SELECT * FROM links WHERE status = ? ORDER BY id LIMIT ?",
                (LinkStatus(status).value, limit),
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def bulk_update(self, records: List[LinkRecord]) -> int:
        if not records:
            return 0

        with self._transaction("bulk_update") as conn:
            modified = 0
            for record in records:
                cursor = conn.execute(
                    """
                    UPDATE links SET status = ?, reason = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        record.status.value,
                        record.reason,
                        record.updated_at.isoformat(),
                        record.id,
                    ),
                )
                modified += cursor.rowcount

        self.logger.info(f"Updated {modified} links in database")
        return modified

    def insert_many(self, records: List[LinkRecord]) -> List[str]:
        if not records:
            return []

        ids = []
        with self._transaction("insert_many") as conn:
            for record in records:
                cursor = conn.execute(
                    """
                    INSERT INTO links (url, status, reason, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        record.url,
                        record.status.value,
                        record.reason,
                        record.created_at.isoformat(),
                        record.updated_at.isoformat(),
                    ),
                )
                ids.append(str(cursor.lastrowid))

        self.logger.info(f"Inserted {len(ids)} links into database")
        return ids

    def count_broken(self) -> int:
        return self.count_by_status(LinkStatus.BROKEN)

    def fetch_broken_page(self, skip: int, limit: int) -> List[LinkRecord]:
        with self._transaction("fetch_broken_page") as conn:
            rows = conn.execute(
                "SELECT * FROM links WHERE status = ? ORDER BY id LIMIT ? OFFSET ?",
                (LinkStatus.BROKEN.value, limit, skip),
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


__all__ = ["SQLiteRecordStore"]
