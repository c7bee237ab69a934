"""Copy-isolated, read-only access to a Cursor state database.

Cursor may be writing to its database at any time. SafeDbReader never opens
the live file: it copies the database and its WAL/SHM sidecars into a fresh
temporary directory, checkpoints the copy so every committed WAL frame is in
the main image, and serves queries from that private copy.
"""

import logging
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import NamedTuple, Self

from cursor_extractor.collector.sources import get_database_files
from cursor_extractor.errors import DatabaseOpenError, QueryError
from cursor_extractor.logging import get_logger

ITEM_TABLE = "ItemTable"


class ItemEntry(NamedTuple):
    """One row of Cursor's key-value table."""

    key: str
    value: str


def _decode_value(value: str | bytes) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SafeDbReader:
    """Read-only view over a private copy of a Cursor state database.

    Use as a context manager so the temporary copy is always removed:

        with SafeDbReader(path) as reader:
            entries = reader.get_entries_by_prefix("composerData:")
    """

    def __init__(self, db_path: Path, logger: logging.Logger | None = None) -> None:
        """Initialize the reader.

        Args:
            db_path: Path to the live state.vscdb file. Nothing is read until open().
            logger: Logger for cleanup warnings (defaults to the reader logger)
        """
        self._db_path = Path(db_path)
        self._logger = logger or get_logger("reader")
        self._conn: sqlite3.Connection | None = None
        self._temp_dir: Path | None = None
        self._temp_db_path: Path | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        """Copy the database into a temporary directory and open the copy.

        Raises:
            DatabaseOpenError: if the copy or the open fails. Any partial copy
                is removed before raising.
        """
        if self._conn is not None:
            raise DatabaseOpenError(str(self._db_path), "database is already open")

        try:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="cursor-db-"))
            self._temp_db_path = self._temp_dir / self._db_path.name

            # Main file first, then whichever sidecars exist; names are kept so
            # SQLite pairs the copied WAL with the copied database
            for source in get_database_files(self._db_path):
                shutil.copy2(source, self._temp_dir / source.name)

            conn = sqlite3.connect(self._temp_db_path)
            try:
                # Reading the schema validates the file header
                conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
                conn.execute("PRAGMA wal_checkpoint(FULL)").fetchall()
                conn.execute("PRAGMA query_only = ON")
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        except (OSError, sqlite3.Error) as e:
            self._cleanup()
            raise DatabaseOpenError(str(self._db_path), str(e)) from e

        self._logger.debug(
            "Opened database copy: source=%s copy=%s", self._db_path, self._temp_db_path
        )

    def _query(self, sql: str, params: tuple | list = ()) -> list[tuple]:
        if self._conn is None:
            raise QueryError(f"Database is not open: {self._db_path}")
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise QueryError(f"Query failed on {self._db_path}: {e}") from e

    def _entries(self, sql: str, params: tuple | list = ()) -> list[ItemEntry]:
        return [ItemEntry(str(key), _decode_value(value)) for key, value in self._query(sql, params)]

    def get_all_entries(self) -> list[ItemEntry]:
        """Get every key/value pair from the item table."""
        return self._entries(
            f"SELECT key, value FROM {ITEM_TABLE} WHERE key IS NOT NULL AND value IS NOT NULL"
        )

    def get_entries_by_keys(self, keys: list[str]) -> list[ItemEntry]:
        """Get entries for specific keys."""
        if not keys:
            return []
        placeholders = ",".join("?" for _ in keys)
        return self._entries(
            f"SELECT key, value FROM {ITEM_TABLE} "
            f"WHERE key IN ({placeholders}) AND value IS NOT NULL",
            list(keys),
        )

    def get_entries_by_prefix(self, prefix: str) -> list[ItemEntry]:
        """Get entries whose key starts with prefix (matched literally)."""
        return self._entries(
            f"SELECT key, value FROM {ITEM_TABLE} "
            "WHERE key LIKE ? ESCAPE '\\' AND value IS NOT NULL",
            (_escape_like(prefix) + "%",),
        )

    def get_metadata(self) -> dict:
        """Describe the opened copy: tables, user_version and size in bytes."""
        tables = [row[0] for row in self._query("SELECT name FROM sqlite_master WHERE type='table'")]
        version = self._query("PRAGMA user_version")
        page_count = self._query("PRAGMA page_count")
        page_size = self._query("PRAGMA page_size")

        return {
            "tables": tables,
            "version": version[0][0] if version else 0,
            "size": (page_count[0][0] * page_size[0][0]) if page_count and page_size else 0,
            "original_path": str(self._db_path),
            "temp_path": str(self._temp_db_path) if self._temp_db_path else None,
        }

    def close(self) -> None:
        """Close the connection and delete the temporary copy. Safe to call twice."""
        if self._conn is not None:
            try:
                self._conn.close()
            except sqlite3.Error:
                self._logger.warning("Failed to close database copy: path=%s", self._db_path, exc_info=True)
            self._conn = None
        self._cleanup()

    def _cleanup(self) -> None:
        if self._temp_dir is None:
            return
        try:
            shutil.rmtree(self._temp_dir)
        except OSError:
            self._logger.warning("Failed to remove temp directory: path=%s", self._temp_dir, exc_info=True)
        self._temp_dir = None
        self._temp_db_path = None

    def __enter__(self) -> Self:
        """Enter context manager, opening the database copy."""
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, removing the database copy."""
        self.close()
