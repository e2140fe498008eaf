"""
Storage Backend Module

SQLite persistence for the bank: connection management, schema creation and
scoped transactions. Outside an atomic() block every write auto-commits;
inside one, all writes commit or roll back together.
"""

from typing import Any, List, Mapping, Optional, Sequence, Union
import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager

from .logging_config import get_logger


SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        national_id TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        balance TEXT NOT NULL DEFAULT '0.00',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS currency_balances (
        user_id INTEGER NOT NULL REFERENCES users(id),
        currency_code TEXT NOT NULL,
        amount TEXT NOT NULL DEFAULT '0',
        PRIMARY KEY (user_id, currency_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        type TEXT NOT NULL,
        amount TEXT NOT NULL,
        description TEXT,
        balance_before TEXT NOT NULL,
        balance_after TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_transactions_user_created
    ON transactions(user_id, created_at)
    """,
)


class SQLiteStorage:
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self.logger = get_logger("atabank.storage")
        # Set isolation_level to 'DEFERRED' to enable manual transaction control
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def initialize_schema(self) -> None:
        """Create tables and indexes if they do not exist"""
        with self._lock:
            for statement in SCHEMA:
                self._connection.execute(statement)
            self._connection.commit()
        self.logger.debug("Schema ready", extra={"resource": self.db_path})

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def execute(self, sql: str, params: Union[Sequence[Any], Mapping[str, Any]] = ()) -> sqlite3.Cursor:
        """Run a write statement, committing immediately unless inside atomic()"""
        with self._lock:
            try:
                cursor = self._connection.execute(sql, params)
            except sqlite3.Error:
                # Drop the implicit transaction a failed auto-commit write leaves behind
                if not self._in_transaction:
                    self._connection.rollback()
                raise

            # Only commit if not in transaction
            if not self._in_transaction:
                self._connection.commit()
            return cursor

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        """Fetch a single row or None"""
        with self._lock:
            return self._connection.execute(sql, params).fetchone()

    def query_all(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Fetch all matching rows"""
        with self._lock:
            return self._connection.execute(sql, params).fetchall()

    def begin_transaction(self) -> None:
        """Start a database transaction"""
        with self._lock:
            if self._in_transaction:
                raise RuntimeError("Nested transactions are not supported")
            self._connection.execute("BEGIN")
            self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        with self._lock:
            self.begin_transaction()
            try:
                yield self
                self.commit()
            except BaseException:
                self.rollback()
                raise

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
