"""
Tests for the SQLite storage backend and transaction support
"""

import pytest
import sqlite3
import tempfile
from pathlib import Path

from atabank.storage import SQLiteStorage


def _insert_user(storage, national_id="11111111111"):
    return storage.execute(
        """
        INSERT INTO users (first_name, last_name, national_id, password_hash, balance, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        ("Ali", "Veli", national_id, "hash", "0.00", "2024-01-01T00:00:00+00:00")
    )


class TestSQLiteStorage:
    """Test schema creation and auto-commit writes"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = SQLiteStorage(":memory:")
        self.storage.initialize_schema()

    def teardown_method(self):
        self.storage.close()

    def test_schema_tables_exist(self):
        """Test all three relations are created"""
        rows = self.storage.query_all("SELECT name FROM sqlite_master WHERE type = 'table'")
        names = {row['name'] for row in rows}
        assert {"users", "currency_balances", "transactions"} <= names

    def test_initialize_schema_is_idempotent(self):
        """Test creating the schema twice keeps existing data"""
        _insert_user(self.storage)
        self.storage.initialize_schema()
        assert self.storage.query_one("SELECT COUNT(*) AS n FROM users")['n'] == 1

    def test_execute_and_query(self):
        """Test basic write and read helpers"""
        cursor = _insert_user(self.storage)
        row = self.storage.query_one("SELECT * FROM users WHERE id = ?", (cursor.lastrowid,))
        assert row['first_name'] == "Ali"
        assert self.storage.query_one("SELECT * FROM users WHERE id = ?", (999,)) is None

    def test_failed_write_leaves_connection_usable(self):
        """Test an integrity error outside a transaction does not block later writes"""
        _insert_user(self.storage)
        with pytest.raises(sqlite3.IntegrityError):
            _insert_user(self.storage)

        _insert_user(self.storage, national_id="22222222222")
        assert self.storage.query_one("SELECT COUNT(*) AS n FROM users")['n'] == 2


class TestTransactions:
    """Test atomic() commit and rollback behaviour"""

    def setup_method(self):
        """Set up test fixtures"""
        self.storage = SQLiteStorage(":memory:")
        self.storage.initialize_schema()

    def teardown_method(self):
        self.storage.close()

    def test_atomic_commits_all_writes(self):
        """Test writes inside atomic() are visible after the block"""
        with self.storage.atomic():
            assert self.storage.in_transaction
            _insert_user(self.storage, "1")
            _insert_user(self.storage, "2")

        assert not self.storage.in_transaction
        assert self.storage.query_one("SELECT COUNT(*) AS n FROM users")['n'] == 2

    def test_atomic_rolls_back_on_error(self):
        """Test an exception inside atomic() discards every write in the block"""
        with pytest.raises(RuntimeError, match="boom"):
            with self.storage.atomic():
                _insert_user(self.storage, "1")
                raise RuntimeError("boom")

        assert not self.storage.in_transaction
        assert self.storage.query_one("SELECT COUNT(*) AS n FROM users")['n'] == 0

    def test_nested_transactions_rejected(self):
        """Test opening atomic() inside atomic() fails and rolls back the outer block"""
        with pytest.raises(RuntimeError, match="Nested"):
            with self.storage.atomic():
                _insert_user(self.storage, "1")
                with self.storage.atomic():
                    pass

        assert self.storage.query_one("SELECT COUNT(*) AS n FROM users")['n'] == 0


class TestFileStorage:
    """Test persistence across connections"""

    def test_data_survives_reopen(self):
        """Test a file database keeps committed rows after reopening"""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "atabank.db"

            storage = SQLiteStorage(db_path)
            storage.initialize_schema()
            _insert_user(storage)
            storage.close()

            reopened = SQLiteStorage(db_path)
            reopened.initialize_schema()
            row = reopened.query_one("SELECT national_id FROM users")
            assert row['national_id'] == "11111111111"
            reopened.close()
