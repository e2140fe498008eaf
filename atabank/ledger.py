"""
Ledger Store Module

Owns the persisted bank state: user accounts, per-currency holdings and the
append-only transaction ledger. Every operation is a point lookup or a
single-row write; callers that need several writes to land together wrap
them in atomic().
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
import sqlite3

from .currency import BASE_CURRENCY, Currency, Money
from .errors import DuplicateIdentityError
from .logging_config import get_logger, log_action
from .models import Account, LedgerEntry
from .storage import SQLiteStorage


def _fold(name: str) -> str:
    return name.strip().casefold()


class LedgerStore:
    """
    Typed access to the users, currency_balances and transactions tables
    """

    def __init__(self, storage: SQLiteStorage):
        self.storage = storage
        self.logger = get_logger("atabank.ledger")

    def atomic(self):
        """Scoped transaction spanning several store writes"""
        return self.storage.atomic()

    # Accounts

    def create_account(self, first_name: str, last_name: str,
                       national_id: str, password_hash: str) -> Account:
        """
        Insert a new account with a zero balance

        Raises:
            DuplicateIdentityError: If the national ID is already registered
        """
        now = datetime.now(timezone.utc)
        balance = Money.zero(BASE_CURRENCY)
        try:
            cursor = self.storage.execute(
                """
                INSERT INTO users (first_name, last_name, national_id, password_hash, balance, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (first_name, last_name, national_id, password_hash, str(balance.amount), now.isoformat(timespec="microseconds"))
            )
        except sqlite3.IntegrityError:
            raise DuplicateIdentityError(national_id)

        account = Account(
            id=cursor.lastrowid,
            first_name=first_name,
            last_name=last_name,
            national_id=national_id,
            password_hash=password_hash,
            balance=balance,
            created_at=now,
        )
        log_action(self.logger, "info", "Account created", user_id=account.id,
                   action="create_account", resource="users")
        return account

    def find_account_for_login(self, national_id: str, first_name: str,
                               last_name: str) -> Optional[Account]:
        """Exact national ID match, case-insensitive trimmed name match"""
        row = self.storage.query_one("SELECT * FROM users WHERE national_id = ?", (national_id,))
        if not row:
            return None

        # SQLite LOWER() only folds ASCII, so names are compared here
        if (_fold(row['first_name']) != _fold(first_name)
                or _fold(row['last_name']) != _fold(last_name)):
            return None
        return Account.from_row(row)

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self.storage.query_one("SELECT * FROM users WHERE id = ?", (account_id,))
        return Account.from_row(row) if row else None

    def set_primary_balance(self, account_id: int, new_balance: Money) -> None:
        """Overwrite the primary balance; the caller has validated it"""
        if new_balance.currency != BASE_CURRENCY:
            raise ValueError(f"Primary balance must be in {BASE_CURRENCY.code}")
        self.storage.execute(
            "UPDATE users SET balance = ? WHERE id = ?",
            (str(new_balance.amount), account_id)
        )

    # Currency holdings

    def get_currency_holdings(self, account_id: int) -> Dict[str, Money]:
        """Stored holdings keyed by currency code; a missing code means zero"""
        rows = self.storage.query_all(
            "SELECT currency_code, amount FROM currency_balances WHERE user_id = ? ORDER BY currency_code",
            (account_id,)
        )
        return {
            row['currency_code']: Money(Decimal(row['amount']), Currency.from_code(row['currency_code']))
            for row in rows
        }

    def upsert_currency_holding(self, account_id: int, code: str, new_amount: Money) -> None:
        if new_amount.currency.code != code:
            raise ValueError(f"Holding amount is in {new_amount.currency.code}, not {code}")
        self.storage.execute(
            """
            INSERT OR REPLACE INTO currency_balances (user_id, currency_code, amount)
            VALUES (?, ?, ?)
            """,
            (account_id, code, str(new_amount.amount))
        )

    # Ledger

    def append_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """Insert a ledger entry and return it with its assigned id"""
        row = entry.to_row()
        cursor = self.storage.execute(
            """
            INSERT INTO transactions (user_id, type, amount, description, balance_before, balance_after, created_at)
            VALUES (:user_id, :type, :amount, :description, :balance_before, :balance_after, :created_at)
            """,
            row
        )
        return entry.with_id(cursor.lastrowid)

    def list_ledger_entries(self, account_id: int, limit: Optional[int] = None) -> List[LedgerEntry]:
        """Ledger entries for an account, newest first"""
        sql = "SELECT * FROM transactions WHERE user_id = ? ORDER BY created_at DESC, id DESC"
        params: tuple = (account_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (account_id, limit)
        return [LedgerEntry.from_row(row) for row in self.storage.query_all(sql, params)]
