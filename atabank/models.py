"""
Domain Records

Accounts and ledger entries as persisted by the ledger store. Currency
holdings are plain code -> Money mappings. Monetary fields are Money; rows
store them as Decimal strings and timestamps as ISO-8601 text.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from .currency import BASE_CURRENCY, Money


class LedgerEntryType(Enum):
    """Kinds of balance-changing operations recorded in the ledger"""
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    EXCHANGE_BUY = "ExchangeBuy"


@dataclass
class Account:
    """
    Customer account with a primary balance in the base currency.
    The balance must be >= 0 after every committed operation.
    """
    id: int
    first_name: str
    last_name: str
    national_id: str
    password_hash: str
    balance: Money
    created_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Account':
        return cls(
            id=row['id'],
            first_name=row['first_name'],
            last_name=row['last_name'],
            national_id=row['national_id'],
            password_hash=row['password_hash'],
            balance=Money(Decimal(row['balance']), BASE_CURRENCY),
            created_at=datetime.fromisoformat(row['created_at']),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """
    Immutable record of one balance-changing operation.
    id is None until the entry has been appended to the store.
    """
    account_id: int
    entry_type: LedgerEntryType
    amount: Money
    description: str
    balance_before: Money
    balance_after: Money
    created_at: datetime
    id: Optional[int] = None

    def with_id(self, entry_id: int) -> 'LedgerEntry':
        return replace(self, id=entry_id)

    def to_row(self) -> dict:
        return {
            'user_id': self.account_id,
            'type': self.entry_type.value,
            'amount': str(self.amount.amount),
            'description': self.description,
            'balance_before': str(self.balance_before.amount),
            'balance_after': str(self.balance_after.amount),
            'created_at': self.created_at.isoformat(timespec="microseconds"),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'LedgerEntry':
        return cls(
            id=row['id'],
            account_id=row['user_id'],
            entry_type=LedgerEntryType(row['type']),
            amount=Money(Decimal(row['amount']), BASE_CURRENCY),
            description=row['description'] or "",
            balance_before=Money(Decimal(row['balance_before']), BASE_CURRENCY),
            balance_after=Money(Decimal(row['balance_after']), BASE_CURRENCY),
            created_at=datetime.fromisoformat(row['created_at']),
        )
