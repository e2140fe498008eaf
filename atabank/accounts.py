"""
Account Service Module

Login, registration and the balance-changing operations (deposit, withdraw,
currency exchange). The sufficient-funds check happens before any write, and
each balance change is persisted together with its ledger entry in a single
storage transaction. The caller's Session copy of the account is updated
only after that transaction commits.
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Mapping, Optional, Union

from .currency import BASE_CURRENCY, Currency, ExchangeRate, Money, parse_amount
from .errors import (
    AccountNotFoundError, AuthenticationError, InsufficientFundsError,
    InvalidAmountError, MalformedInputError, UnknownCurrencyError
)
from .ledger import LedgerStore
from .logging_config import get_logger, log_action
from .models import Account, LedgerEntry, LedgerEntryType
from .rates import RateCache

AmountInput = Union[str, Decimal]


def hash_password(password: str) -> str:
    """Base64-encoded SHA-256 digest of the UTF-8 password"""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password), password_hash)


@dataclass
class Session:
    """The logged-in account, passed explicitly into every service call"""
    account: Account

    @property
    def account_id(self) -> int:
        return self.account.id

    @property
    def balance(self) -> Money:
        return self.account.balance


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a currency purchase"""
    rate: ExchangeRate
    quantity: Money
    cost: Money
    balance_after: Money
    holding_after: Money
    ledger_entry: Optional[LedgerEntry] = None


@dataclass(frozen=True)
class HoldingValuation:
    """A foreign holding and its base-currency value at the buy rate"""
    amount: Money
    rate: ExchangeRate
    value: Money


class AccountService:
    """
    Orchestrates authentication and balance mutations against the ledger store
    """

    def __init__(self, store: LedgerStore, rate_cache: Optional[RateCache] = None,
                 record_exchange_in_ledger: bool = True):
        self.store = store
        self.rate_cache = rate_cache
        self.record_exchange_in_ledger = record_exchange_in_ledger
        self.logger = get_logger("atabank.accounts")

    # Identity

    def register(self, first_name: str, last_name: str, national_id: str, password: str) -> Account:
        """
        Open a new account with a zero balance

        Raises:
            DuplicateIdentityError: If the national ID is already registered
        """
        first_name, last_name, national_id = first_name.strip(), last_name.strip(), national_id.strip()
        if not first_name or not last_name or not national_id:
            raise MalformedInputError("First name, last name and national ID are required")
        if not password:
            raise MalformedInputError("Password is required")

        return self.store.create_account(first_name, last_name, national_id, hash_password(password))

    def authenticate(self, national_id: str, first_name: str, last_name: str, password: str) -> Session:
        """
        Log in with national ID, names (case-insensitive) and password

        Raises:
            AuthenticationError: On unknown identity or wrong password alike
        """
        account = self.store.find_account_for_login(national_id.strip(), first_name, last_name)
        if account is None or not verify_password(password, account.password_hash):
            log_action(self.logger, "warning", "Login denied", action="login_failed",
                       resource="users")
            raise AuthenticationError()

        log_action(self.logger, "info", "Login succeeded", user_id=account.id,
                   action="login_success", resource="users")
        return Session(account=account)

    def refresh(self, session: Session) -> Session:
        """Reload the session's account from storage"""
        account = self.store.get_account(session.account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {session.account_id} not found")
        session.account = account
        return session

    # Balance mutations

    def deposit(self, session: Session, amount: AmountInput) -> LedgerEntry:
        """Credit the primary balance and record a Deposit ledger entry"""
        money = self._positive_amount(amount, BASE_CURRENCY)
        before = session.balance
        after = before + money

        entry = self._post(session, LedgerEntryType.DEPOSIT, money, "Cash deposit", before, after)
        log_action(self.logger, "info", f"Deposit of {money.to_string()}", user_id=session.account_id,
                   action="deposit", resource="transactions",
                   extra={"balance_before": before.amount, "balance_after": after.amount})
        return entry

    def withdraw(self, session: Session, amount: AmountInput) -> LedgerEntry:
        """
        Debit the primary balance and record a Withdrawal ledger entry

        Raises:
            InsufficientFundsError: If amount exceeds the current balance
        """
        money = self._positive_amount(amount, BASE_CURRENCY)
        before = session.balance
        if money > before:
            raise InsufficientFundsError(money, before)
        after = before - money

        entry = self._post(session, LedgerEntryType.WITHDRAWAL, money, "Cash withdrawal", before, after)
        log_action(self.logger, "info", f"Withdrawal of {money.to_string()}", user_id=session.account_id,
                   action="withdraw", resource="transactions",
                   extra={"balance_before": before.amount, "balance_after": after.amount})
        return entry

    def exchange(self, session: Session, currency_code: str, quantity: AmountInput,
                 rates: Optional[Mapping[str, ExchangeRate]] = None) -> ExchangeResult:
        """
        Buy `quantity` units of a foreign currency at the current sell rate

        Args:
            session: Logged-in session
            currency_code: Code of the currency to buy
            quantity: Units of the foreign currency
            rates: Quote snapshot the user saw; taken from the rate cache if omitted

        Raises:
            UnknownCurrencyError: If the currency is unsupported or has no quote
            InsufficientFundsError: If the cost exceeds the primary balance
        """
        currency = Currency.from_code(currency_code)
        if currency == BASE_CURRENCY:
            raise UnknownCurrencyError(f"Cannot buy {BASE_CURRENCY.code} with {BASE_CURRENCY.code}")

        if rates is None:
            rates = self._current_rates()
        rate = rates.get(currency.code)
        if rate is None:
            raise UnknownCurrencyError(f"No exchange rate available for {currency.code}")

        units = self._positive_amount(quantity, currency)
        cost = rate.cost_of(units)
        before = session.balance
        if cost > before:
            raise InsufficientFundsError(cost, before)
        after = before - cost

        entry = None
        with self.store.atomic():
            self.store.set_primary_balance(session.account_id, after)
            held = self.store.get_currency_holdings(session.account_id).get(currency.code, Money.zero(currency))
            holding_after = held + units
            self.store.upsert_currency_holding(session.account_id, currency.code, holding_after)
            if self.record_exchange_in_ledger:
                entry = self.store.append_ledger_entry(LedgerEntry(
                    account_id=session.account_id,
                    entry_type=LedgerEntryType.EXCHANGE_BUY,
                    amount=cost,
                    description=f"Bought {units.to_string()} @ {rate.sell_rate}",
                    balance_before=before,
                    balance_after=after,
                    created_at=datetime.now(timezone.utc),
                ))
        session.account.balance = after

        log_action(self.logger, "info", f"Bought {units.to_string()} for {cost.to_string()}",
                   user_id=session.account_id, action="exchange", resource="currency_balances",
                   extra={"sell_rate": rate.sell_rate, "holding_after": holding_after.amount})
        return ExchangeResult(
            rate=rate,
            quantity=units,
            cost=cost,
            balance_after=after,
            holding_after=holding_after,
            ledger_entry=entry,
        )

    # Read side

    def holdings(self, session: Session,
                 rates: Optional[Mapping[str, ExchangeRate]] = None) -> List[HoldingValuation]:
        """Positive foreign holdings that have a quote, valued at the buy rate"""
        if rates is None:
            rates = self._current_rates()

        valuations = []
        for code, amount in self.store.get_currency_holdings(session.account_id).items():
            rate = rates.get(code)
            if amount.is_positive() and rate is not None:
                valuations.append(HoldingValuation(amount=amount, rate=rate, value=rate.value_of(amount)))
        return valuations

    def history(self, session: Session, limit: Optional[int] = None) -> List[LedgerEntry]:
        """Most recent ledger entries first"""
        return self.store.list_ledger_entries(session.account_id, limit=limit)

    # Internals

    def _post(self, session: Session, entry_type: LedgerEntryType, amount: Money,
              description: str, before: Money, after: Money) -> LedgerEntry:
        """Write the new balance and its ledger entry together"""
        with self.store.atomic():
            self.store.set_primary_balance(session.account_id, after)
            entry = self.store.append_ledger_entry(LedgerEntry(
                account_id=session.account_id,
                entry_type=entry_type,
                amount=amount,
                description=description,
                balance_before=before,
                balance_after=after,
                created_at=datetime.now(timezone.utc),
            ))
        session.account.balance = after
        return entry

    def _current_rates(self) -> Mapping[str, ExchangeRate]:
        if self.rate_cache is None:
            return {}
        return self.rate_cache.get_rates().rates

    @staticmethod
    def _positive_amount(amount: AmountInput, currency: Currency) -> Money:
        parsed = parse_amount(amount)
        if parsed.normalize().as_tuple().exponent < -currency.precision:
            raise InvalidAmountError(
                f"{currency.code} amounts allow at most {currency.precision} decimal places, got {parsed}"
            )
        money = Money(parsed, currency)
        if not money.is_positive():
            raise InvalidAmountError(f"Amount must be greater than zero, got {money.to_string()}")
        return money
