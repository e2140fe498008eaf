"""
Console Shell

Numbered-menu front end for the account service. Holds the current Session
between menu iterations; every domain error is reported and control returns
to the menu.
"""

import argparse
import getpass
import sys
from typing import Callable, List, Optional

from .accounts import AccountService, Session
from .config import get_config
from .currency import FOREIGN_CURRENCIES, ExchangeRate
from .errors import BankingError
from .ledger import LedgerStore
from .logging_config import get_logger, setup_logging
from .rates import RateCache, RateSnapshot
from .storage import SQLiteStorage

RULE = "=" * 42
DIVIDER = "-" * 42


class BankingShell:
    """Interactive menu loop for a single user"""

    def __init__(
        self,
        service: AccountService,
        rate_cache: RateCache,
        input_func: Callable[[str], str] = input,
        password_func: Callable[[str], str] = getpass.getpass,
        output: Callable[[str], None] = print,
        history_limit: int = 10,
    ):
        self.service = service
        self.rate_cache = rate_cache
        self._input = input_func
        self._password = password_func
        self._out = output
        self.history_limit = history_limit
        self.session: Optional[Session] = None
        self.logger = get_logger("atabank.shell")

    def run(self) -> None:
        """Loop until the user exits or input is exhausted"""
        while True:
            try:
                if self.session is None:
                    if not self.welcome_menu():
                        break
                else:
                    self.account_menu()
            except EOFError:
                break
        self._out("Goodbye.")

    # Menus

    def welcome_menu(self) -> bool:
        """Returns False when the user chooses to exit"""
        self._header("AtaBank International - Welcome")
        self._out("1. Login to Account")
        self._out("2. Open New Account")
        self._out("0. Exit Application")
        choice = self._input("\nSelection: ").strip()

        if choice == "1":
            self.login()
        elif choice == "2":
            self.register()
        elif choice == "0":
            return False
        return True

    def account_menu(self) -> None:
        snapshot = self.rate_cache.get_rates()
        self.dashboard(snapshot)
        self._out("1. Deposit Cash | 2. Withdraw Cash | 3. Currency Exchange | 4. Recent Transactions | 0. Logout")
        choice = self._input("\nSelection: ").strip()

        if choice == "1":
            self.deposit()
        elif choice == "2":
            self.withdraw()
        elif choice == "3":
            self.exchange(snapshot)
        elif choice == "4":
            self.history()
        elif choice == "0":
            self.logout()

    def dashboard(self, snapshot: RateSnapshot) -> None:
        account = self.session.account
        self._header("AtaBank - Dashboard")
        self._out(f"Welcome, {account.full_name}")
        self._out(DIVIDER)
        self._out(f"Main Balance: {account.balance.to_string()}")
        for valuation in self.service.holdings(self.session, snapshot.rates):
            self._out(
                f"{valuation.amount.currency.code} Balance: {valuation.amount.amount:,.4f} "
                f"({valuation.value.to_string()})"
            )
        if snapshot.stale:
            self._out("! Exchange rates could not be refreshed; showing last known quotes.")
        elif snapshot.is_empty:
            self._out("! Exchange rates are currently unavailable.")
        self._out(DIVIDER)

    # Actions

    def login(self) -> None:
        national_id = self._input("National ID: ")
        first_name = self._input("First Name: ")
        last_name = self._input("Last Name: ")
        password = self._password("Password: ")
        try:
            self.session = self.service.authenticate(national_id, first_name, last_name, password)
        except BankingError:
            self._out("\nAccess Denied. Invalid Credentials.")
            return
        self._out("\nAccess Granted. Loading...")

    def register(self) -> None:
        first_name = self._input("First Name: ")
        last_name = self._input("Last Name: ")
        national_id = self._input("National ID: ")
        password = self._password("Password: ")
        try:
            self.service.register(first_name, last_name, national_id, password)
        except BankingError as e:
            self._out(f"\nRegistration failed: {e}")
            return
        self._out("\nAccount Created. You may now login.")

    def deposit(self) -> None:
        amount = self._input("Amount (TRY): ")
        try:
            self.service.deposit(self.session, amount)
        except BankingError as e:
            self._out(f"Deposit failed: {e}")
            return
        self._out("Deposit Successful.")

    def withdraw(self) -> None:
        amount = self._input("Amount to Withdraw (TRY): ")
        try:
            self.service.withdraw(self.session, amount)
        except BankingError as e:
            self._out(f"Withdrawal failed: {e}")
            return
        self._out("Withdrawal Successful.")

    def exchange(self, snapshot: RateSnapshot) -> None:
        quotes = self._quotes(snapshot)
        if not quotes:
            self._out("No exchange rates available right now.")
            return

        for index, rate in enumerate(quotes, start=1):
            self._out(f"{index}. Buy {rate.code} ({rate.name}) - Rate: {rate.sell_rate:,.4f} TRY")
        selection = self._input("\nSelect Currency: ").strip()
        if not selection.isdecimal() or not 1 <= int(selection) <= len(quotes):
            self._out("Invalid selection.")
            return
        rate = quotes[int(selection) - 1]

        quantity = self._input(f"Quantity ({rate.code}): ")
        try:
            result = self.service.exchange(self.session, rate.code, quantity, rates=snapshot.rates)
        except BankingError as e:
            self._out(f"Exchange failed: {e}")
            return
        self._out(f"Transaction Successful. Paid {result.cost.to_string()} for {result.quantity.to_string()}.")

    def history(self) -> None:
        entries = self.service.history(self.session, limit=self.history_limit)
        if not entries:
            self._out("No transactions yet.")
            return
        for entry in entries:
            self._out(
                f"{entry.created_at:%Y-%m-%d %H:%M} {entry.entry_type.value:<11} "
                f"{entry.amount.to_string():>16}  balance {entry.balance_after.to_string()}"
                + (f"  {entry.description}" if entry.description else "")
            )

    def logout(self) -> None:
        self.session = None
        self._out("Logged out.")

    # Helpers

    @staticmethod
    def _quotes(snapshot: RateSnapshot) -> List[ExchangeRate]:
        return [snapshot.rates[c.code] for c in FOREIGN_CURRENCIES if c.code in snapshot.rates]

    def _header(self, title: str) -> None:
        self._out(RULE)
        self._out(f"   {title.upper()}")
        self._out(RULE)


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point"""
    parser = argparse.ArgumentParser(prog="atabank", description="AtaBank console banking simulator")
    parser.add_argument("--db", help="SQLite database file (default from ATABANK_DATABASE_PATH)")
    parser.add_argument("--log-level", help="Log level (default from ATABANK_LOG_LEVEL)")
    args = parser.parse_args(argv)

    config = get_config()
    setup_logging(args.log_level or config.log_level, log_format=config.log_format,
                  log_file=config.log_file)

    storage = SQLiteStorage(args.db or config.database_path)
    storage.initialize_schema()
    rate_cache = RateCache(
        feed_url=config.rate_feed_url,
        ttl_seconds=config.rate_cache_ttl_seconds,
        timeout=config.rate_request_timeout,
        buy_spread=config.buy_spread,
        sell_spread=config.sell_spread,
    )
    service = AccountService(LedgerStore(storage), rate_cache,
                             record_exchange_in_ledger=config.record_exchange_in_ledger)

    try:
        BankingShell(service, rate_cache, history_limit=config.history_limit).run()
    except KeyboardInterrupt:
        print("\nShutting down AtaBank...")
    finally:
        rate_cache.close()
        storage.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
