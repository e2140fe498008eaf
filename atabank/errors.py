"""
Banking Domain Exceptions

Raised by the account service and ledger store for business rule
violations, and caught by the console shell, which reports them and returns
to the menu. Nothing here is fatal to the process.
"""


class BankingError(Exception):
    """Base class for all AtaBank domain errors"""
    pass


class DuplicateIdentityError(BankingError):
    """
    Raised when registering an account with a national identifier that
    already exists.
    """

    def __init__(self, national_id: str):
        super().__init__(f"An account with national ID {national_id} already exists")
        self.national_id = national_id


class AuthenticationError(BankingError):
    """
    Raised when login fails. Unknown identity and wrong password collapse
    into this one generic denial.
    """

    def __init__(self):
        super().__init__("Invalid credentials")


class InsufficientFundsError(BankingError):
    """
    Raised when a withdrawal or currency purchase exceeds the primary balance.
    """

    def __init__(self, requested, available):
        super().__init__(
            f"Insufficient funds: requested {requested.to_string()}, "
            f"available {available.to_string()}"
        )
        self.requested = requested
        self.available = available


class MalformedInputError(BankingError, ValueError):
    """Raised when user input cannot be parsed into a usable value"""
    pass


class InvalidAmountError(MalformedInputError):
    """Raised for zero or negative monetary amounts"""
    pass


class UnknownCurrencyError(MalformedInputError):
    """Raised when a currency is not supported or has no current quote"""
    pass


class AccountNotFoundError(BankingError):
    """Raised when a session refers to an account that no longer loads"""
    pass
