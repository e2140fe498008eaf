"""
Multi-Currency Support Module

Handles the supported currency codes, exchange rates, and proper Decimal
precision for financial calculations. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, ROUND_HALF_UP, getcontext
from dataclasses import dataclass
from typing import Union
from enum import Enum
import re

from .errors import MalformedInputError, UnknownCurrencyError

# Set global decimal context for financial precision
getcontext().prec = 28

RATE_PRECISION = 4


class Currency(Enum):
    """Supported currencies with precision and display info"""
    TRY = ("TRY", 2, "Turkish Lira", "₺")   # Base currency of every account
    USD = ("USD", 2, "US Dollar", "$")
    EUR = ("EUR", 2, "Euro", "€")
    GBP = ("GBP", 2, "British Pound", "£")

    def __init__(self, code: str, precision: int, display_name: str, symbol: str):
        self.code = code
        self.precision = precision
        self.display_name = display_name
        self.symbol = symbol

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its ISO code (case-insensitive)"""
        normalized = (code or "").strip().upper()
        for currency in cls:
            if currency.code == normalized:
                return currency
        raise UnknownCurrencyError(f"Unsupported currency: {code!r}")


BASE_CURRENCY = Currency.TRY
FOREIGN_CURRENCIES = (Currency.USD, Currency.EUR, Currency.GBP)


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    All monetary values MUST use this class or raw Decimal.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))

        # Round to currency precision
        rounded = self.amount.quantize(
            Decimal('0.1') ** self.currency.precision,
            rounding=ROUND_HALF_UP
        )
        object.__setattr__(self, 'amount', rounded)

    @classmethod
    def zero(cls, currency: Currency = BASE_CURRENCY) -> 'Money':
        return cls(Decimal('0'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency.code} and {other.currency.code}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract {other.currency.code} from {self.currency.code}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: Decimal) -> 'Money':
        if not isinstance(multiplier, Decimal):
            multiplier = Decimal(str(multiplier))
        return Money(self.amount * multiplier, self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __lt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        if self.currency != other.currency:
            raise ValueError(f"Cannot compare {self.currency.code} and {other.currency.code}")
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format for display"""
        return f"{self.amount:,.{self.currency.precision}f} {self.currency.code}"


def round_rate(value: Decimal) -> Decimal:
    """Round an exchange rate to 4 places, half-to-even"""
    return value.quantize(Decimal('0.1') ** RATE_PRECISION, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class ExchangeRate:
    """
    Quote for one foreign currency against the base currency.

    buy_rate is what the bank pays per unit when it buys the currency back,
    sell_rate is what the customer pays per unit when buying it.
    """
    currency: Currency
    buy_rate: Decimal
    sell_rate: Decimal
    mid_rate: Decimal

    @classmethod
    def from_mid(cls, currency: Currency, mid: Decimal,
                 buy_spread: Decimal, sell_spread: Decimal) -> 'ExchangeRate':
        """Derive buy/sell quotes from a midpoint rate (base units per foreign unit)"""
        return cls(
            currency=currency,
            buy_rate=round_rate(mid * buy_spread),
            sell_rate=round_rate(mid * sell_spread),
            mid_rate=mid,
        )

    @property
    def code(self) -> str:
        return self.currency.code

    @property
    def name(self) -> str:
        return self.currency.display_name

    @property
    def symbol(self) -> str:
        return self.currency.symbol

    def cost_of(self, quantity: Money) -> Money:
        """Base-currency price of buying `quantity` at the sell rate"""
        if quantity.currency != self.currency:
            raise ValueError(f"Quote is for {self.code}, not {quantity.currency.code}")
        return Money(quantity.amount * self.sell_rate, BASE_CURRENCY)

    def value_of(self, holding: Money) -> Money:
        """Base-currency value of a holding at the buy rate"""
        if holding.currency != self.currency:
            raise ValueError(f"Quote is for {self.code}, not {holding.currency.code}")
        return Money(holding.amount * self.buy_rate, BASE_CURRENCY)


_AFFIX = '|'.join(
    [re.escape(c.symbol) for c in Currency] + [c.code for c in Currency] + ['TL']
)
_AMOUNT_PATTERN = re.compile(
    rf'^\s*(?:{_AFFIX})?\s*(?P<number>[+-]?[\d.,]+)\s*(?:{_AFFIX})?\s*$',
    re.IGNORECASE,
)


def parse_amount(value: Union[str, Decimal]) -> Decimal:
    """
    Safely convert user input to Decimal, handling common formats

    Args:
        value: String representation of number (or an existing Decimal)

    Returns:
        Decimal value

    Raises:
        MalformedInputError: If the value cannot be converted to a finite Decimal
    """
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise MalformedInputError(f"Cannot use non-finite amount {value}")
        return value

    if not value or not isinstance(value, str):
        raise MalformedInputError("Amount must be a non-empty string")

    # Only a currency symbol or code may surround the number
    match = _AMOUNT_PATTERN.match(value)
    if match is None:
        raise MalformedInputError(f"Cannot convert {value!r} to an amount")
    clean_value = match.group('number')

    # Handle comma as decimal separator (European format)
    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')

    try:
        parsed = Decimal(clean_value)
    except InvalidOperation:
        raise MalformedInputError(f"Cannot convert {value!r} to an amount")

    if not parsed.is_finite():
        raise MalformedInputError(f"Cannot convert {value!r} to an amount")
    return parsed
