"""
Exchange Rate Cache Module

HTTP client for the public exchange rate feed. Quotes are cached for a short
freshness window; when a refresh fails the previous quotes are served and
the result is marked stale instead of raising.
"""

import httpx
import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Mapping, Optional

from .currency import FOREIGN_CURRENCIES, Currency, ExchangeRate
from .logging_config import get_logger

logger = get_logger("atabank.rates")

DEFAULT_FEED_URL = "https://api.exchangerate-api.com/v4/latest/TRY"


class RateFeedError(Exception):
    """Feed answered, but not with usable quotes"""
    pass


@dataclass
class RateSnapshot:
    """Result of a get_rates() call"""
    rates: Mapping[str, ExchangeRate]
    stale: bool = False  # True when a refresh failed and older quotes are served
    fetched_at: Optional[datetime] = None  # Time of the last successful refresh
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.rates


@dataclass
class _CacheState:
    rates: Dict[str, ExchangeRate] = field(default_factory=dict)
    refreshed_at: Optional[float] = None  # clock() reading of last successful refresh
    fetched_at: Optional[datetime] = None


class RateCache:
    """Caches buy/sell quotes for the supported foreign currencies"""

    def __init__(
        self,
        feed_url: str = DEFAULT_FEED_URL,
        ttl_seconds: float = 60,
        timeout: float = 10.0,
        buy_spread: Decimal = Decimal("0.985"),
        sell_spread: Decimal = Decimal("1.015"),
        client: Optional[httpx.Client] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.feed_url = feed_url
        self.ttl_seconds = ttl_seconds
        self.buy_spread = Decimal(str(buy_spread))
        self.sell_spread = Decimal(str(sell_spread))
        self._client = client or httpx.Client(timeout=timeout)
        self._clock = clock
        self._state = _CacheState()

    def get_rates(self) -> RateSnapshot:
        """Return cached quotes, refreshing first if empty or older than the TTL"""
        if not self._needs_refresh():
            return self._snapshot()

        try:
            rates = self._fetch()
        except (httpx.HTTPError, RateFeedError, ValueError, ArithmeticError) as e:
            logger.warning(f"Exchange rate refresh failed, serving cached quotes: {e}")
            return self._snapshot(stale=True, error=str(e))

        self._state = _CacheState(
            rates=rates,
            refreshed_at=self._clock(),
            fetched_at=datetime.now(timezone.utc),
        )
        logger.info(f"Exchange rates refreshed: {', '.join(sorted(rates)) or 'none quoted'}")
        return self._snapshot()

    def invalidate(self) -> None:
        """Force the next get_rates() call to refresh"""
        self._state.refreshed_at = None

    def _needs_refresh(self) -> bool:
        if not self._state.rates or self._state.refreshed_at is None:
            return True
        return self._clock() - self._state.refreshed_at >= self.ttl_seconds

    def _snapshot(self, stale: bool = False, error: Optional[str] = None) -> RateSnapshot:
        return RateSnapshot(
            rates=dict(self._state.rates),
            stale=stale,
            fetched_at=self._state.fetched_at,
            error=error,
        )

    def _fetch(self) -> Dict[str, ExchangeRate]:
        """Fetch the feed and derive quotes for each supported currency"""
        response = self._client.get(self.feed_url)
        response.raise_for_status()

        try:
            data = response.json(parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise RateFeedError(f"Feed returned invalid JSON: {e}")

        quoted = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(quoted, dict):
            raise RateFeedError("Feed response has no 'rates' object")

        rates: Dict[str, ExchangeRate] = {}
        for currency in FOREIGN_CURRENCIES:
            if currency.code not in quoted:
                continue
            rates[currency.code] = self._quote(currency, quoted[currency.code])
        return rates

    def _quote(self, currency: Currency, feed_value) -> ExchangeRate:
        # Feed quotes foreign units per base unit; invert to base per foreign unit
        try:
            per_base = Decimal(str(feed_value))
        except InvalidOperation:
            raise RateFeedError(f"Feed rate for {currency.code} is not a number: {feed_value!r}")
        if not per_base.is_finite() or per_base <= 0:
            raise RateFeedError(f"Feed rate for {currency.code} is not positive: {feed_value!r}")

        mid = Decimal("1") / per_base
        return ExchangeRate.from_mid(currency, mid, self.buy_spread, self.sell_spread)

    def close(self):
        """Close the HTTP client"""
        self._client.close()
