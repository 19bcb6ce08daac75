"""Currency module for exchange rates, price conversion and formatting.

Live rates come from the exchange rate API (USD base) and are cached for
exchange_rate_ttl_seconds. When they are unavailable, conversion falls back
to a small static table.
"""

import logging
import operator
import threading
from typing import Any, Dict, Optional

import backoff
import requests
from cachetools import TTLCache, cachedmethod

from config import settings_conf

logger = logging.getLogger(__name__)

BASE_CURRENCY = "USD"
DEFAULT_CURRENCY = "KES"
REQUEST_TIMEOUT = 5  # seconds
MAX_TRIES = 3
RETRY_FACTOR = 0.5

# Fallback rates against USD
STATIC_RATES = {
    "USD": 1,
    "KES": 130,
    "EUR": 0.9,
    "GBP": 0.8,
}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

class CurrencyError(Exception):
    """Base exception for currency operations."""
    pass

class RatesUnavailableError(CurrencyError):
    """Raised when live exchange rates cannot be fetched."""
    pass

class ExchangeRateClient:
    """Client for the exchange rate API with a time-bound cache of the latest rates."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        ttl: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        """Initialize the client.

        Args:
            api_key: API key, defaults to the exchange_rate_api_key setting
            base_url: API root, defaults to the exchange_rate_url setting
            ttl: Seconds a fetched payload is reused, defaults to exchange_rate_ttl_seconds
            session: Optional requests session
        """
        self.api_key = api_key if api_key is not None else settings_conf.get('exchange_rate_api_key')
        self.base_url = (base_url or settings_conf['exchange_rate_url']).rstrip('/')
        self.session = session or requests.Session()
        self._cache = TTLCache(maxsize=1, ttl=ttl or settings_conf['exchange_rate_ttl_seconds'])
        self._lock = threading.Lock()

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.api_key}/latest/{BASE_CURRENCY}"

    @backoff.on_exception(
        backoff.expo,
        (requests.exceptions.ConnectionError, requests.exceptions.Timeout),
        max_tries=MAX_TRIES,
        factor=RETRY_FACTOR
    )
    def _fetch(self) -> Dict[str, Any]:
        response = self.session.get(self.url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()

    @cachedmethod(operator.attrgetter('_cache'), lock=operator.attrgetter('_lock'))
    def get_rates(self) -> Dict[str, Any]:
        """Fetch the latest rates payload.

        Returns:
            The API payload; payload['conversion_rates'] maps currency codes to rates

        Raises:
            CurrencyError: If no API key is configured
            RatesUnavailableError: If the API cannot be reached or answers badly
        """
        if not self.api_key:
            raise CurrencyError("Exchange rate API key is not configured")

        try:
            data = self._fetch()
        except requests.exceptions.RequestException as e:
            logger.error(f"Exchange rate request failed: {e}")
            raise RatesUnavailableError(f"Request failed: {str(e)}") from e
        except ValueError as e:
            raise RatesUnavailableError(f"Invalid response format: {str(e)}") from e

        if not isinstance(data, dict) or not data.get('conversion_rates'):
            raise RatesUnavailableError("Invalid response structure from exchange rate API")

        logger.info("Exchange rates refreshed")
        return data

    def clear(self) -> None:
        """Forget the cached payload."""
        with self._lock:
            self._cache.clear()

def _rate(currency: str, rates: Optional[Dict[str, float]]) -> float:
    return (rates or {}).get(currency) or STATIC_RATES.get(currency) or 1

def convert_price(
    amount: float,
    from_currency: str,
    to_currency: str,
    rates: Optional[Dict[str, float]] = None
) -> float:
    """Convert an amount between currencies through USD.

    Rates missing from `rates` fall back to the static table, then to 1.
    """
    if from_currency == to_currency:
        return amount
    return amount / _rate(from_currency, rates) * _rate(to_currency, rates)

def format_price(amount: float, currency: str) -> str:
    """Format an amount with two decimals and thousands separators.

    >>> format_price(1234.5, "USD")
    '$1,234.50'
    >>> format_price(1234.5, "KES")
    'KES 1,234.50'
    """
    sign = "-" if amount < 0 else ""
    number = f"{abs(amount):,.2f}"
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{number}"
    return f"{sign}{currency} {number}"

# Create global instance
rate_client = ExchangeRateClient()

__all__ = [
    'ExchangeRateClient',
    'rate_client',
    'convert_price',
    'format_price',
    'CurrencyError',
    'RatesUnavailableError',
    'STATIC_RATES',
    'DEFAULT_CURRENCY',
]
