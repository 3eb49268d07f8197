"""
Exchange Rate Service - Fetch rates per base currency
"""
import logging
import math
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from stockdesk.core.config import settings
from stockdesk.core.errors import AppError
from stockdesk.lib.money import FALLBACK_RATES
from stockdesk.models import Currency

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = [c.value for c in Currency]

Rates = Dict[Tuple[str, str], float]

UPDATE_INTERVAL_SECONDS = 24 * 60 * 60
FALLBACK_RETRY_SECONDS = 5 * 60


class ExchangeRateService:
    """Live rates with the static table as fallback"""

    def __init__(self, client: Optional[httpx.Client] = None, clock: Callable[[], float] = time.monotonic):
        self.client = client or httpx.Client(timeout=settings.EXCHANGE_RATE_TIMEOUT)
        self.clock = clock
        self._rates: Optional[Rates] = None  # Last successful live fetch
        self._fetched_at = 0.0
        self._failed_at: Optional[float] = None

    def fetch_rates_for(self, base: str) -> Rates:
        """All supported targets for one base currency"""
        symbols = ",".join(c for c in SUPPORTED_CURRENCIES if c != base)
        try:
            response = self.client.get(
                settings.EXCHANGE_RATE_URL,
                params={"base": base, "symbols": symbols},
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException:
            raise AppError("CURRENCY_RATE_FETCH_FAILED", details="Request timed out")
        except httpx.HTTPError as e:
            raise AppError("CURRENCY_RATE_FETCH_FAILED", details=str(e))

        if response.status_code != 200:
            raise AppError("CURRENCY_RATE_FETCH_FAILED", details=f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not isinstance(data.get("rates"), dict):
            raise AppError("CURRENCY_RATE_FETCH_FAILED", details="Missing or invalid rates field")

        rates: Rates = {(base, base): 1.0}
        for target, value in data["rates"].items():
            try:
                rate = float(value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(rate):
                rates[(base, target)] = rate
        return rates

    def fetch_live_rates(self) -> Rates:
        """Rates for every supported base; raises CURRENCY_RATE_FETCH_FAILED"""
        rates: Rates = {}
        for base in SUPPORTED_CURRENCIES:
            rates.update(self.fetch_rates_for(base))
        return rates

    def fetch_all_rates(self) -> Rates:
        """Live rates, or the static table on failure"""
        try:
            return self.fetch_live_rates()
        except AppError as e:
            logger.warning(f"Using fallback exchange rates: {e.details}")
            return dict(FALLBACK_RATES)

    def get_rates(self) -> Rates:
        """
        Live rates cached for the update interval. A failed fetch serves the
        last live rates (or the static table) and is retried after
        FALLBACK_RETRY_SECONDS; only a successful fetch starts the cache.
        """
        now = self.clock()
        if self._rates is not None and now - self._fetched_at < UPDATE_INTERVAL_SECONDS:
            return self._rates
        if self._failed_at is not None and now - self._failed_at < FALLBACK_RETRY_SECONDS:
            return self._rates or dict(FALLBACK_RATES)

        try:
            rates = self.fetch_live_rates()
        except AppError as e:
            logger.warning(f"Using fallback exchange rates: {e.details}")
            self._failed_at = now
            return self._rates or dict(FALLBACK_RATES)

        self._rates = rates
        self._fetched_at = now
        self._failed_at = None
        return rates


_service: Optional[ExchangeRateService] = None


def get_exchange_rate_service() -> ExchangeRateService:
    global _service
    if _service is None:
        _service = ExchangeRateService()
    return _service
