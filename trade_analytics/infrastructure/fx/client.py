import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests

from trade_analytics.config.logging import logger
from trade_analytics.config.settings import settings
from trade_analytics.core.exceptions import ConfigurationError, DataSourceError
from .base import FALLBACK_RATES, RateProvider


class HttpRateProvider(RateProvider):
    """
    Fetches USD-based rates over HTTP and keeps them for a fixed TTL.
    Fallback rates are served on failure but never cached, so the next
    call tries the network again.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.url = url or (settings.FX_RATES_URL if settings else "https://open.er-api.com/v6/latest/USD")
        if not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"FX_RATES_URL must be an http(s) URL, got {self.url!r}")
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else (settings.FX_CACHE_TTL_SECONDS if settings else 3600)
        self.timeout = timeout if timeout is not None else (settings.FX_REQUEST_TIMEOUT if settings else 10)
        self.session = session or requests.Session()
        self._clock = clock
        self._rates: Optional[Dict[str, float]] = None
        self._fetched_at: Optional[float] = None

    def _fetch(self) -> Dict[str, float]:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise DataSourceError(f"Failed to reach FX endpoint: {e}")
        except ValueError as e:
            raise DataSourceError(f"FX endpoint returned invalid JSON: {e}")

        raw_rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(raw_rates, dict) or not raw_rates:
            raise DataSourceError("FX response has no 'rates' table")

        rates: Dict[str, float] = {}
        for code, value in raw_rates.items():
            try:
                rate = float(value)
            except (TypeError, ValueError):
                continue
            if rate > 0:
                rates[str(code).upper()] = rate
        rates["USD"] = 1.0
        return rates

    def get_rates(self) -> Dict[str, float]:
        now = self._clock()
        if self._rates is not None and self._fetched_at is not None and now - self._fetched_at < self.ttl_seconds:
            return dict(self._rates)

        try:
            rates = self._fetch()
        except DataSourceError as e:
            logger.warning(f"Using fallback FX rates: {e}")
            return dict(FALLBACK_RATES)

        self._rates = rates
        self._fetched_at = now
        logger.info(f"Fetched {len(rates)} FX rates from {self.url}")
        return dict(rates)

    def cache_status(self) -> Dict[str, Any]:
        if self._rates is None or self._fetched_at is None:
            return {"cached": False, "age": None, "remaining": None, "expiresAt": None}
        age = self._clock() - self._fetched_at
        expires = self._fetched_at + self.ttl_seconds
        return {
            "cached": age < self.ttl_seconds,
            "age": age,
            "remaining": max(0.0, self.ttl_seconds - age),
            "expiresAt": datetime.fromtimestamp(expires, tz=timezone.utc).isoformat(),
        }

    def clear_cache(self) -> None:
        self._rates = None
        self._fetched_at = None


class StaticRateProvider(RateProvider):
    """Fixed rate table. Used offline and in tests."""

    def __init__(self, rates: Optional[Dict[str, float]] = None):
        table = dict(rates if rates is not None else FALLBACK_RATES)
        table.setdefault("USD", 1.0)
        self._rates = table

    def get_rates(self) -> Dict[str, float]:
        return dict(self._rates)
