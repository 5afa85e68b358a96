"""
Exchange rates (``studio_modules.collaborators.exchange_rates``).

Responsibility
--------------
Reads USD/ARS quotes from an external provider and caches them for a
configured time-to-live.  The only place a USD amount becomes an ARS
amount is ``ExchangeRateService.usd_to_ars``; nothing in the ledgers
converts implicitly.

Invariants enforced
-------------------
* A cached quote is served while ``now - fetched_at < cache_seconds``.
* When the provider fails, a stale cached quote is served (and logged);
  with nothing cached, ``ExchangeRateUnavailableError`` is raised.
* USD -> ARS uses the ``sell`` rate and rounds to 2 decimals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol, runtime_checkable

from studio_config.schema import ExchangeRateSettings
from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.values import ExchangeRate, Money
from studio_kernel.exceptions import CurrencyMismatchError, ExchangeRateUnavailableError
from studio_kernel.logging_config import get_logger

logger = get_logger("modules.collaborators.exchange_rates")


class RateSource(str, Enum):
    BLUE = "blue"
    OFICIAL = "oficial"
    MEP = "mep"
    CCL = "ccl"


@dataclass(frozen=True)
class ExchangeQuote:
    """ARS per USD as published by one market source."""
    source: RateSource
    buy: Decimal
    sell: Decimal
    last_update: datetime

    def __post_init__(self) -> None:
        if self.buy <= 0 or self.sell <= 0:
            raise ValueError(f"Quote rates must be positive: buy={self.buy} sell={self.sell}")

    @property
    def average(self) -> Decimal:
        return (self.buy + self.sell) / 2

    @property
    def spread(self) -> Decimal:
        return self.sell - self.buy

    def as_rate(self) -> ExchangeRate:
        return ExchangeRate.of("USD", "ARS", self.sell)


@runtime_checkable
class ExchangeRateProvider(Protocol):
    def fetch(self, source: RateSource) -> ExchangeQuote: ...


class StaticExchangeRateProvider:
    """Provider returning fixed quotes; ``fail`` simulates an outage."""

    def __init__(self, quotes: dict[RateSource, ExchangeQuote] | None = None):
        self.quotes = dict(quotes or {})
        self.fail = False
        self.calls = 0

    def fetch(self, source: RateSource) -> ExchangeQuote:
        self.calls += 1
        if self.fail:
            raise ConnectionError("exchange rate provider unreachable")
        try:
            return self.quotes[source]
        except KeyError:
            raise LookupError(f"no quote published for {source.value}") from None


@dataclass
class _CacheEntry:
    quote: ExchangeQuote
    fetched_at: datetime


class ExchangeRateService:
    """
    Cached access to exchange quotes.

    Usage:
        service = ExchangeRateService(provider, ExchangeRateSettings(), clock)
        ars = service.usd_to_ars(Money.of("100", "USD"))
    """

    def __init__(
        self,
        provider: ExchangeRateProvider,
        settings: ExchangeRateSettings | None = None,
        clock: Clock | None = None,
    ):
        self._provider = provider
        self._settings = settings or ExchangeRateSettings()
        self._clock = clock or SystemClock()
        self._cache: dict[RateSource, _CacheEntry] = {}

    @property
    def default_source(self) -> RateSource:
        return RateSource(self._settings.source)

    def get_quote(self, source: RateSource | str | None = None) -> ExchangeQuote:
        source = RateSource(source) if source is not None else self.default_source
        entry = self._cache.get(source)
        if entry is not None and self._is_fresh(entry):
            return entry.quote
        return self._fetch(source)

    def refresh(self, source: RateSource | str | None = None) -> ExchangeQuote:
        """Bypass the cache."""
        source = RateSource(source) if source is not None else self.default_source
        return self._fetch(source)

    def usd_to_ars(self, amount: Money, source: RateSource | str | None = None) -> Money:
        if amount.currency.code != "USD":
            raise CurrencyMismatchError("USD", amount.currency.code)
        converted = self.get_quote(source).as_rate().convert(amount)
        return Money.of(
            converted.amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP), "ARS"
        )

    def clear_cache(self) -> None:
        self._cache.clear()

    def _is_fresh(self, entry: _CacheEntry) -> bool:
        age = self._clock.now() - entry.fetched_at
        return age < timedelta(seconds=self._settings.cache_seconds)

    def _fetch(self, source: RateSource) -> ExchangeQuote:
        try:
            quote = self._provider.fetch(source)
        except Exception as exc:
            entry = self._cache.get(source)
            if entry is None:
                logger.error(
                    "exchange_rate_unavailable",
                    extra={"source": source.value, "error": str(exc)},
                )
                raise ExchangeRateUnavailableError(source.value, str(exc)) from exc
            logger.warning(
                "exchange_rate_stale_served",
                extra={
                    "source": source.value,
                    "fetched_at": entry.fetched_at.isoformat(),
                    "error": str(exc),
                },
            )
            return entry.quote

        self._cache[source] = _CacheEntry(quote=quote, fetched_at=self._clock.now())
        logger.info(
            "exchange_rate_fetched",
            extra={"source": source.value, "buy": str(quote.buy), "sell": str(quote.sell)},
        )
        return quote
