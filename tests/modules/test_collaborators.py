"""
Tests for the external collaborators: contract storage and exchange rates.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from studio_config.schema import ExchangeRateSettings
from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    CurrencyMismatchError,
    ExchangeRateUnavailableError,
    StorageError,
)
from studio_modules.collaborators.exchange_rates import (
    ExchangeQuote,
    ExchangeRateProvider,
    ExchangeRateService,
    RateSource,
    StaticExchangeRateProvider,
)
from studio_modules.collaborators.storage import ContractStorage, contract_path

PROJECT_ID = UUID("00000000-0000-4000-8000-000000000042")


# =============================================================================
# Contract storage
# =============================================================================


class TestContractStorage:

    def test_is_a_contract_storage(self, contract_storage):
        assert isinstance(contract_storage, ContractStorage)

    def test_path(self):
        assert contract_path(PROJECT_ID, " contrato.pdf") == f"{PROJECT_ID}/contrato.pdf"
        with pytest.raises(StorageError):
            contract_path(PROJECT_ID, "../otro/contrato.pdf")
        with pytest.raises(StorageError):
            contract_path(PROJECT_ID, "   ")

    def test_upload_download_list_delete(self, contract_storage):
        path = contract_path(PROJECT_ID, "contrato.pdf")
        stored = contract_storage.upload(path, b"%PDF-1.4")

        assert stored.size == 8
        assert stored.url == f"memory://contracts/{path}"
        assert contract_storage.download(path) == b"%PDF-1.4"
        assert [o.path for o in contract_storage.list(f"{PROJECT_ID}/")] == [path]

        contract_storage.delete(path)
        assert contract_storage.list(f"{PROJECT_ID}/") == []
        with pytest.raises(StorageError):
            contract_storage.download(path)
        with pytest.raises(StorageError):
            contract_storage.delete(path)

    def test_empty_upload_rejected(self, contract_storage):
        with pytest.raises(StorageError) as exc_info:
            contract_storage.upload("x/contrato.pdf", b"")
        assert exc_info.value.reason == "empty file"

    def test_signed_url_expiry_follows_clock(self, contract_storage):
        path = contract_path(PROJECT_ID, "contrato.pdf")
        contract_storage.upload(path, b"data")
        # 2024-03-15 12:00 UTC + 1h
        assert contract_storage.get_signed_url(path, ttl_seconds=3600).endswith("?expires=1710507600")
        with pytest.raises(StorageError):
            contract_storage.get_signed_url(path, ttl_seconds=0)
        with pytest.raises(StorageError):
            contract_storage.get_signed_url("missing.pdf")


# =============================================================================
# Exchange rates
# =============================================================================


def quote(buy: str, sell: str, source: RateSource = RateSource.BLUE) -> ExchangeQuote:
    return ExchangeQuote(
        source=source,
        buy=Decimal(buy),
        sell=Decimal(sell),
        last_update=datetime(2024, 3, 15, 11, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def provider():
    return StaticExchangeRateProvider({
        RateSource.BLUE: quote("1000", "1020"),
        RateSource.OFICIAL: quote("850", "870", RateSource.OFICIAL),
    })


@pytest.fixture
def rates(provider, deterministic_clock):
    return ExchangeRateService(provider, ExchangeRateSettings(cache_seconds=300), deterministic_clock)


class TestExchangeQuote:

    def test_derived_values(self):
        q = quote("1000", "1020")
        assert q.average == Decimal("1010")
        assert q.spread == Decimal("20")
        assert q.as_rate().rate == Decimal("1020")

    def test_non_positive_rejected(self):
        with pytest.raises(ValueError):
            quote("0", "10")


class TestExchangeRateService:

    def test_static_provider_satisfies_protocol(self, provider):
        assert isinstance(provider, ExchangeRateProvider)

    def test_quote_is_cached(self, rates, provider, deterministic_clock):
        assert rates.get_quote().sell == Decimal("1020")
        rates.get_quote()
        assert provider.calls == 1

        deterministic_clock.advance(seconds=300)
        rates.get_quote()
        assert provider.calls == 2

    def test_sources_cached_separately(self, rates, provider):
        assert rates.get_quote("oficial").sell == Decimal("870")
        assert rates.get_quote(RateSource.BLUE).sell == Decimal("1020")
        assert provider.calls == 2

    def test_refresh_bypasses_cache(self, rates, provider):
        rates.get_quote()
        provider.quotes[RateSource.BLUE] = quote("1100", "1120")
        assert rates.refresh().sell == Decimal("1120")
        assert rates.get_quote().sell == Decimal("1120")

    def test_stale_quote_served_on_outage(self, rates, provider, deterministic_clock, captured_logs):
        rates.get_quote()
        deterministic_clock.advance(seconds=3600)
        provider.fail = True

        assert rates.get_quote().sell == Decimal("1020")
        assert any(r["message"] == "exchange_rate_stale_served" for r in captured_logs())

    def test_outage_without_cache(self, rates, provider):
        provider.fail = True
        with pytest.raises(ExchangeRateUnavailableError) as exc_info:
            rates.get_quote()
        assert exc_info.value.source == "blue"

    def test_unpublished_source(self, rates):
        with pytest.raises(ExchangeRateUnavailableError):
            rates.get_quote(RateSource.CCL)

    def test_usd_to_ars_uses_sell_rate(self, rates):
        assert rates.usd_to_ars(Money.of("10.005", "USD")) == Money.of("10205.10", "ARS")
        with pytest.raises(CurrencyMismatchError):
            rates.usd_to_ars(Money.of("10", "ARS"))

    def test_clear_cache(self, rates, provider):
        rates.get_quote()
        rates.clear_cache()
        rates.get_quote()
        assert provider.calls == 2
