"""
Unit tests for Money, Currency and ExchangeRate.

Verifies:
- Decimal-only construction (floats rejected)
- Currency registry limited to ARS and USD
- Arithmetic and comparison refuse mixed currencies
- Explicit conversion through ExchangeRate
"""

from decimal import Decimal

import pytest

from studio_kernel.domain.currency import CurrencyRegistry
from studio_kernel.domain.values import Currency, ExchangeRate, Money
from studio_kernel.exceptions import CurrencyMismatchError


class TestCurrency:

    def test_normalizes_code(self):
        assert Currency(" usd ").code == "USD"

    def test_unsupported_currency_rejected(self):
        with pytest.raises(ValueError):
            Currency("EUR")

    def test_registry_holds_ledger_currencies(self):
        assert CurrencyRegistry.all_codes() == frozenset({"ARS", "USD"})
        assert CurrencyRegistry.get_decimal_places("ARS") == 2
        assert CurrencyRegistry.get_rounding_tolerance("USD") == Decimal("0.01")


class TestMoneyConstruction:

    def test_of_string(self):
        money = Money.of("1500.00", "ARS")
        assert money.amount == Decimal("1500.00")
        assert money.currency == Currency("ARS")

    def test_float_rejected(self):
        with pytest.raises(ValueError):
            Money.of(0.1, "ARS")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            Money.of("abc", "ARS")

    def test_zero(self):
        zero = Money.zero("USD")
        assert zero.is_zero
        assert not zero.is_positive
        assert not zero.is_negative


class TestMoneyArithmetic:

    def test_add_and_subtract(self):
        a = Money.of("100.10", "ARS")
        b = Money.of("0.90", "ARS")
        assert a + b == Money.of("101.00", "ARS")
        assert a - b == Money.of("99.20", "ARS")

    def test_mixed_currency_add_raises(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money.of("1", "ARS") + Money.of("1", "USD")
        assert exc_info.value.expected == "ARS"
        assert exc_info.value.actual == "USD"

    def test_mixed_currency_compare_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "ARS") < Money.of("2", "USD")

    def test_multiply_and_divide(self):
        money = Money.of("200000", "ARS")
        assert (money * Decimal("10") / Decimal("100")).round() == Money.of("20000.00", "ARS")
        assert 2 * Money.of("1.50", "USD") == Money.of("3.00", "USD")

    def test_round_half_up(self):
        assert Money.of("10.555", "ARS").round().amount == Decimal("10.56")
        assert Money.of("10.554", "ARS").round().amount == Decimal("10.55")

    def test_negation_and_abs(self):
        money = Money.of("-5", "USD")
        assert money.is_negative
        assert abs(money) == Money.of("5", "USD")
        assert -money == Money.of("5", "USD")


class TestExchangeRate:

    def test_convert(self):
        rate = ExchangeRate.of("USD", "ARS", "1050.50")
        assert rate.convert(Money.of("10", "USD")) == Money.of("10505.00", "ARS")

    def test_convert_wrong_source_currency(self):
        rate = ExchangeRate.of("USD", "ARS", "1000")
        with pytest.raises(CurrencyMismatchError):
            rate.convert(Money.of("10", "ARS"))

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRate.of("USD", "ARS", "0")

    def test_inverse(self):
        inverse = ExchangeRate.of("USD", "ARS", "1000").inverse()
        assert inverse.from_currency == Currency("ARS")
        assert inverse.rate == Decimal("0.001")
