"""Unit tests for the administrator fee calculator."""

from decimal import Decimal

import pytest

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import ValidationError
from studio_modules.admin_fee.calculator import calculate_fee, validate_fee_config
from studio_modules.admin_fee.models import FeeConfig, FeeType


class TestCalculateFee:

    def test_percentage_of_down_payment(self):
        fee = calculate_fee(Money.of("200000", "ARS"), FeeConfig.percent("10"))
        assert fee == Money.of("20000.00", "ARS")

    def test_percentage_rounds_half_up(self):
        fee = calculate_fee(Money.of("333.35", "USD"), FeeConfig.percent("15"))
        assert fee.amount == Decimal("50.00")

    def test_fixed_ignores_base(self):
        config = FeeConfig.fixed("5000")
        assert calculate_fee(Money.of("1", "ARS"), config) == Money.of("5000", "ARS")
        assert calculate_fee(Money.of("999999", "ARS"), config) == Money.of("5000", "ARS")

    def test_fixed_takes_base_currency(self):
        fee = calculate_fee(Money.of("100", "USD"), FeeConfig.fixed("50"))
        assert fee.currency.code == "USD"

    def test_manual_behaves_like_fixed(self):
        config = FeeConfig(fee_type=FeeType.MANUAL, fixed_amount=Decimal("750"))
        assert calculate_fee(Money.of("10", "ARS"), config) == Money.of("750", "ARS")

    def test_none_yields_no_fee(self):
        assert calculate_fee(Money.of("200000", "ARS"), FeeConfig.none()) is None


class TestValidateFeeConfig:

    @pytest.mark.parametrize("pct", ["-1", "100.01"])
    def test_percentage_out_of_range(self, pct):
        with pytest.raises(ValidationError) as exc_info:
            validate_fee_config(FeeConfig.percent(pct))
        assert "admin_fee_percentage" in exc_info.value.field_errors

    @pytest.mark.parametrize("pct", ["0", "100"])
    def test_percentage_bounds_accepted(self, pct):
        validate_fee_config(FeeConfig.percent(pct))

    def test_percentage_missing(self):
        with pytest.raises(ValidationError):
            validate_fee_config(FeeConfig(fee_type=FeeType.PERCENTAGE))

    def test_fixed_missing_amount(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_fee_config(FeeConfig(fee_type=FeeType.FIXED))
        assert "admin_fee_amount" in exc_info.value.field_errors

    def test_fixed_negative(self):
        with pytest.raises(ValidationError):
            validate_fee_config(FeeConfig.fixed("-10"))
