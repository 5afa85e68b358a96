"""
AdministratorFeeCalculator (``studio_modules.admin_fee.calculator``).

Pure fee computation.  ``percentage``: ``base * pct / 100``; ``fixed`` and
``manual``: the configured amount in the base currency, whatever the base;
``none``: no fee at all.
"""

from __future__ import annotations

from decimal import Decimal

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import ValidationError
from studio_modules.admin_fee.models import FeeConfig, FeeType


def validate_fee_config(config: FeeConfig) -> None:
    """Raise ValidationError if the configuration cannot produce a fee."""
    if config.fee_type == FeeType.PERCENTAGE:
        if config.percentage is None:
            raise ValidationError({"admin_fee_percentage": "required for percentage fees"})
        if not Decimal("0") <= config.percentage <= Decimal("100"):
            raise ValidationError(
                {"admin_fee_percentage": f"must be between 0 and 100, got {config.percentage}"}
            )
    elif config.fee_type in (FeeType.FIXED, FeeType.MANUAL):
        if config.fixed_amount is None:
            raise ValidationError({"admin_fee_amount": "required for fixed fees"})
        if config.fixed_amount < 0:
            raise ValidationError({"admin_fee_amount": "must not be negative"})


def calculate_fee(base: Money, config: FeeConfig) -> Money | None:
    """
    Fee owed on a payment of ``base``.

    Returns:
        The rounded fee, or None for ``none`` fees.
    """
    validate_fee_config(config)
    if config.fee_type == FeeType.NONE:
        return None
    if config.fee_type == FeeType.PERCENTAGE:
        return (base * config.percentage / Decimal(100)).round()
    return Money(amount=config.fixed_amount, currency=base.currency).round()
