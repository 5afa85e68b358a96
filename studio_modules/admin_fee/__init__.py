"""
Administrator Fee Module (``studio_modules.admin_fee``).

Responsibility
--------------
Computes the studio's administrator fee (percentage, fixed, manual or
none) on project payments, records it as ``pending`` and collects it from
the master ledger into the administrator pool.
"""

from studio_modules.admin_fee.calculator import calculate_fee, validate_fee_config
from studio_modules.admin_fee.models import (
    AdministratorFee,
    FeeConfig,
    FeeStats,
    FeeStatus,
    FeeType,
)
from studio_modules.admin_fee.service import AdministratorFeeService

__all__ = [
    "AdministratorFee",
    "AdministratorFeeService",
    "FeeConfig",
    "FeeStats",
    "FeeStatus",
    "FeeType",
    "calculate_fee",
    "validate_fee_config",
]
