"""Project Accounting Configuration."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from studio_config.schema import StudioSettings


@dataclass(frozen=True)
class ProjectConfig:
    """Configuration for project accounting."""
    code_prefix: str = "PRY"
    default_currency: str = "ARS"
    admin_fee_percentage: Decimal = Decimal("15")
    late_fee_grace_days: int = 5

    @classmethod
    def from_settings(cls, settings: StudioSettings) -> ProjectConfig:
        return cls(
            code_prefix=settings.project_code_prefix,
            default_currency=settings.default_currency,
            admin_fee_percentage=settings.admin_fee_percentage,
            late_fee_grace_days=settings.late_fee_grace_days,
        )
