"""
Settings schema (``studio_config.schema``).

Frozen dataclasses for studio-wide settings.  Defaults mirror the values
the studio ships with, so a missing key in YAML never leaves a service
without a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ExchangeRateSettings:
    source: str = "blue"  # blue, oficial, mep, ccl
    cache_seconds: int = 300


@dataclass(frozen=True)
class ContractSettings:
    signed_url_ttl_seconds: int = 3600


@dataclass(frozen=True)
class StudioSettings:
    """Studio-wide settings consumed by the accounting services."""
    studio_name: str = "Estudio de Arquitectura"
    default_currency: str = "ARS"
    admin_fee_percentage: Decimal = Decimal("15")
    project_code_prefix: str = "PRY"
    late_fee_grace_days: int = 5
    exchange_rates: ExchangeRateSettings = field(default_factory=ExchangeRateSettings)
    contracts: ContractSettings = field(default_factory=ContractSettings)
    checksum: str = ""
