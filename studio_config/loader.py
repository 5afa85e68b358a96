"""
Settings Loader (``studio_config.loader``).

Responsibility
--------------
Loads a studio settings YAML file and parses it into the frozen
``StudioSettings`` dataclass.  Services never read YAML themselves; they
receive settings (or a module config derived from them) through their
constructor.

Invariants enforced
-------------------
* ``admin_fee_percentage`` is a Decimal in [0, 100].
* ``default_currency`` is a supported ledger currency.
* ``project_code_prefix`` is non-empty and contains no ``-``.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from studio_config.schema import ContractSettings, ExchangeRateSettings, StudioSettings
from studio_kernel.db.types import validate_currency

_EXCHANGE_SOURCES = frozenset({"blue", "oficial", "mep", "ccl"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of the parsed YAML."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_percentage(value: Any, name: str) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        pct = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} must be numeric, got {value!r}") from e
    if pct < 0 or pct > 100:
        raise ValueError(f"{name} must be between 0 and 100, got {pct}")
    return pct


def parse_settings(data: dict[str, Any]) -> StudioSettings:
    """
    Build ``StudioSettings`` from a parsed YAML mapping.

    Missing keys keep their dataclass defaults.
    """
    defaults = StudioSettings()

    prefix = str(data.get("project_code_prefix", defaults.project_code_prefix)).strip()
    if not prefix or "-" in prefix:
        raise ValueError(f"project_code_prefix must be non-empty without '-', got {prefix!r}")

    grace_days = int(data.get("late_fee_grace_days", defaults.late_fee_grace_days))
    if grace_days < 0:
        raise ValueError(f"late_fee_grace_days must be >= 0, got {grace_days}")

    rates_data = data.get("exchange_rates") or {}
    source = str(rates_data.get("source", ExchangeRateSettings.source))
    if source not in _EXCHANGE_SOURCES:
        raise ValueError(f"Unknown exchange rate source: {source!r}")
    cache_seconds = int(rates_data.get("cache_seconds", ExchangeRateSettings.cache_seconds))
    if cache_seconds <= 0:
        raise ValueError(f"exchange_rates.cache_seconds must be positive, got {cache_seconds}")

    contracts_data = data.get("contracts") or {}
    ttl = int(contracts_data.get("signed_url_ttl_seconds", ContractSettings.signed_url_ttl_seconds))
    if ttl <= 0:
        raise ValueError(f"contracts.signed_url_ttl_seconds must be positive, got {ttl}")

    return StudioSettings(
        studio_name=str(data.get("studio_name", defaults.studio_name)).strip('"'),
        default_currency=validate_currency(str(data.get("default_currency", defaults.default_currency))),
        admin_fee_percentage=parse_percentage(
            data.get("admin_fee_percentage", defaults.admin_fee_percentage),
            "admin_fee_percentage",
        ),
        project_code_prefix=prefix,
        late_fee_grace_days=grace_days,
        exchange_rates=ExchangeRateSettings(source=source, cache_seconds=cache_seconds),
        contracts=ContractSettings(signed_url_ttl_seconds=ttl),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> StudioSettings:
    """Load and parse a settings file."""
    return parse_settings(load_yaml_file(path))
