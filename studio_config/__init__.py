"""
studio_config -- single public entrypoint for studio settings.

Responsibility:
    ``get_active_settings()`` is the only way services obtain settings at
    runtime.  The default file is ``studio_config/sets/default.yaml``; the
    ``STUDIO_SETTINGS_PATH`` environment variable or an explicit ``path``
    selects another file.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- a value is out of range (see loader).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from studio_config.loader import load_settings, parse_settings
from studio_config.schema import ContractSettings, ExchangeRateSettings, StudioSettings

_logger = logging.getLogger("studio_kernel.config")

_DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(path: Path | str | None = None) -> StudioSettings:
    """
    Load the active studio settings.

    Args:
        path: Explicit YAML file.  Falls back to ``STUDIO_SETTINGS_PATH``,
            then to the bundled default set.
    """
    resolved = Path(path or os.environ.get("STUDIO_SETTINGS_PATH") or _DEFAULT_SETTINGS_PATH)
    settings = load_settings(resolved)
    _logger.info(
        "studio_settings_loaded",
        extra={
            "settings_path": str(resolved),
            "checksum": settings.checksum,
            "default_currency": settings.default_currency,
            "project_code_prefix": settings.project_code_prefix,
        },
    )
    return settings


__all__ = [
    "ContractSettings",
    "ExchangeRateSettings",
    "StudioSettings",
    "get_active_settings",
    "parse_settings",
]
