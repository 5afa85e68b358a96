"""
Module: studio_kernel.db.types
Responsibility: Currency code validation for values stored in the ledger
    tables and read from settings.
Architecture position: Kernel > DB.  Imported by the settings loader.
    MUST NOT import from services or modules.

Invariants enforced:
    - Currency codes are validated against CurrencyRegistry.
"""

from studio_kernel.domain.currency import CurrencyRegistry


def validate_currency(code: str) -> str:
    """
    Normalize and validate a currency code.

    Raises:
        ValueError: If the code is not a supported ledger currency.
    """
    normalized = (code or "").upper().strip()
    if not CurrencyRegistry.is_valid(normalized):
        raise ValueError(f"Unsupported currency code: {code}")
    return normalized
