"""
External collaborators (``studio_modules.collaborators``).

Object storage for signed contracts and the USD/ARS exchange-rate feed,
each behind a Protocol so services and tests can substitute their own.
"""

from studio_modules.collaborators.exchange_rates import (
    ExchangeQuote,
    ExchangeRateProvider,
    ExchangeRateService,
    RateSource,
    StaticExchangeRateProvider,
)
from studio_modules.collaborators.storage import (
    ContractStorage,
    InMemoryContractStorage,
    StoredObject,
    contract_path,
)

__all__ = [
    "ContractStorage",
    "ExchangeQuote",
    "ExchangeRateProvider",
    "ExchangeRateService",
    "InMemoryContractStorage",
    "RateSource",
    "StaticExchangeRateProvider",
    "StoredObject",
    "contract_path",
]
