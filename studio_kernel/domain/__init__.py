"""
Pure domain layer.

Value objects and injectable dependencies with NO dependency on the ORM,
the database or wall-clock time.
"""

from studio_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from studio_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from studio_kernel.domain.ids import IdGenerator, SequentialIdGenerator, UUID4Generator
from studio_kernel.domain.values import Currency, ExchangeRate, Money

__all__ = [
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "ExchangeRate",
    "IdGenerator",
    "Money",
    "SequentialIdGenerator",
    "SystemClock",
    "UUID4Generator",
]
