"""
Identifier generation.

Services receive an ``IdGenerator`` through their constructor so row ids
(projects, movements, payments, fees) are reproducible in tests.
"""

from abc import ABC, abstractmethod
from uuid import UUID, uuid4


class IdGenerator(ABC):
    """Produces primary keys for new rows."""

    @abstractmethod
    def new_id(self) -> UUID:
        ...


class UUID4Generator(IdGenerator):
    """Production generator: random uuid4 values."""

    def new_id(self) -> UUID:
        return uuid4()


class SequentialIdGenerator(IdGenerator):
    """
    Deterministic generator for tests.

    Yields ``00000000-0000-4000-8000-000000000001``, ``...0002``, ...
    """

    def __init__(self, start: int = 1):
        self._next = start

    def new_id(self) -> UUID:
        value = UUID(f"00000000-0000-4000-8000-{self._next:012d}")
        self._next += 1
        return value
