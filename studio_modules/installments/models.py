"""
Installment Plan Models (``studio_modules.installments.models``).

Frozen value objects produced by the planner.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from studio_kernel.domain.values import Money


class PaymentFrequency(str, Enum):
    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"
    QUARTERLY = "quarterly"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    PaymentFrequency.MONTHLY: "mensual",
    PaymentFrequency.BIWEEKLY: "quincenal",
    PaymentFrequency.WEEKLY: "semanal",
    PaymentFrequency.QUARTERLY: "trimestral",
}


@dataclass(frozen=True)
class PlannedInstallment:
    """One scheduled payment; number 0 is the down payment."""
    number: int
    amount: Money
    due_date: date
    description: str

    @property
    def is_down_payment(self) -> bool:
        return self.number == 0
