"""
Cash Ledger Domain Models (``studio_modules.ledger.models``).

Responsibility
--------------
Enums and frozen value objects for the dual cash-box system: movement
types, ledger endpoints, and read-side snapshots of balances and movements.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* Amounts are ``Money`` -- never a bare Decimal without its currency.
* A movement's ``amount`` is signed from the point of view of the ledger
  it is posted to: expenses are negative, incomes and mirrors positive.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from studio_kernel.domain.values import Money


class MovementType(str, Enum):
    PROJECT_INCOME = "project_income"
    MASTER_DUPLICATION = "master_duplication"
    DOWN_PAYMENT = "down_payment"
    MASTER_INCOME = "master_income"
    FEE_COLLECTION = "fee_collection"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    CURRENCY_EXCHANGE = "currency_exchange"


class LedgerEndpoint(str, Enum):
    EXTERNAL = "external"
    PROJECT = "project"
    MASTER = "master"
    ADMIN = "admin"


# Movement types whose amount moves a project cash box balance.
PROJECT_BOX_MOVEMENTS = frozenset({
    MovementType.PROJECT_INCOME,
    MovementType.DOWN_PAYMENT,
    MovementType.EXPENSE,
    MovementType.ADJUSTMENT,
})


@dataclass(frozen=True)
class CashMovement:
    """One row of the append-only movement log."""
    id: UUID
    movement_type: MovementType
    source_type: LedgerEndpoint
    destination_type: LedgerEndpoint
    amount: Money
    description: str
    project_id: UUID | None = None
    source_id: UUID | None = None
    destination_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass(frozen=True)
class CashBoxSnapshot:
    """Balances of one project cash box, both currencies."""
    project_id: UUID
    balance_ars: Money
    balance_usd: Money
    total_income_ars: Money
    total_income_usd: Money
    total_expense_ars: Money
    total_expense_usd: Money

    def balance(self, currency: str) -> Money:
        return self.balance_usd if currency == "USD" else self.balance_ars
