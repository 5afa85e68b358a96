"""
Administrator Fee Models (``studio_modules.admin_fee.models``).

Responsibility
--------------
Fee configuration, fee lifecycle and read-side DTOs.  ZERO I/O.

Invariants enforced
-------------------
* ``percentage`` fees carry a percentage in [0, 100].
* ``fixed`` and ``manual`` fees carry a non-negative fixed amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from studio_kernel.domain.values import Money


class FeeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    MANUAL = "manual"
    NONE = "none"


class FeeStatus(str, Enum):
    PENDING = "pending"
    COLLECTED = "collected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FeeConfig:
    """How a project charges its administrator fee."""
    fee_type: FeeType = FeeType.PERCENTAGE
    percentage: Decimal | None = None
    fixed_amount: Decimal | None = None

    @classmethod
    def none(cls) -> FeeConfig:
        return cls(fee_type=FeeType.NONE)

    @classmethod
    def percent(cls, percentage: Decimal | str | int) -> FeeConfig:
        return cls(fee_type=FeeType.PERCENTAGE, percentage=Decimal(str(percentage)))

    @classmethod
    def fixed(cls, amount: Decimal | str | int) -> FeeConfig:
        return cls(fee_type=FeeType.FIXED, fixed_amount=Decimal(str(amount)))


@dataclass(frozen=True)
class AdministratorFee:
    id: UUID
    project_id: UUID
    installment_id: UUID | None
    fee_type: FeeType
    fee_percentage: Decimal | None
    payment_amount: Money
    fee_amount: Money
    status: FeeStatus
    collected_amount: Money
    collected_at: datetime | None = None
    movement_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class FeeStats:
    """Counts and totals of fees in one currency."""
    currency: str
    pending_count: int
    collected_count: int
    cancelled_count: int
    total_pending: Money
    total_collected: Money
