"""
Project Accounting Domain Models (``studio_modules.project.models``).

Responsibility
--------------
Frozen dataclass value objects for project accounting: the creation
request coming from the project wizard, the down-payment confirmation,
project and installment snapshots, and the read-time progress aggregate.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by
``ProjectAccountingService`` and returned to callers.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields are ``Money`` or ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from studio_kernel.domain.values import Money
from studio_modules.admin_fee.models import FeeType
from studio_modules.installments.models import PaymentFrequency


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DownPaymentStatus(str, Enum):
    """Single state machine for both confirmation paths."""
    NONE = "none"  # project has no down payment
    PENDING = "pending"
    CONFIRMED = "confirmed"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CHECK = "check"
    CARD = "card"
    OTHER = "other"


@dataclass(frozen=True)
class CreateProjectRequest:
    """
    Input of the project creation wizard.

    ``total_amount`` and ``down_payment_amount`` must share a currency.
    ``admin_fee_percentage=None`` with ``admin_fee_type=percentage`` means
    the studio default percentage.
    """
    project_name: str
    total_amount: Money
    down_payment_amount: Money
    installments_count: int
    start_date: date
    client_id: UUID | None = None
    client_name: str = ""
    project_type: str = "other"
    description: str | None = None
    estimated_end_date: date | None = None
    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    first_payment_date: date | None = None
    down_payment_date: date | None = None
    down_payment_percentage: Decimal | None = None
    late_fee_percentage: Decimal = Decimal("0")
    admin_fee_type: FeeType = FeeType.PERCENTAGE
    admin_fee_percentage: Decimal | None = None
    admin_fee_amount: Decimal | None = None
    auto_confirm_down_payment: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def currency(self) -> str:
        return self.total_amount.currency.code


@dataclass(frozen=True)
class DownPaymentConfirmation:
    """Manual confirmation of a down payment received by the studio."""
    amount: Money
    payment_method: PaymentMethod = PaymentMethod.TRANSFER
    reference_number: str | None = None
    bank_account: str | None = None
    notes: str | None = None
    payment_date: date | None = None


@dataclass(frozen=True)
class Project:
    id: UUID
    code: str
    project_name: str
    status: ProjectStatus
    total_amount: Money
    down_payment_amount: Money
    installments_count: int
    installment_amount: Money | None
    payment_frequency: PaymentFrequency
    start_date: date | None
    down_payment_status: DownPaymentStatus
    down_payment_auto_confirmed: bool
    admin_fee_type: FeeType
    admin_fee_percentage: Decimal | None
    client_id: UUID | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class Installment:
    id: UUID
    project_id: UUID
    installment_number: int
    amount: Money
    due_date: date
    status: InstallmentStatus
    paid_amount: Money
    paid_at: datetime | None = None
    notes: str | None = None

    @property
    def is_down_payment(self) -> bool:
        return self.installment_number == 0


@dataclass(frozen=True)
class ProjectCreationResult:
    """
    Outcome of ``create_project``.

    The project and its cash box always exist when this is returned.
    ``warnings`` lists best-effort steps that failed; ``side_effect_task_ids``
    points at the outbox rows for fee collection.
    """
    project: Project
    installments: tuple[Installment, ...] = ()
    down_payment_confirmed: bool = False
    warnings: tuple[str, ...] = ()
    side_effect_task_ids: tuple[UUID, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.warnings


@dataclass(frozen=True)
class ProjectProgress:
    """Read-time aggregate over the project's installment rows."""
    project_id: UUID
    total_amount: Money
    total_paid: Money
    remaining: Money
    percentage_complete: int
    installments_paid: int
    installments_total: int
    next_due_date: date | None = None
    next_due_amount: Money | None = None
