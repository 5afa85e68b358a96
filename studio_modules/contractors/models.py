"""
Contractor Domain Models (``studio_modules.contractors.models``).

Responsibility
--------------
Value objects for contractors assigned to a project, their budget line
items and their payments, plus the read-side summaries.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Amounts are ``Money``; a summary is always in the contractor's currency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from studio_kernel.domain.values import Money


class ProjectContractorStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ContractorPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class ContractorPaymentType(str, Enum):
    ADVANCE = "advance"
    PROGRESS = "progress"
    FINAL = "final"
    ADJUSTMENT = "adjustment"

    @property
    def label(self) -> str:
        return _PAYMENT_TYPE_LABELS[self]


_PAYMENT_TYPE_LABELS = {
    ContractorPaymentType.ADVANCE: "Anticipo",
    ContractorPaymentType.PROGRESS: "Avance",
    ContractorPaymentType.FINAL: "Pago final",
    ContractorPaymentType.ADJUSTMENT: "Ajuste",
}


class BudgetCategory(str, Enum):
    MATERIALS = "materials"
    LABOR = "labor"
    EQUIPMENT = "equipment"
    SERVICES = "services"
    OTHER = "other"


@dataclass(frozen=True)
class ProjectContractor:
    id: UUID
    project_id: UUID
    contractor_id: UUID
    contractor_name: str
    currency: str
    status: ProjectContractorStatus


@dataclass(frozen=True)
class NewContractorPayment:
    """Input for ``create_payment`` / ``register_and_process_payment``."""
    project_contractor_id: UUID
    amount: Money
    payment_type: ContractorPaymentType = ContractorPaymentType.PROGRESS
    due_date: date | None = None
    budget_item_id: UUID | None = None
    payment_method: str | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ContractorPayment:
    id: UUID
    project_contractor_id: UUID
    amount: Money
    payment_type: ContractorPaymentType
    status: ContractorPaymentStatus
    due_date: date | None = None
    budget_item_id: UUID | None = None
    paid_at: datetime | None = None
    paid_by: str | None = None
    receipt_file_url: str | None = None
    movement_id: UUID | None = None
    notes: str | None = None
    cancellation_reason: str | None = None


@dataclass(frozen=True)
class PaymentSummary:
    """Counts and totals of a contractor's payments by status and type."""
    project_contractor_id: UUID
    currency: str
    total_payments: int
    total_paid: Money
    total_pending: Money
    total_overdue: Money
    by_type: dict[str, Money] = field(default_factory=dict)
    by_status: dict[str, Money] = field(default_factory=dict)
    count_by_status: dict[str, int] = field(default_factory=dict)
    next_payment_date: date | None = None
    next_payment_amount: Money | None = None


@dataclass(frozen=True)
class ContractorFinancialSummary:
    """Budget versus payments for one contractor."""
    project_contractor_id: UUID
    currency: str
    budget_total: Money
    total_paid: Money
    total_pending: Money
    balance_due: Money
    payment_progress: Decimal
    overdue_count: int
    next_payment_date: date | None = None
    next_payment_amount: Money | None = None


@dataclass(frozen=True)
class BudgetItem:
    id: UUID
    project_contractor_id: UUID
    description: str
    category: BudgetCategory
    quantity: Decimal
    unit: str | None
    unit_price: Money
    total_amount: Money
    order_index: int
    notes: str | None = None


@dataclass(frozen=True)
class BudgetSummary:
    project_contractor_id: UUID
    currency: str
    total_items: int
    subtotal_by_category: dict[str, Money]
    grand_total: Money
