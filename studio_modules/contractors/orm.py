"""
SQLAlchemy ORM persistence models for the Contractors module.

Responsibility
--------------
Tables ``project_contractors``, ``contractor_budgets`` and
``contractor_payments``.

Invariants enforced
-------------------
* One assignment per (project, contractor).
* ``contractor_budgets.total_amount == quantity * unit_price`` (rounded).
* A payment that is ``paid`` carries the id of the expense movement that
  paid it.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.domain.values import Money
from studio_modules.contractors.models import (
    BudgetCategory,
    BudgetItem,
    ContractorPayment,
    ContractorPaymentStatus,
    ContractorPaymentType,
    ProjectContractor,
    ProjectContractorStatus,
)

# ---------------------------------------------------------------------------
# ProjectContractorModel
# ---------------------------------------------------------------------------


class ProjectContractorModel(TrackedBase):
    """A contractor or provider assigned to a project."""

    __tablename__ = "project_contractors"

    __table_args__ = (
        UniqueConstraint("project_id", "contractor_id", name="uq_project_contractor"),
        Index("idx_project_contractor_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    contractor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contractor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProjectContractorStatus.ACTIVE.value
    )

    def to_dto(self) -> ProjectContractor:
        return ProjectContractor(
            id=self.id,
            project_id=self.project_id,
            contractor_id=self.contractor_id,
            contractor_name=self.contractor_name,
            currency=self.currency,
            status=ProjectContractorStatus(self.status),
        )


# ---------------------------------------------------------------------------
# ContractorBudgetItemModel
# ---------------------------------------------------------------------------


class ContractorBudgetItemModel(TrackedBase):
    """One line of a contractor's budget."""

    __tablename__ = "contractor_budgets"

    __table_args__ = (
        Index("idx_contractor_budget_owner", "project_contractor_id"),
        Index("idx_contractor_budget_category", "category"),
    )

    project_contractor_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("project_contractors.id"), nullable=False
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BudgetCategory.OTHER.value
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def to_dto(self) -> BudgetItem:
        return BudgetItem(
            id=self.id,
            project_contractor_id=self.project_contractor_id,
            description=self.description,
            category=BudgetCategory(self.category),
            quantity=self.quantity,
            unit=self.unit,
            unit_price=Money.of(self.unit_price, self.currency),
            total_amount=Money.of(self.total_amount, self.currency),
            order_index=self.order_index,
            notes=self.notes,
        )


# ---------------------------------------------------------------------------
# ContractorPaymentModel
# ---------------------------------------------------------------------------


class ContractorPaymentModel(TrackedBase):
    """
    A scheduled or executed payment to a contractor.

    Maps to the ``ContractorPayment`` DTO in
    ``studio_modules.contractors.models``.
    """

    __tablename__ = "contractor_payments"

    __table_args__ = (
        Index("idx_contractor_payment_owner", "project_contractor_id"),
        Index("idx_contractor_payment_status", "status"),
        Index("idx_contractor_payment_due_date", "due_date"),
    )

    project_contractor_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("project_contractors.id"), nullable=False
    )
    budget_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("contractor_budgets.id"), nullable=True
    )
    payment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContractorPaymentStatus.PENDING.value
    )
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    movement_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def money(self) -> Money:
        return Money.of(self.amount, self.currency)

    def to_dto(self) -> ContractorPayment:
        return ContractorPayment(
            id=self.id,
            project_contractor_id=self.project_contractor_id,
            amount=self.money,
            payment_type=ContractorPaymentType(self.payment_type),
            status=ContractorPaymentStatus(self.status),
            due_date=self.due_date,
            budget_item_id=self.budget_item_id,
            paid_at=self.paid_at,
            paid_by=self.paid_by,
            receipt_file_url=self.receipt_file_url,
            movement_id=self.movement_id,
            notes=self.notes,
            cancellation_reason=self.cancellation_reason,
        )

    def __repr__(self) -> str:
        return f"<ContractorPaymentModel {self.amount} {self.currency} [{self.status}]>"
