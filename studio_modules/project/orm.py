"""
SQLAlchemy ORM persistence models for the Project Accounting module.

Responsibility
--------------
Tables ``projects``, ``installments`` and ``payments``.  Cash balances live
in the ledger module; these rows hold the contract terms, the schedule and
the receipts.

Invariants enforced
-------------------
* ``code`` is unique across all projects.
* ``installment_number`` is unique per project; 0 is the down payment.
* Projects are soft-deleted through ``deleted_at`` and never removed once
  they have movements.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.domain.values import Money
from studio_modules.admin_fee.models import FeeConfig, FeeType
from studio_modules.installments.models import PaymentFrequency
from studio_modules.project.models import (
    DownPaymentStatus,
    Installment,
    InstallmentStatus,
    Project,
    ProjectStatus,
)

# ---------------------------------------------------------------------------
# ProjectModel
# ---------------------------------------------------------------------------


class ProjectModel(TrackedBase):
    """
    A client project and its financing terms.

    Maps to the ``Project`` DTO in ``studio_modules.project.models``.

    Guarantees:
        - ``down_payment_amount + sum(installments.amount) == total_amount``
          (within 0.01) when every installment was created.
        - ``down_payment_status`` is ``none`` iff there is no down payment.
    """

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("code", name="uq_project_code"),
        Index("idx_project_status", "status"),
        Index("idx_project_client", "client_id"),
    )

    code: Mapped[str] = mapped_column(String(30), nullable=False)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    project_type: Mapped[str] = mapped_column(String(50), nullable=False, default="other")
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ProjectStatus.ACTIVE.value)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    down_payment_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    down_payment_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    installments_count: Mapped[int] = mapped_column(nullable=False, default=1)
    installment_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentFrequency.MONTHLY.value
    )
    late_fee_percentage: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    estimated_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    admin_fee_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FeeType.PERCENTAGE.value
    )
    admin_fee_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    admin_fee_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    down_payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DownPaymentStatus.NONE.value
    )
    down_payment_auto_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def money(self, amount: Decimal | None) -> Money:
        return Money.of(amount or Decimal("0"), self.currency)

    @property
    def fee_config(self) -> FeeConfig:
        return FeeConfig(
            fee_type=FeeType(self.admin_fee_type),
            percentage=self.admin_fee_percentage,
            fixed_amount=self.admin_fee_amount,
        )

    def to_dto(self) -> Project:
        return Project(
            id=self.id,
            code=self.code,
            project_name=self.project_name,
            status=ProjectStatus(self.status),
            total_amount=self.money(self.total_amount),
            down_payment_amount=self.money(self.down_payment_amount),
            installments_count=self.installments_count,
            installment_amount=(
                self.money(self.installment_amount)
                if self.installment_amount is not None else None
            ),
            payment_frequency=PaymentFrequency(self.payment_frequency),
            start_date=self.start_date,
            down_payment_status=DownPaymentStatus(self.down_payment_status),
            down_payment_auto_confirmed=self.down_payment_auto_confirmed,
            admin_fee_type=FeeType(self.admin_fee_type),
            admin_fee_percentage=self.admin_fee_percentage,
            client_id=self.client_id,
            deleted_at=self.deleted_at,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.code}: {self.project_name} [{self.status}]>"


# ---------------------------------------------------------------------------
# InstallmentModel
# ---------------------------------------------------------------------------


class InstallmentModel(TrackedBase):
    """
    One scheduled payment of a project.

    Guarantees:
        - ``paid_amount`` only grows.
        - Never deleted once paid.
    """

    __tablename__ = "installments"

    __table_args__ = (
        UniqueConstraint("project_id", "installment_number", name="uq_installment_number"),
        Index("idx_installment_status", "status"),
        Index("idx_installment_due_date", "due_date"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    installment_number: Mapped[int] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InstallmentStatus.PENDING.value
    )
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    @property
    def outstanding(self) -> Money:
        return Money.of(self.amount - (self.paid_amount or Decimal("0")), self.currency)

    def to_dto(self) -> Installment:
        return Installment(
            id=self.id,
            project_id=self.project_id,
            installment_number=self.installment_number,
            amount=Money.of(self.amount, self.currency),
            due_date=self.due_date,
            status=InstallmentStatus(self.status),
            paid_amount=Money.of(self.paid_amount or Decimal("0"), self.currency),
            paid_at=self.paid_at,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<InstallmentModel #{self.installment_number} {self.amount} [{self.status}]>"


# ---------------------------------------------------------------------------
# PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """Receipt for money received against an installment."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_project", "project_id"),
        Index("idx_payment_installment", "installment_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("projects.id"), nullable=False
    )
    installment_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("installments.id"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    movement_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    @property
    def money(self) -> Money:
        return Money.of(self.amount, self.currency)

    def __repr__(self) -> str:
        return f"<PaymentModel {self.amount} {self.currency} via {self.payment_method}>"
