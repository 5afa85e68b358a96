"""
SQLAlchemy ORM persistence model for administrator fees.

Invariants enforced
-------------------
* At most one fee per (project_id, installment_id).
* ``status`` follows pending -> collected | cancelled.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.domain.values import Money
from studio_modules.admin_fee.models import AdministratorFee, FeeStatus, FeeType


class AdministratorFeeModel(TrackedBase):
    """
    A fee owed to the administrator for one project payment.

    Maps to the ``AdministratorFee`` DTO in ``studio_modules.admin_fee.models``.
    """

    __tablename__ = "administrator_fees"

    __table_args__ = (
        UniqueConstraint("project_id", "installment_id", name="uq_admin_fee_installment"),
        Index("idx_admin_fee_status", "status"),
        Index("idx_admin_fee_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    installment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    fee_type: Mapped[str] = mapped_column(String(20), nullable=False)
    fee_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=FeeStatus.PENDING.value)
    collected_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    movement_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    @property
    def fee(self) -> Money:
        return Money.of(self.fee_amount, self.currency)

    def to_dto(self) -> AdministratorFee:
        return AdministratorFee(
            id=self.id,
            project_id=self.project_id,
            installment_id=self.installment_id,
            fee_type=FeeType(self.fee_type),
            fee_percentage=self.fee_percentage,
            payment_amount=Money.of(self.payment_amount, self.currency),
            fee_amount=self.fee,
            status=FeeStatus(self.status),
            collected_amount=Money.of(self.collected_amount, self.currency),
            collected_at=self.collected_at,
            movement_id=self.movement_id,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<AdministratorFeeModel {self.fee_amount} {self.currency} [{self.status}]>"
