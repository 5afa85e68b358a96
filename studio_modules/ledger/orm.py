"""
SQLAlchemy ORM persistence models for the cash ledgers.

Responsibility
--------------
Tables ``project_cash_box``, ``master_cash``, ``admin_cash`` and
``cash_movements``.  Balance rows keep one column per currency (ARS and
USD are independent ledgers); the helpers below are the only code that
picks a column from a currency code.

Invariants enforced
-------------------
* One cash box per project (unique ``project_id``).
* ``master_cash`` and ``admin_cash`` hold a single row each.
* ``cash_movements`` is append-only: the store inserts, never updates.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.domain.values import Money
from studio_modules.ledger.models import (
    CashBoxSnapshot,
    CashMovement,
    LedgerEndpoint,
    MovementType,
)

ZERO = Decimal("0")


def _suffix(currency: str) -> str:
    if currency not in ("ARS", "USD"):
        raise ValueError(f"Unsupported ledger currency: {currency}")
    return currency.lower()


class _PerCurrencyMixin:
    """Column access by currency code: ``self._get("current_balance", "USD")``."""

    def _get(self, prefix: str, currency: str) -> Decimal:
        return getattr(self, f"{prefix}_{_suffix(currency)}") or ZERO

    def _add(self, prefix: str, currency: str, delta: Decimal) -> None:
        setattr(self, f"{prefix}_{_suffix(currency)}", self._get(prefix, currency) + delta)


# ---------------------------------------------------------------------------
# ProjectCashBoxModel
# ---------------------------------------------------------------------------


class ProjectCashBoxModel(_PerCurrencyMixin, TrackedBase):
    """
    Per-project ledger, one row per project.

    Guarantees:
        - Created with zero balances in both currencies.
        - ``current_balance_<cur>`` equals the signed sum of the project's
          box movements in that currency.
    """

    __tablename__ = "project_cash_box"

    __table_args__ = (
        UniqueConstraint("project_id", name="uq_project_cash_box_project"),
    )

    project_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    current_balance_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    current_balance_usd: Mapped[Decimal] = mapped_column(default=ZERO)
    total_income_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    total_income_usd: Mapped[Decimal] = mapped_column(default=ZERO)
    total_expense_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    total_expense_usd: Mapped[Decimal] = mapped_column(default=ZERO)

    def balance(self, currency: str) -> Money:
        return Money.of(self._get("current_balance", currency), currency)

    def credit(self, money: Money) -> None:
        code = money.currency.code
        self._add("current_balance", code, money.amount)
        self._add("total_income", code, money.amount)

    def debit(self, money: Money) -> None:
        code = money.currency.code
        self._add("current_balance", code, -money.amount)
        self._add("total_expense", code, money.amount)

    def to_dto(self) -> CashBoxSnapshot:
        return CashBoxSnapshot(
            project_id=self.project_id,
            balance_ars=Money.of(self._get("current_balance", "ARS"), "ARS"),
            balance_usd=Money.of(self._get("current_balance", "USD"), "USD"),
            total_income_ars=Money.of(self._get("total_income", "ARS"), "ARS"),
            total_income_usd=Money.of(self._get("total_income", "USD"), "USD"),
            total_expense_ars=Money.of(self._get("total_expense", "ARS"), "ARS"),
            total_expense_usd=Money.of(self._get("total_expense", "USD"), "USD"),
        )

    def __repr__(self) -> str:
        return (
            f"<ProjectCashBoxModel {self.project_id} "
            f"ARS={self.current_balance_ars} USD={self.current_balance_usd}>"
        )


# ---------------------------------------------------------------------------
# MasterCashModel
# ---------------------------------------------------------------------------


class MasterCashModel(_PerCurrencyMixin, TrackedBase):
    """
    Firm-wide ledger mirroring every project income ("Sistema Doble Caja").
    """

    __tablename__ = "master_cash"

    balance_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    balance_usd: Mapped[Decimal] = mapped_column(default=ZERO)
    total_income_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    total_income_usd: Mapped[Decimal] = mapped_column(default=ZERO)

    def balance(self, currency: str) -> Money:
        return Money.of(self._get("balance", currency), currency)

    def credit(self, money: Money) -> None:
        self._add("balance", money.currency.code, money.amount)
        self._add("total_income", money.currency.code, money.amount)

    def debit(self, money: Money) -> None:
        self._add("balance", money.currency.code, -money.amount)

    def __repr__(self) -> str:
        return f"<MasterCashModel ARS={self.balance_ars} USD={self.balance_usd}>"


# ---------------------------------------------------------------------------
# AdminCashModel
# ---------------------------------------------------------------------------


class AdminCashModel(_PerCurrencyMixin, TrackedBase):
    """Administrator cash pool that receives collected fees."""

    __tablename__ = "admin_cash"

    balance_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    balance_usd: Mapped[Decimal] = mapped_column(default=ZERO)
    total_collected_ars: Mapped[Decimal] = mapped_column(default=ZERO)
    total_collected_usd: Mapped[Decimal] = mapped_column(default=ZERO)

    def balance(self, currency: str) -> Money:
        return Money.of(self._get("balance", currency), currency)

    def total_collected(self, currency: str) -> Money:
        return Money.of(self._get("total_collected", currency), currency)

    def credit(self, money: Money) -> None:
        self._add("balance", money.currency.code, money.amount)
        self._add("total_collected", money.currency.code, money.amount)


# ---------------------------------------------------------------------------
# CashMovementModel
# ---------------------------------------------------------------------------


class CashMovementModel(TrackedBase):
    """
    Append-only ledger row.

    Maps to the ``CashMovement`` DTO in ``studio_modules.ledger.models``.
    """

    __tablename__ = "cash_movements"

    __table_args__ = (
        Index("idx_cash_movement_project", "project_id"),
        Index("idx_cash_movement_type", "movement_type"),
    )

    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    source_type: Mapped[str] = mapped_column(String(20), nullable=False)
    source_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    destination_type: Mapped[str] = mapped_column(String(20), nullable=False)
    destination_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    @property
    def money(self) -> Money:
        return Money.of(self.amount, self.currency)

    def to_dto(self) -> CashMovement:
        return CashMovement(
            id=self.id,
            movement_type=MovementType(self.movement_type),
            source_type=LedgerEndpoint(self.source_type),
            destination_type=LedgerEndpoint(self.destination_type),
            amount=self.money,
            description=self.description,
            project_id=self.project_id,
            source_id=self.source_id,
            destination_id=self.destination_id,
            metadata=dict(self.metadata_ or {}),
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<CashMovementModel {self.movement_type} {self.amount} {self.currency}>"
