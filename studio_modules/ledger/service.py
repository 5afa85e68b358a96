"""
studio_modules.ledger.service
=============================

Responsibility:
    ``CashLedgerStore`` persists project, master and admin balances and the
    append-only movement log.  Every balance change it makes is paired with
    a ``cash_movements`` row in the same flush.

Architecture:
    Module layer, flush-only (extends ``BaseService``).  It never commits;
    the calling accounting service owns the transaction, so the project
    ledger write and its master-ledger mirror commit or roll back together.

Invariants enforced:
    - Balances are never mutated without a movement row.
    - A project box's balance per currency equals the signed sum of its
      box movements in that currency (``compute_project_balance``).
    - Debits are validated against the balance of the SAME currency; no
      conversion and no top-up happen here.
    - Balance rows are read ``FOR UPDATE`` before mutation.

Failure modes:
    - CashBoxNotFoundError -- no cash box for the project.
    - InsufficientFundsError -- debit exceeds balance; nothing is written.
    - ValidationError -- non-positive amount where a positive one is needed.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    CashBoxNotFoundError,
    InsufficientFundsError,
    ValidationError,
)
from studio_kernel.logging_config import get_logger
from studio_kernel.services.base import BaseService
from studio_modules.ledger.models import (
    PROJECT_BOX_MOVEMENTS,
    LedgerEndpoint,
    MovementType,
)
from studio_modules.ledger.orm import (
    AdminCashModel,
    CashMovementModel,
    MasterCashModel,
    ProjectCashBoxModel,
)

logger = get_logger("modules.ledger.service")


def _require_positive(money: Money, field: str = "amount") -> None:
    if not money.is_positive:
        raise ValidationError({field: f"must be greater than zero, got {money}"})


class CashLedgerStore(BaseService):
    """
    Data access and posting primitives for the dual cash-box system.

    Guarantees:
        - Each posting method either writes all of its rows or raises
          before writing any.
        - Does NOT call ``session.commit()``.
    """

    # =========================================================================
    # Ledger rows
    # =========================================================================

    def open_project_cash_box(self, project_id: UUID, actor_id: UUID) -> ProjectCashBoxModel:
        """Create the zero-balance cash box of a new project."""
        box = ProjectCashBoxModel(
            id=self.ids.new_id(),
            project_id=project_id,
            current_balance_ars=Decimal("0"),
            current_balance_usd=Decimal("0"),
            total_income_ars=Decimal("0"),
            total_income_usd=Decimal("0"),
            total_expense_ars=Decimal("0"),
            total_expense_usd=Decimal("0"),
            created_by_id=actor_id,
        )
        self.session.add(box)
        self.session.flush()
        logger.info("project_cash_box_opened", extra={"project_id": str(project_id)})
        return box

    def get_project_cash_box(self, project_id: UUID, lock: bool = False) -> ProjectCashBoxModel:
        stmt = select(ProjectCashBoxModel).where(ProjectCashBoxModel.project_id == project_id)
        if lock:
            stmt = stmt.with_for_update()
        box = self.session.execute(stmt).scalar_one_or_none()
        if box is None:
            raise CashBoxNotFoundError(f"project:{project_id}")
        return box

    def get_master_cash(self, actor_id: UUID | None = None, lock: bool = False) -> MasterCashModel:
        """The master ledger row, created on first use when ``actor_id`` is given."""
        stmt = select(MasterCashModel)
        if lock:
            stmt = stmt.with_for_update()
        master = self.session.execute(stmt).scalars().first()
        if master is None:
            if actor_id is None:
                raise CashBoxNotFoundError("master")
            master = MasterCashModel(
                id=self.ids.new_id(),
                balance_ars=Decimal("0"),
                balance_usd=Decimal("0"),
                total_income_ars=Decimal("0"),
                total_income_usd=Decimal("0"),
                created_by_id=actor_id,
            )
            self.session.add(master)
            self.session.flush()
            logger.info("master_cash_initialized")
        return master

    def get_admin_cash(self, actor_id: UUID | None = None, lock: bool = False) -> AdminCashModel:
        stmt = select(AdminCashModel)
        if lock:
            stmt = stmt.with_for_update()
        admin = self.session.execute(stmt).scalars().first()
        if admin is None:
            if actor_id is None:
                raise CashBoxNotFoundError("admin")
            admin = AdminCashModel(
                id=self.ids.new_id(),
                balance_ars=Decimal("0"),
                balance_usd=Decimal("0"),
                total_collected_ars=Decimal("0"),
                total_collected_usd=Decimal("0"),
                created_by_id=actor_id,
            )
            self.session.add(admin)
            self.session.flush()
            logger.info("admin_cash_initialized")
        return admin

    # =========================================================================
    # Balances
    # =========================================================================

    def get_project_balance(self, project_id: UUID, currency: str) -> Money:
        return self.get_project_cash_box(project_id).balance(currency)

    def get_master_balance(self, currency: str) -> Money:
        try:
            return self.get_master_cash().balance(currency)
        except CashBoxNotFoundError:
            return Money.zero(currency)

    def get_admin_balance(self, currency: str) -> Money:
        try:
            return self.get_admin_cash().balance(currency)
        except CashBoxNotFoundError:
            return Money.zero(currency)

    # =========================================================================
    # Postings
    # =========================================================================

    def post_project_income(
        self,
        project_id: UUID,
        money: Money,
        actor_id: UUID,
        description: str,
        metadata: dict[str, Any] | None = None,
        movement_type: MovementType = MovementType.PROJECT_INCOME,
        mirror_type: MovementType = MovementType.MASTER_DUPLICATION,
    ) -> tuple[CashMovementModel, CashMovementModel]:
        """
        Credit a project box and mirror the amount into the master ledger.

        Writes two movements carrying the same amount: ``movement_type``
        (external -> project) and ``mirror_type`` (into master).  A
        ``master_duplication`` mirror is sourced from the project; a
        ``master_income`` mirror is sourced externally.
        """
        _require_positive(money)
        box = self.get_project_cash_box(project_id, lock=True)
        master = self.get_master_cash(actor_id=actor_id, lock=True)

        box.credit(money)
        master.credit(money)

        income = self._movement(
            movement_type=movement_type,
            source=(LedgerEndpoint.EXTERNAL, None),
            destination=(LedgerEndpoint.PROJECT, box.id),
            money=money,
            description=description,
            project_id=project_id,
            metadata=metadata,
            actor_id=actor_id,
        )
        mirror_source = (
            (LedgerEndpoint.PROJECT, box.id)
            if mirror_type == MovementType.MASTER_DUPLICATION
            else (LedgerEndpoint.EXTERNAL, None)
        )
        mirror = self._movement(
            movement_type=mirror_type,
            source=mirror_source,
            destination=(LedgerEndpoint.MASTER, master.id),
            money=money,
            description=f"{description} (caja maestra)",
            project_id=project_id,
            metadata=metadata,
            actor_id=actor_id,
        )
        self.session.flush()

        logger.info(
            "project_income_posted",
            extra={
                "project_id": str(project_id),
                "amount": str(money.amount),
                "currency": money.currency.code,
                "movement_type": movement_type.value,
                "mirror_type": mirror_type.value,
            },
        )
        return income, mirror

    def post_project_expense(
        self,
        project_id: UUID,
        money: Money,
        actor_id: UUID,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> CashMovementModel:
        """
        Debit a project box (and its master mirror) for an outgoing payment.

        Raises:
            InsufficientFundsError: project balance in ``money.currency`` is
                below ``money``; no rows are written.
        """
        _require_positive(money)
        box = self.get_project_cash_box(project_id, lock=True)
        available = box.balance(money.currency.code)
        if available < money:
            logger.warning(
                "cash_box_insufficient_funds",
                extra={
                    "project_id": str(project_id),
                    "currency": money.currency.code,
                    "required": str(money.amount),
                    "available": str(available.amount),
                },
            )
            raise InsufficientFundsError(
                ledger="project_cash_box",
                currency=money.currency.code,
                required=money.amount,
                available=available.amount,
            )

        master = self.get_master_cash(actor_id=actor_id, lock=True)
        box.debit(money)
        master.debit(money)

        movement = self._movement(
            movement_type=MovementType.EXPENSE,
            source=(LedgerEndpoint.PROJECT, box.id),
            destination=(LedgerEndpoint.EXTERNAL, None),
            money=-money,
            description=description,
            project_id=project_id,
            metadata=metadata,
            actor_id=actor_id,
        )
        self.session.flush()

        logger.info(
            "project_expense_posted",
            extra={
                "project_id": str(project_id),
                "amount": str(money.amount),
                "currency": money.currency.code,
                "movement_id": str(movement.id),
            },
        )
        return movement

    def transfer_master_to_admin(
        self,
        money: Money,
        actor_id: UUID,
        description: str,
        project_id: UUID | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CashMovementModel:
        """
        Move collected fees from the master ledger to the admin pool.

        Raises:
            InsufficientFundsError: master balance in ``money.currency`` is
                below ``money``.
        """
        _require_positive(money)
        master = self.get_master_cash(actor_id=actor_id, lock=True)
        available = master.balance(money.currency.code)
        if available < money:
            raise InsufficientFundsError(
                ledger="master_cash",
                currency=money.currency.code,
                required=money.amount,
                available=available.amount,
            )
        admin = self.get_admin_cash(actor_id=actor_id, lock=True)

        master.debit(money)
        admin.credit(money)

        movement = self._movement(
            movement_type=MovementType.FEE_COLLECTION,
            source=(LedgerEndpoint.MASTER, master.id),
            destination=(LedgerEndpoint.ADMIN, admin.id),
            money=money,
            description=description,
            project_id=project_id,
            metadata=metadata,
            actor_id=actor_id,
        )
        self.session.flush()
        logger.info(
            "fee_transferred_to_admin",
            extra={
                "project_id": str(project_id) if project_id else None,
                "amount": str(money.amount),
                "currency": money.currency.code,
            },
        )
        return movement

    def record_adjustment(
        self,
        project_id: UUID,
        money: Money,
        actor_id: UUID,
        reason: str,
    ) -> CashMovementModel:
        """
        Signed correction on a project box, mirrored on the master ledger.

        A negative adjustment may not take the project balance below zero.
        """
        if money.is_zero:
            raise ValidationError({"amount": "adjustment must be non-zero"})
        if not reason.strip():
            raise ValidationError({"reason": "required"})

        box = self.get_project_cash_box(project_id, lock=True)
        master = self.get_master_cash(actor_id=actor_id, lock=True)
        if money.is_negative:
            available = box.balance(money.currency.code)
            if available < abs(money):
                raise InsufficientFundsError(
                    ledger="project_cash_box",
                    currency=money.currency.code,
                    required=abs(money.amount),
                    available=available.amount,
                )
            box.debit(abs(money))
            master.debit(abs(money))
        else:
            box.credit(money)
            master.credit(money)

        movement = self._movement(
            movement_type=MovementType.ADJUSTMENT,
            source=(LedgerEndpoint.EXTERNAL, None),
            destination=(LedgerEndpoint.PROJECT, box.id),
            money=money,
            description=reason,
            project_id=project_id,
            metadata={"reason": reason},
            actor_id=actor_id,
        )
        self.session.flush()
        logger.info(
            "project_adjustment_posted",
            extra={"project_id": str(project_id), "amount": str(money.amount),
                   "currency": money.currency.code},
        )
        return movement

    # =========================================================================
    # Movement log
    # =========================================================================

    def list_movements(
        self,
        project_id: UUID | None = None,
        movement_type: MovementType | None = None,
        currency: str | None = None,
    ) -> list[CashMovementModel]:
        stmt = select(CashMovementModel)
        if project_id is not None:
            stmt = stmt.where(CashMovementModel.project_id == project_id)
        if movement_type is not None:
            stmt = stmt.where(CashMovementModel.movement_type == movement_type.value)
        if currency is not None:
            stmt = stmt.where(CashMovementModel.currency == currency)
        stmt = stmt.order_by(CashMovementModel.created_at, CashMovementModel.id)
        return list(self.session.scalars(stmt))

    def get_movement(self, movement_id: UUID) -> CashMovementModel | None:
        return self.session.get(CashMovementModel, movement_id)

    def compute_project_balance(self, project_id: UUID, currency: str) -> Money:
        """Replay the project's box movements in ``currency``."""
        total = Money.zero(currency)
        for movement in self.list_movements(project_id=project_id, currency=currency):
            if MovementType(movement.movement_type) in PROJECT_BOX_MOVEMENTS:
                total = total + movement.money
        return total

    def _movement(
        self,
        movement_type: MovementType,
        source: tuple[LedgerEndpoint, UUID | None],
        destination: tuple[LedgerEndpoint, UUID | None],
        money: Money,
        description: str,
        project_id: UUID | None,
        metadata: dict[str, Any] | None,
        actor_id: UUID,
    ) -> CashMovementModel:
        movement = CashMovementModel(
            id=self.ids.new_id(),
            movement_type=movement_type.value,
            source_type=source[0].value,
            source_id=source[1],
            destination_type=destination[0].value,
            destination_id=destination[1],
            amount=money.amount,
            currency=money.currency.code,
            description=description,
            project_id=project_id,
            metadata_=dict(metadata or {}),
            created_by_id=actor_id,
        )
        self.session.add(movement)
        return movement
