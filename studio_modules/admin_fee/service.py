"""
studio_modules.admin_fee.service
================================

Responsibility:
    Records administrator fees on project payments and collects them by
    moving the fee from the master ledger into the administrator pool.

Architecture:
    Module layer.  Owns its transaction when ``auto_commit=True`` (direct
    callers); runs flush-only when composed inside another service's
    transaction (``auto_commit=False``), e.g. from the side-effect outbox.

Invariants enforced:
    - At most one fee per (project, installment).
    - Only ``pending`` fees can be collected or cancelled.
    - Collection writes exactly one ``fee_collection`` movement and checks
      the master balance in the fee's currency first.

Failure modes:
    - AdministratorFeeNotFoundError -- unknown fee id.
    - AdministratorFeeStateError -- collect/cancel on a non-pending fee.
    - InsufficientFundsError -- master ledger cannot cover the fee; the fee
      stays pending.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.ids import IdGenerator, UUID4Generator
from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    AdministratorFeeNotFoundError,
    AdministratorFeeStateError,
)
from studio_kernel.logging_config import get_logger
from studio_modules.admin_fee.calculator import calculate_fee
from studio_modules.admin_fee.models import FeeConfig, FeeStats, FeeStatus
from studio_modules.admin_fee.orm import AdministratorFeeModel
from studio_modules.ledger.service import CashLedgerStore

logger = get_logger("modules.admin_fee.service")


class AdministratorFeeService:
    """
    Fee lifecycle: pending -> collected | cancelled.

    Transaction boundary:
        ``auto_commit=True``: each public mutating method commits on
        success and rolls back on failure.  ``auto_commit=False``: flushes
        only; the caller owns commit/rollback.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        ledger: CashLedgerStore | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ids = ids or UUID4Generator()
        self._ledger = ledger or CashLedgerStore(session, self._clock, self._ids)
        self._auto_commit = auto_commit

    def _commit(self) -> None:
        if self._auto_commit:
            self._session.commit()
        else:
            self._session.flush()

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    # =========================================================================
    # Commands
    # =========================================================================

    def create_fee(
        self,
        project_id: UUID,
        base: Money,
        config: FeeConfig,
        actor_id: UUID,
        installment_id: UUID | None = None,
    ) -> AdministratorFeeModel | None:
        """
        Record a pending fee for a payment of ``base``.

        Returns:
            The new fee, or None when the config is ``none`` or a fee for
            this installment already exists.
        """
        try:
            fee = self._create(project_id, base, config, actor_id, installment_id)
            self._commit()
            return fee
        except Exception:
            self._rollback()
            raise

    def collect_fee(self, fee_id: UUID, actor_id: UUID) -> AdministratorFeeModel:
        """Move a pending fee from the master ledger into the admin pool."""
        try:
            fee = self._collect(self.get_fee(fee_id), actor_id)
            self._commit()
            return fee
        except Exception:
            self._rollback()
            raise

    def process_fee(
        self,
        project_id: UUID,
        base: Money,
        config: FeeConfig,
        actor_id: UUID,
        installment_id: UUID | None = None,
    ) -> AdministratorFeeModel | None:
        """
        Create-and-collect.  Re-running for the same installment collects
        the existing pending fee instead of creating a second one.
        """
        try:
            fee = self._find(project_id, installment_id) if installment_id else None
            if fee is None:
                fee = self._create(project_id, base, config, actor_id, installment_id)
                if fee is None:
                    self._commit()
                    return None
            if fee.status == FeeStatus.PENDING.value:
                self._collect(fee, actor_id)
            self._commit()
            return fee
        except Exception:
            self._rollback()
            raise

    def cancel_fee(
        self,
        fee_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> AdministratorFeeModel:
        try:
            fee = self.get_fee(fee_id)
            if fee.status != FeeStatus.PENDING.value:
                raise AdministratorFeeStateError(str(fee.id), fee.status)
            fee.status = FeeStatus.CANCELLED.value
            fee.updated_by_id = actor_id
            if reason:
                fee.notes = f"{fee.notes}\nCancelado: {reason}" if fee.notes else f"Cancelado: {reason}"
            logger.info("admin_fee_cancelled", extra={"fee_id": str(fee.id), "reason": reason})
            self._commit()
            return fee
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_fee(self, fee_id: UUID) -> AdministratorFeeModel:
        fee = self._session.get(AdministratorFeeModel, fee_id)
        if fee is None:
            raise AdministratorFeeNotFoundError(str(fee_id))
        return fee

    def get_fees(self, project_id: UUID) -> list[AdministratorFeeModel]:
        stmt = (
            select(AdministratorFeeModel)
            .where(AdministratorFeeModel.project_id == project_id)
            .order_by(AdministratorFeeModel.created_at, AdministratorFeeModel.id)
        )
        return list(self._session.scalars(stmt))

    def get_pending_fees(self, project_id: UUID | None = None) -> list[AdministratorFeeModel]:
        stmt = select(AdministratorFeeModel).where(
            AdministratorFeeModel.status == FeeStatus.PENDING.value
        )
        if project_id is not None:
            stmt = stmt.where(AdministratorFeeModel.project_id == project_id)
        stmt = stmt.order_by(AdministratorFeeModel.created_at, AdministratorFeeModel.id)
        return list(self._session.scalars(stmt))

    def get_total_pending(self, currency: str) -> Money:
        total = Money.zero(currency)
        for fee in self.get_pending_fees():
            if fee.currency == currency:
                total = total + fee.fee
        return total

    def get_fee_stats(self, currency: str) -> FeeStats:
        fees = self._session.scalars(
            select(AdministratorFeeModel).where(AdministratorFeeModel.currency == currency)
        ).all()
        counts = {status: 0 for status in FeeStatus}
        pending = Money.zero(currency)
        collected = Money.zero(currency)
        for fee in fees:
            status = FeeStatus(fee.status)
            counts[status] += 1
            if status == FeeStatus.PENDING:
                pending = pending + fee.fee
            elif status == FeeStatus.COLLECTED:
                collected = collected + Money.of(fee.collected_amount, currency)
        return FeeStats(
            currency=currency,
            pending_count=counts[FeeStatus.PENDING],
            collected_count=counts[FeeStatus.COLLECTED],
            cancelled_count=counts[FeeStatus.CANCELLED],
            total_pending=pending,
            total_collected=collected,
        )

    # =========================================================================
    # Internals (flush-only)
    # =========================================================================

    def _find(self, project_id: UUID, installment_id: UUID | None) -> AdministratorFeeModel | None:
        return self._session.execute(
            select(AdministratorFeeModel).where(
                AdministratorFeeModel.project_id == project_id,
                AdministratorFeeModel.installment_id == installment_id,
            )
        ).scalar_one_or_none()

    def _create(
        self,
        project_id: UUID,
        base: Money,
        config: FeeConfig,
        actor_id: UUID,
        installment_id: UUID | None,
    ) -> AdministratorFeeModel | None:
        fee_amount = calculate_fee(base, config)
        if fee_amount is None:
            logger.debug("admin_fee_not_configured", extra={"project_id": str(project_id)})
            return None

        if installment_id is not None and self._find(project_id, installment_id) is not None:
            logger.info(
                "admin_fee_already_exists",
                extra={"project_id": str(project_id), "installment_id": str(installment_id)},
            )
            return None

        fee = AdministratorFeeModel(
            id=self._ids.new_id(),
            project_id=project_id,
            installment_id=installment_id,
            fee_type=config.fee_type.value,
            fee_percentage=config.percentage,
            payment_amount=base.amount,
            fee_amount=fee_amount.amount,
            currency=base.currency.code,
            status=FeeStatus.PENDING.value,
            collected_amount=Decimal("0"),
            notes=f"Honorario sobre cuota {installment_id}" if installment_id else None,
            created_by_id=actor_id,
        )
        self._session.add(fee)
        self._session.flush()
        logger.info(
            "admin_fee_created",
            extra={
                "fee_id": str(fee.id),
                "project_id": str(project_id),
                "fee_amount": str(fee_amount.amount),
                "currency": base.currency.code,
            },
        )
        return fee

    def _collect(self, fee: AdministratorFeeModel, actor_id: UUID) -> AdministratorFeeModel:
        if fee.status != FeeStatus.PENDING.value:
            raise AdministratorFeeStateError(str(fee.id), fee.status)

        if fee.fee.is_positive:
            movement = self._ledger.transfer_master_to_admin(
                fee.fee,
                actor_id=actor_id,
                description="Cobro de honorario administrativo",
                project_id=fee.project_id,
                metadata={"administrator_fee_id": str(fee.id)},
            )
            fee.movement_id = movement.id

        fee.status = FeeStatus.COLLECTED.value
        fee.collected_amount = fee.fee_amount
        fee.collected_at = self._clock.now()
        fee.updated_by_id = actor_id
        self._session.flush()
        logger.info(
            "admin_fee_collected",
            extra={
                "fee_id": str(fee.id),
                "project_id": str(fee.project_id),
                "amount": str(fee.fee_amount),
                "currency": fee.currency,
            },
        )
        return fee
