"""
Contractor Payment Accounting Service (``studio_modules.contractors.service``).

Responsibility
--------------
Assigns contractors to projects, schedules their payments and pays them
out of the project cash box.  Paying posts a project expense through
``CashLedgerStore`` and stamps the payment with the movement id.

Architecture position
---------------------
**Modules layer**.  Owns the transaction for each public mutating method;
the ledger store only flushes.

Invariants enforced
-------------------
* A payment becomes ``paid`` only if the project box holds enough balance
  in the payment's currency, checked before any row is written.
* A paid payment is never edited, cancelled, deleted or paid again.
* A payment is in its contractor's currency.
* ``register_and_process_payment`` leaves no pending payment behind when
  the payout fails.

Failure modes
-------------
* ``InsufficientFundsError`` -- the project box cannot cover the payment;
  payment stays pending, balances unchanged.
* ``PaymentAlreadyPaidError`` -- double payment attempt.
* ``ContractorPaymentNotFoundError`` / ``ProjectContractorNotFoundError``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.ids import IdGenerator, UUID4Generator
from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    ContractorPaymentNotFoundError,
    CurrencyMismatchError,
    InvalidStatusTransitionError,
    PaymentAlreadyPaidError,
    ProjectContractorNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)
from studio_kernel.logging_config import LogContext, get_logger
from studio_modules.contractors.budget import ContractorBudgetService
from studio_modules.contractors.models import (
    ContractorFinancialSummary,
    ContractorPayment,
    ContractorPaymentStatus,
    ContractorPaymentType,
    NewContractorPayment,
    PaymentSummary,
    ProjectContractor,
    ProjectContractorStatus,
)
from studio_modules.contractors.orm import (
    ContractorBudgetItemModel,
    ContractorPaymentModel,
    ProjectContractorModel,
)
from studio_modules.contractors.workflows import OPEN_PAYMENT_STATES, can_transition
from studio_modules.ledger.service import CashLedgerStore
from studio_modules.project.orm import ProjectModel

logger = get_logger("modules.contractors.service")

_EDITABLE_FIELDS = frozenset({
    "amount", "due_date", "payment_type", "budget_item_id",
    "payment_method", "reference", "notes",
})


class ContractorPaymentAccountingService:
    """
    Contractor assignments and payments.

    Usage:
        service = ContractorPaymentAccountingService(session, clock=clock, ids=ids)
        payment = service.create_payment(NewContractorPayment(...), actor_id)
        service.mark_as_paid(payment.id, actor_id, paid_by="Tesoreria")
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        ledger: CashLedgerStore | None = None,
        budget: ContractorBudgetService | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ids = ids or UUID4Generator()
        self._ledger = ledger or CashLedgerStore(session, self._clock, self._ids)
        self._budget = budget or ContractorBudgetService(
            session, self._clock, self._ids, auto_commit=False,
        )
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
    # Assignments
    # =========================================================================

    def assign_contractor(
        self,
        project_id: UUID,
        contractor_id: UUID,
        contractor_name: str,
        currency: str,
        actor_id: UUID,
    ) -> ProjectContractor:
        try:
            project = self._session.get(ProjectModel, project_id)
            if project is None or project.deleted_at is not None:
                raise ProjectNotFoundError(str(project_id))
            Money.zero(currency)  # rejects unsupported currencies
            existing = self._session.execute(
                select(ProjectContractorModel).where(
                    ProjectContractorModel.project_id == project_id,
                    ProjectContractorModel.contractor_id == contractor_id,
                )
            ).scalar_one_or_none()
            if existing is not None:
                raise ValidationError({"contractor_id": "already assigned to this project"})

            assignment = ProjectContractorModel(
                id=self._ids.new_id(),
                project_id=project_id,
                contractor_id=contractor_id,
                contractor_name=contractor_name,
                currency=currency.upper(),
                status=ProjectContractorStatus.ACTIVE.value,
                created_by_id=actor_id,
            )
            self._session.add(assignment)
            self._session.flush()
            self._commit()
            logger.info(
                "contractor_assigned",
                extra={"project_id": str(project_id), "project_contractor_id": str(assignment.id),
                       "currency": assignment.currency},
            )
            return assignment.to_dto()
        except Exception:
            self._rollback()
            raise

    def get_project_contractor(self, project_contractor_id: UUID) -> ProjectContractor:
        return self._get_owner(project_contractor_id).to_dto()

    def get_project_contractors(self, project_id: UUID) -> list[ProjectContractor]:
        stmt = (
            select(ProjectContractorModel)
            .where(ProjectContractorModel.project_id == project_id)
            .order_by(ProjectContractorModel.contractor_name)
        )
        return [pc.to_dto() for pc in self._session.scalars(stmt)]

    # =========================================================================
    # Payment scheduling
    # =========================================================================

    def create_payment(self, data: NewContractorPayment, actor_id: UUID) -> ContractorPayment:
        try:
            payment = self._insert_payment(data, actor_id)
            self._commit()
            return payment.to_dto()
        except Exception:
            self._rollback()
            raise

    def bulk_create(
        self,
        payments: Iterable[NewContractorPayment],
        actor_id: UUID,
    ) -> list[ContractorPayment]:
        """All-or-nothing insert of several scheduled payments."""
        try:
            created = [self._insert_payment(data, actor_id) for data in payments]
            self._commit()
            logger.info("contractor_payments_bulk_created", extra={"count": len(created)})
            return [p.to_dto() for p in created]
        except Exception:
            self._rollback()
            raise

    def update_payment(
        self,
        payment_id: UUID,
        changes: dict[str, Any],
        actor_id: UUID,
    ) -> ContractorPayment:
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError({name: "not editable" for name in sorted(unknown)})
        try:
            payment = self._get_payment_model(payment_id, lock=True)
            self._require_open(payment, "updated")
            for name, value in changes.items():
                if name == "amount":
                    money = value if isinstance(value, Money) else Money.of(value, payment.currency)
                    if money.currency.code != payment.currency:
                        raise CurrencyMismatchError(payment.currency, money.currency.code)
                    if not money.is_positive:
                        raise ValidationError({"amount": "must be greater than zero"})
                    payment.amount = money.amount
                elif name == "payment_type":
                    payment.payment_type = ContractorPaymentType(value).value
                elif name == "budget_item_id":
                    if value is not None:
                        self._require_budget_item(payment.project_contractor_id, value)
                    payment.budget_item_id = value
                else:
                    setattr(payment, name, value)
            payment.updated_by_id = actor_id
            self._commit()
            return payment.to_dto()
        except Exception:
            self._rollback()
            raise

    def cancel_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ContractorPayment:
        try:
            payment = self._get_payment_model(payment_id, lock=True)
            self._transition(payment, ContractorPaymentStatus.CANCELLED)
            payment.cancellation_reason = reason
            payment.updated_by_id = actor_id
            self._commit()
            logger.info(
                "contractor_payment_cancelled",
                extra={"payment_id": str(payment_id), "reason": reason},
            )
            return payment.to_dto()
        except Exception:
            self._rollback()
            raise

    def delete_payment(self, payment_id: UUID, actor_id: UUID) -> None:
        try:
            payment = self._get_payment_model(payment_id, lock=True)
            if payment.status == ContractorPaymentStatus.PAID.value:
                raise PaymentAlreadyPaidError(str(payment_id))
            self._session.delete(payment)
            self._commit()
            logger.info(
                "contractor_payment_deleted",
                extra={"payment_id": str(payment_id), "actor_id": str(actor_id)},
            )
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Payout
    # =========================================================================

    def mark_as_paid(
        self,
        payment_id: UUID,
        actor_id: UUID,
        paid_by: str | None = None,
        receipt_url: str | None = None,
    ) -> ContractorPayment:
        """
        Pay a scheduled payment out of the project cash box.

        Raises:
            PaymentAlreadyPaidError: The payment is already paid.
            InsufficientFundsError: The project box balance in the payment's
                currency is below the amount.  Nothing is written.
        """
        try:
            payment = self._get_payment_model(payment_id, lock=True)
            self._pay(payment, actor_id, paid_by, receipt_url)
            self._commit()
            return payment.to_dto()
        except Exception:
            self._rollback()
            raise

    def register_and_process_payment(
        self,
        data: NewContractorPayment,
        actor_id: UUID,
        paid_by: str | None = None,
        receipt_url: str | None = None,
    ) -> ContractorPayment:
        """
        Create a payment and pay it immediately.

        If the payout fails the new payment is removed again and the error
        is re-raised.
        """
        try:
            payment = self._insert_payment(data, actor_id)
            savepoint = self._session.begin_nested()
            try:
                self._pay(payment, actor_id, paid_by, receipt_url)
                savepoint.commit()
            except Exception as exc:
                savepoint.rollback()
                self._session.delete(payment)
                self._session.flush()
                logger.warning(
                    "contractor_payment_registration_reverted",
                    extra={"payment_id": str(payment.id), "error": str(exc)},
                )
                raise
            self._commit()
            return payment.to_dto()
        except Exception:
            self._rollback()
            raise

    def mark_overdue_payments(self, as_of: date | None = None) -> int:
        """Flag pending payments whose due date has passed."""
        as_of = as_of or self._clock.today()
        try:
            overdue = self._session.scalars(
                select(ContractorPaymentModel)
                .join(
                    ProjectContractorModel,
                    ProjectContractorModel.id == ContractorPaymentModel.project_contractor_id,
                )
                .join(ProjectModel, ProjectModel.id == ProjectContractorModel.project_id)
                .where(
                    ContractorPaymentModel.status == ContractorPaymentStatus.PENDING.value,
                    ContractorPaymentModel.due_date < as_of,
                    ProjectModel.deleted_at.is_(None),
                )
            ).all()
            for payment in overdue:
                payment.status = ContractorPaymentStatus.OVERDUE.value
            self._commit()
            return len(overdue)
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_payment(self, payment_id: UUID) -> ContractorPayment:
        return self._get_payment_model(payment_id).to_dto()

    def get_payments(self, project_contractor_id: UUID) -> list[ContractorPayment]:
        return [p.to_dto() for p in self._payment_models(project_contractor_id)]

    def get_by_status(
        self,
        project_contractor_id: UUID,
        status: ContractorPaymentStatus | str,
    ) -> list[ContractorPayment]:
        status = ContractorPaymentStatus(status)
        return [p for p in self.get_payments(project_contractor_id) if p.status == status]

    def get_by_type(
        self,
        project_contractor_id: UUID,
        payment_type: ContractorPaymentType | str,
    ) -> list[ContractorPayment]:
        payment_type = ContractorPaymentType(payment_type)
        return [p for p in self.get_payments(project_contractor_id) if p.payment_type == payment_type]

    def get_overdue_payments(
        self,
        as_of: date | None = None,
        project_contractor_id: UUID | None = None,
    ) -> list[ContractorPayment]:
        """Unpaid payments due strictly before ``as_of`` (default today)."""
        as_of = as_of or self._clock.today()
        stmt = select(ContractorPaymentModel).where(
            ContractorPaymentModel.status.in_(OPEN_PAYMENT_STATES),
            ContractorPaymentModel.due_date < as_of,
        )
        if project_contractor_id is not None:
            stmt = stmt.where(ContractorPaymentModel.project_contractor_id == project_contractor_id)
        stmt = stmt.order_by(ContractorPaymentModel.due_date, ContractorPaymentModel.id)
        return [p.to_dto() for p in self._session.scalars(stmt)]

    def get_upcoming_payments(
        self,
        days: int = 7,
        project_contractor_id: UUID | None = None,
        as_of: date | None = None,
    ) -> list[ContractorPayment]:
        """Pending payments due within ``days`` days, today included."""
        start = as_of or self._clock.today()
        stmt = select(ContractorPaymentModel).where(
            ContractorPaymentModel.status == ContractorPaymentStatus.PENDING.value,
            ContractorPaymentModel.due_date >= start,
            ContractorPaymentModel.due_date <= start + timedelta(days=days),
        )
        if project_contractor_id is not None:
            stmt = stmt.where(ContractorPaymentModel.project_contractor_id == project_contractor_id)
        stmt = stmt.order_by(ContractorPaymentModel.due_date, ContractorPaymentModel.id)
        return [p.to_dto() for p in self._session.scalars(stmt)]

    def get_summary(self, project_contractor_id: UUID) -> PaymentSummary:
        owner = self._get_owner(project_contractor_id)
        zero = Money.zero(owner.currency)
        today = self._clock.today()

        by_type: dict[str, Money] = {}
        by_status: dict[str, Money] = {}
        count_by_status: dict[str, int] = {}
        next_payment: ContractorPaymentModel | None = None

        payments = self._payment_models(project_contractor_id)
        for payment in payments:
            by_type[payment.payment_type] = by_type.get(payment.payment_type, zero) + payment.money
            by_status[payment.status] = by_status.get(payment.status, zero) + payment.money
            count_by_status[payment.status] = count_by_status.get(payment.status, 0) + 1
            if (
                payment.status == ContractorPaymentStatus.PENDING.value
                and payment.due_date is not None
                and payment.due_date >= today
                and (next_payment is None or payment.due_date < next_payment.due_date)
            ):
                next_payment = payment

        return PaymentSummary(
            project_contractor_id=project_contractor_id,
            currency=owner.currency,
            total_payments=len(payments),
            total_paid=by_status.get(ContractorPaymentStatus.PAID.value, zero),
            total_pending=by_status.get(ContractorPaymentStatus.PENDING.value, zero),
            total_overdue=by_status.get(ContractorPaymentStatus.OVERDUE.value, zero),
            by_type=by_type,
            by_status=by_status,
            count_by_status=count_by_status,
            next_payment_date=next_payment.due_date if next_payment else None,
            next_payment_amount=next_payment.money if next_payment else None,
        )

    def get_financial_summary(self, project_contractor_id: UUID) -> ContractorFinancialSummary:
        """
        Budget against payments.

        ``payment_progress`` is ``paid / budget * 100`` with two decimals,
        0 when there is no budget.
        """
        summary = self.get_summary(project_contractor_id)
        budget_total = self._budget.get_summary(project_contractor_id).grand_total
        pending = summary.total_pending + summary.total_overdue

        if budget_total.is_zero:
            progress = Decimal("0")
        else:
            progress = (summary.total_paid.amount / budget_total.amount * 100).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )

        return ContractorFinancialSummary(
            project_contractor_id=project_contractor_id,
            currency=summary.currency,
            budget_total=budget_total,
            total_paid=summary.total_paid,
            total_pending=pending,
            balance_due=budget_total - summary.total_paid,
            payment_progress=progress,
            overdue_count=len(self.get_overdue_payments(project_contractor_id=project_contractor_id)),
            next_payment_date=summary.next_payment_date,
            next_payment_amount=summary.next_payment_amount,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _insert_payment(self, data: NewContractorPayment, actor_id: UUID) -> ContractorPaymentModel:
        owner = self._get_owner(data.project_contractor_id)
        if data.amount.currency.code != owner.currency:
            raise CurrencyMismatchError(owner.currency, data.amount.currency.code)
        if not data.amount.is_positive:
            raise ValidationError({"amount": "must be greater than zero"})
        if data.budget_item_id is not None:
            self._require_budget_item(owner.id, data.budget_item_id)

        payment = ContractorPaymentModel(
            id=self._ids.new_id(),
            project_contractor_id=owner.id,
            budget_item_id=data.budget_item_id,
            payment_type=ContractorPaymentType(data.payment_type).value,
            amount=data.amount.amount,
            currency=data.amount.currency.code,
            due_date=data.due_date,
            status=ContractorPaymentStatus.PENDING.value,
            payment_method=data.payment_method,
            reference=data.reference,
            notes=data.notes,
            created_by_id=actor_id,
        )
        self._session.add(payment)
        self._session.flush()
        logger.info(
            "contractor_payment_created",
            extra={"payment_id": str(payment.id), "amount": str(payment.amount),
                   "currency": payment.currency, "payment_type": payment.payment_type},
        )
        return payment

    def _pay(
        self,
        payment: ContractorPaymentModel,
        actor_id: UUID,
        paid_by: str | None,
        receipt_url: str | None,
    ) -> None:
        if payment.status == ContractorPaymentStatus.PAID.value:
            raise PaymentAlreadyPaidError(str(payment.id))
        if not can_transition(payment.status, ContractorPaymentStatus.PAID.value):
            raise InvalidStatusTransitionError(
                "contractor_payment", payment.status, ContractorPaymentStatus.PAID.value
            )
        owner = self._get_owner(payment.project_contractor_id)
        project = self._session.get(ProjectModel, owner.project_id)
        if project is None or project.deleted_at is not None:
            raise InvalidStatusTransitionError("project", "deleted", "payment")
        payment_type = ContractorPaymentType(payment.payment_type)

        with LogContext.bind(payment_id=str(payment.id), project_id=str(owner.project_id)):
            movement = self._ledger.post_project_expense(
                owner.project_id,
                payment.money,
                actor_id=actor_id,
                description=f"{payment_type.label} - {owner.contractor_name}",
                metadata={
                    "contractor_payment_id": str(payment.id),
                    "project_contractor_id": str(owner.id),
                    "contractor_id": str(owner.contractor_id),
                    "payment_type": payment_type.value,
                    "paid_by": paid_by,
                },
            )
            payment.status = ContractorPaymentStatus.PAID.value
            payment.paid_at = self._clock.now()
            payment.paid_by = paid_by
            payment.receipt_file_url = receipt_url
            payment.movement_id = movement.id
            payment.updated_by_id = actor_id
            self._session.flush()
            logger.info(
                "contractor_payment_paid",
                extra={"amount": str(payment.amount), "currency": payment.currency,
                       "movement_id": str(movement.id)},
            )

    def _transition(self, payment: ContractorPaymentModel, status: ContractorPaymentStatus) -> None:
        if payment.status == ContractorPaymentStatus.PAID.value:
            raise PaymentAlreadyPaidError(str(payment.id))
        if not can_transition(payment.status, status.value):
            raise InvalidStatusTransitionError("contractor_payment", payment.status, status.value)
        payment.status = status.value

    @staticmethod
    def _require_open(payment: ContractorPaymentModel, action: str) -> None:
        if payment.status == ContractorPaymentStatus.PAID.value:
            raise PaymentAlreadyPaidError(str(payment.id))
        if payment.status not in OPEN_PAYMENT_STATES:
            raise InvalidStatusTransitionError("contractor_payment", payment.status, action)

    def _require_budget_item(self, project_contractor_id: UUID, item_id: UUID) -> None:
        item = self._session.get(ContractorBudgetItemModel, item_id)
        if item is None or item.project_contractor_id != project_contractor_id:
            raise ValidationError({"budget_item_id": f"not a budget item of this contractor: {item_id}"})

    def _get_owner(self, project_contractor_id: UUID) -> ProjectContractorModel:
        owner = self._session.get(ProjectContractorModel, project_contractor_id)
        if owner is None:
            raise ProjectContractorNotFoundError(str(project_contractor_id))
        return owner

    def _get_payment_model(self, payment_id: UUID, lock: bool = False) -> ContractorPaymentModel:
        stmt = select(ContractorPaymentModel).where(ContractorPaymentModel.id == payment_id)
        if lock:
            stmt = stmt.with_for_update()
        payment = self._session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise ContractorPaymentNotFoundError(str(payment_id))
        return payment

    def _payment_models(self, project_contractor_id: UUID) -> list[ContractorPaymentModel]:
        self._get_owner(project_contractor_id)
        stmt = (
            select(ContractorPaymentModel)
            .where(ContractorPaymentModel.project_contractor_id == project_contractor_id)
            .order_by(ContractorPaymentModel.due_date, ContractorPaymentModel.id)
        )
        return list(self._session.scalars(stmt))
