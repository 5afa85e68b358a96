"""
Project Accounting Module Service (``studio_modules.project.service``).

Responsibility
--------------
Orchestrates project accounting -- project creation, down-payment
confirmation, installment payments, progress, status changes, contracts
-- by delegating pure computation to ``studio_modules.installments`` and
``studio_modules.admin_fee``, and ledger persistence to
``CashLedgerStore``.

Architecture position
---------------------
**Modules layer**.  ``ProjectAccountingService`` is the sole public entry
point for project operations.  It composes the flush-only
``CashLedgerStore``, ``SequenceService`` and ``SideEffectService`` and an
``AdministratorFeeService`` built with ``auto_commit=False``.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary (``commit``
  on success, ``rollback`` on exception).
* Project ledger and master ledger postings for one operation land in the
  same transaction.
* Project codes come from a locked per-year counter, never ``max + 1``.
* The down payment is posted at most once: ``down_payment_status`` moves
  ``pending -> confirmed`` exactly once, whichever path confirms it.
* ``down_payment_amount + sum(installment.amount) == total_amount``.

Failure modes
-------------
* ``ValidationError`` -- invalid creation request; nothing is written.
* ``ProjectCreationError`` -- the cash box could not be opened; the
  project row is rolled back with it.
* Best-effort creation steps (installments, down payment, fee) run in
  savepoints; their failures are logged and listed in
  ``ProjectCreationResult.warnings``.
* Fee collection and contract upload run as side-effect tasks; failures
  are recorded on the task and can be retried.

Usage::

    service = ProjectAccountingService(session, clock=clock, ids=ids)
    result = service.create_project(request, actor_id=actor_id)
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from studio_config import get_active_settings
from studio_config.schema import StudioSettings
from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.ids import IdGenerator, UUID4Generator
from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    CurrencyMismatchError,
    DownPaymentAlreadyConfirmedError,
    InstallmentNotFoundError,
    InvalidStatusTransitionError,
    ProjectCreationError,
    ProjectNotFoundError,
    ValidationError,
)
from studio_kernel.logging_config import LogContext, get_logger
from studio_kernel.services.sequence_service import SequenceService
from studio_kernel.services.side_effect_service import (
    SideEffectService,
    SideEffectStatus,
    SideEffectTask,
)
from studio_modules.admin_fee.calculator import validate_fee_config
from studio_modules.admin_fee.models import FeeConfig, FeeType
from studio_modules.admin_fee.service import AdministratorFeeService
from studio_modules.collaborators.storage import (
    ContractStorage,
    InMemoryContractStorage,
    contract_path,
)
from studio_modules.installments.models import PlannedInstallment
from studio_modules.installments.planner import plan_down_payment, plan_installments
from studio_modules.ledger.models import MovementType
from studio_modules.ledger.service import CashLedgerStore
from studio_modules.project.config import ProjectConfig
from studio_modules.project.models import (
    CreateProjectRequest,
    DownPaymentConfirmation,
    DownPaymentStatus,
    Installment,
    InstallmentStatus,
    PaymentMethod,
    Project,
    ProjectCreationResult,
    ProjectProgress,
    ProjectStatus,
)
from studio_modules.project.orm import InstallmentModel, PaymentModel, ProjectModel
from studio_modules.project.workflows import can_transition

logger = get_logger("modules.project.service")

T = TypeVar("T")

ADMIN_FEE_TASK = "admin_fee_collection"
CONTRACT_UPLOAD_TASK = "contract_upload"

AUTO_CONFIRM_NOTE = "Anticipo confirmado al crear proyecto"
AUTO_CONFIRM_REFERENCE = "Anticipo inicial"


class ProjectAccountingService:
    """
    Orchestrates project accounting through the ledger and fee modules.

    Contract
    --------
    Receives a SQLAlchemy ``Session``, a ``Clock`` and an ``IdGenerator``
    via constructor injection.  Collaborators default to instances built
    on the same session, so one service call is one transaction.

    Non-goals
    ---------
    * Does NOT render contracts or PDFs; it only stores the uploaded file.
    * Does NOT convert currencies: every amount must be in the project's
      currency.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        settings: StudioSettings | None = None,
        ledger: CashLedgerStore | None = None,
        fee_service: AdministratorFeeService | None = None,
        side_effects: SideEffectService | None = None,
        storage: ContractStorage | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ids = ids or UUID4Generator()
        self._settings = settings or get_active_settings()
        self._config = ProjectConfig.from_settings(self._settings)
        self._ledger = ledger or CashLedgerStore(session, self._clock, self._ids)
        self._fees = fee_service or AdministratorFeeService(
            session, self._clock, self._ids, ledger=self._ledger, auto_commit=False,
        )
        self._side_effects = side_effects or SideEffectService(session, self._clock, self._ids)
        self._sequences = SequenceService(session)
        self._storage = storage or InMemoryContractStorage(clock=self._clock)
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
    # Creation
    # =========================================================================

    def create_project(
        self,
        request: CreateProjectRequest,
        actor_id: UUID,
    ) -> ProjectCreationResult:
        """
        Create a project, its cash box and its payment schedule.

        Steps after the cash box are best-effort: a failure there is
        logged, reported in ``warnings`` and does not abort creation.

        Raises:
            ValidationError: The request is invalid.
            ProjectCreationError: The cash box could not be opened.
        """
        fee_config = self._resolve_fee_config(request)
        self._validate_request(request, fee_config)

        warnings: list[str] = []
        task_ids: list[UUID] = []
        try:
            code = self._next_project_code()
            project = self._insert_project(request, code, fee_config, actor_id)

            with LogContext.bind(project_id=str(project.id), actor_id=str(actor_id)):
                logger.info(
                    "project_creation_started",
                    extra={"code": code, "total_amount": str(request.total_amount.amount),
                           "currency": request.currency},
                )
                try:
                    self._ledger.open_project_cash_box(project.id, actor_id)
                except Exception as exc:
                    logger.error(
                        "project_cash_box_failed",
                        extra={"code": code, "error": str(exc)},
                    )
                    raise ProjectCreationError("cash_box", str(exc)) from exc

                self._best_effort(
                    "installments", warnings,
                    lambda: self._create_installments(project, request, actor_id),
                )

                down_installment = None
                if request.down_payment_amount.is_positive:
                    down_installment = self._best_effort(
                        "down_payment_installment", warnings,
                        lambda: self._create_down_payment_installment(project, request, actor_id),
                    )

                down_confirmed = False
                if down_installment is not None and request.auto_confirm_down_payment:
                    confirmation = DownPaymentConfirmation(
                        amount=request.down_payment_amount,
                        payment_method=PaymentMethod.TRANSFER,
                        reference_number=AUTO_CONFIRM_REFERENCE,
                        notes=AUTO_CONFIRM_NOTE,
                    )
                    down_confirmed = bool(self._best_effort(
                        "down_payment_confirmation", warnings,
                        lambda: self._post_down_payment(
                            project, down_installment, confirmation, actor_id, auto=True,
                        ),
                    ))
                    if down_confirmed:
                        task = self._best_effort(
                            "admin_fee", warnings,
                            lambda: self._queue_admin_fee(
                                project, down_installment, request.down_payment_amount, actor_id,
                            ),
                        )
                        if task is not None:
                            task_ids.append(task.id)
                            if task.status == SideEffectStatus.FAILED.value:
                                warnings.append(f"admin_fee: {task.last_error}")

                self._commit()
                logger.info(
                    "project_created",
                    extra={
                        "code": code,
                        "down_payment_confirmed": down_confirmed,
                        "warnings": len(warnings),
                    },
                )
                return ProjectCreationResult(
                    project=project.to_dto(),
                    installments=tuple(i.to_dto() for i in self._installment_models(project.id)),
                    down_payment_confirmed=down_confirmed,
                    warnings=tuple(warnings),
                    side_effect_task_ids=tuple(task_ids),
                )
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Down payment
    # =========================================================================

    def confirm_down_payment(
        self,
        project_id: UUID,
        confirmation: DownPaymentConfirmation,
        actor_id: UUID,
    ) -> Installment:
        """
        Manual confirmation of a down payment that was not auto-confirmed.

        Posts ``down_payment`` into the project box and ``master_income``
        into the master ledger, marks installment 0 paid and queues the
        administrator fee.

        Raises:
            DownPaymentAlreadyConfirmedError: Already confirmed, by either path.
            ValidationError: Amount differs from the planned installment 0.
        """
        try:
            project = self._get_project_model(project_id, lock=True)
            if project.down_payment_status == DownPaymentStatus.CONFIRMED.value:
                raise DownPaymentAlreadyConfirmedError(str(project_id))
            if project.down_payment_status == DownPaymentStatus.NONE.value:
                raise ValidationError({"down_payment": "project has no down payment to confirm"})
            self._require_project_currency(project, confirmation.amount)
            if not confirmation.amount.is_positive:
                raise ValidationError({"amount": "must be greater than zero"})

            installment = self._find_installment(project.id, 0)
            if installment is None:
                installment = self._insert_installment(
                    project,
                    plan_down_payment(confirmation.amount, self._down_payment_due_date(project)),
                    actor_id,
                )
            elif confirmation.amount.amount != installment.amount:
                raise ValidationError(
                    {"amount": f"must equal the planned down payment {installment.amount}"}
                )

            self._post_down_payment(project, installment, confirmation, actor_id, auto=False)
            task = self._queue_admin_fee(project, installment, confirmation.amount, actor_id)
            self._commit()
            logger.info(
                "down_payment_confirmed",
                extra={
                    "project_id": str(project.id),
                    "amount": str(confirmation.amount.amount),
                    "fee_task_status": task.status if task else None,
                },
            )
            return installment.to_dto()
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Installment payments
    # =========================================================================

    def record_installment_payment(
        self,
        project_id: UUID,
        installment_number: int,
        amount: Money,
        actor_id: UUID,
        payment_method: PaymentMethod = PaymentMethod.TRANSFER,
        reference_number: str | None = None,
        payment_date: date | None = None,
        notes: str | None = None,
    ) -> Installment:
        """
        Record money received against a regular installment.

        Posts ``project_income`` + ``master_duplication``.  Partial payments
        accumulate in ``paid_amount``; the installment becomes ``paid`` and
        the administrator fee is queued once it is fully paid.
        """
        try:
            project = self._get_project_model(project_id, lock=True)
            self._require_open(project)
            self._require_project_currency(project, amount)
            if installment_number == 0:
                raise ValidationError(
                    {"installment_number": "the down payment is recorded with confirm_down_payment"}
                )
            if not amount.is_positive:
                raise ValidationError({"amount": "must be greater than zero"})

            installment = self._find_installment(project.id, installment_number)
            if installment is None:
                raise InstallmentNotFoundError(str(project_id), installment_number)
            if installment.status in (InstallmentStatus.PAID.value, InstallmentStatus.CANCELLED.value):
                raise InvalidStatusTransitionError(
                    "installment", installment.status, InstallmentStatus.PAID.value
                )
            if amount > installment.outstanding:
                raise ValidationError(
                    {"amount": f"exceeds outstanding {installment.outstanding} on installment "
                               f"{installment_number}"}
                )

            income, _ = self._ledger.post_project_income(
                project.id,
                amount,
                actor_id=actor_id,
                description=f"Cuota {installment_number} - {project.project_name}",
                metadata={
                    "installment_id": str(installment.id),
                    "installment_number": installment_number,
                    "payment_method": PaymentMethod(payment_method).value,
                    "reference_number": reference_number,
                },
                movement_type=MovementType.PROJECT_INCOME,
                mirror_type=MovementType.MASTER_DUPLICATION,
            )
            installment.paid_amount = (installment.paid_amount or Decimal("0")) + amount.amount
            installment.updated_by_id = actor_id
            self._session.add(PaymentModel(
                id=self._ids.new_id(),
                project_id=project.id,
                installment_id=installment.id,
                amount=amount.amount,
                currency=amount.currency.code,
                payment_date=payment_date or self._clock.today(),
                payment_method=PaymentMethod(payment_method).value,
                reference_number=reference_number,
                notes=notes,
                movement_id=income.id,
                created_by_id=actor_id,
            ))

            fully_paid = installment.outstanding.is_zero
            if fully_paid:
                installment.status = InstallmentStatus.PAID.value
                installment.paid_at = self._clock.now()
            self._session.flush()

            if fully_paid:
                self._queue_admin_fee(project, installment, installment.to_dto().paid_amount, actor_id)

            self._commit()
            logger.info(
                "installment_payment_recorded",
                extra={
                    "project_id": str(project.id),
                    "installment_number": installment_number,
                    "amount": str(amount.amount),
                    "currency": amount.currency.code,
                    "fully_paid": fully_paid,
                },
            )
            return installment.to_dto()
        except Exception:
            self._rollback()
            raise

    def mark_overdue_installments(self, as_of: date | None = None) -> int:
        """Flag pending installments whose due date has passed.  Returns the count."""
        as_of = as_of or self._clock.today()
        try:
            overdue = self._session.scalars(
                select(InstallmentModel)
                .join(ProjectModel, ProjectModel.id == InstallmentModel.project_id)
                .where(
                    InstallmentModel.status == InstallmentStatus.PENDING.value,
                    InstallmentModel.due_date < as_of,
                    ProjectModel.deleted_at.is_(None),
                )
            ).all()
            for installment in overdue:
                installment.status = InstallmentStatus.OVERDUE.value
            self._commit()
            if overdue:
                logger.info(
                    "installments_marked_overdue",
                    extra={"count": len(overdue), "as_of": as_of.isoformat()},
                )
            return len(overdue)
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Progress and queries
    # =========================================================================

    def calculate_progress(self, project_id: UUID) -> ProjectProgress:
        """
        Recompute progress from the installment rows.

        ``paid_amount`` counts whatever the installment status, so partial
        payments on pending installments are included.
        """
        project = self._get_project_model(project_id)
        installments = self._installment_models(project.id)
        total = project.money(project.total_amount)
        paid = Money.zero(project.currency)
        for installment in installments:
            paid = paid + project.money(installment.paid_amount)

        if not installments or total.is_zero:
            percentage = 0
        else:
            percentage = int(
                (paid.amount / total.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            )

        upcoming = [
            i for i in installments
            if i.status in (InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value)
        ]
        upcoming.sort(key=lambda i: (i.due_date, i.installment_number))
        next_installment = upcoming[0] if upcoming else None

        return ProjectProgress(
            project_id=project.id,
            total_amount=total,
            total_paid=paid,
            remaining=total - paid,
            percentage_complete=percentage,
            installments_paid=sum(
                1 for i in installments if i.status == InstallmentStatus.PAID.value
            ),
            installments_total=len(installments),
            next_due_date=next_installment.due_date if next_installment else None,
            next_due_amount=next_installment.outstanding if next_installment else None,
        )

    def get_project(self, project_id: UUID) -> Project:
        """Fetch by id, soft-deleted projects included."""
        return self._get_project_model(project_id).to_dto()

    def get_project_by_code(self, code: str) -> Project:
        project = self._session.execute(
            select(ProjectModel).where(ProjectModel.code == code)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(code)
        return project.to_dto()

    def get_projects(self, status: ProjectStatus | str | None = None) -> list[Project]:
        """Live projects, newest code first."""
        stmt = select(ProjectModel).where(ProjectModel.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(ProjectModel.status == ProjectStatus(status).value)
        stmt = stmt.order_by(ProjectModel.code.desc())
        return [p.to_dto() for p in self._session.scalars(stmt)]

    def get_installments(self, project_id: UUID) -> list[Installment]:
        self._get_project_model(project_id)
        return [i.to_dto() for i in self._installment_models(project_id)]

    def get_payments(self, project_id: UUID) -> list[PaymentModel]:
        stmt = (
            select(PaymentModel)
            .where(PaymentModel.project_id == project_id)
            .order_by(PaymentModel.payment_date, PaymentModel.id)
        )
        return list(self._session.scalars(stmt))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def update_status(
        self,
        project_id: UUID,
        status: ProjectStatus | str,
        actor_id: UUID,
    ) -> Project:
        requested = ProjectStatus(status)
        try:
            project = self._get_project_model(project_id, lock=True)
            self._require_not_deleted(project)
            if not can_transition(project.status, requested.value):
                raise InvalidStatusTransitionError("project", project.status, requested.value)
            previous = project.status
            project.status = requested.value
            project.updated_by_id = actor_id
            self._commit()
            logger.info(
                "project_status_changed",
                extra={"project_id": str(project_id), "from_status": previous,
                       "to_status": requested.value},
            )
            return project.to_dto()
        except Exception:
            self._rollback()
            raise

    def delete_project(self, project_id: UUID, actor_id: UUID) -> Project:
        """Soft delete.  The row, its installments and movements stay."""
        try:
            project = self._get_project_model(project_id, lock=True)
            if project.deleted_at is None:
                project.deleted_at = self._clock.now()
                project.updated_by_id = actor_id
                logger.info("project_deleted", extra={"project_id": str(project_id)})
            self._commit()
            return project.to_dto()
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Contracts
    # =========================================================================

    def attach_contract(
        self,
        project_id: UUID,
        filename: str,
        blob: bytes,
        actor_id: UUID,
    ) -> SideEffectTask:
        """
        Upload a signed contract as a side-effect task.

        A storage failure is recorded on the returned task, never raised.
        """
        try:
            project = self._get_project_model(project_id)
            self._require_not_deleted(project)
            path = contract_path(project.id, filename)
            task = self._side_effects.run(
                task_type=CONTRACT_UPLOAD_TASK,
                payload={
                    "project_id": str(project.id),
                    "path": path,
                    "blob_b64": base64.b64encode(blob).decode("ascii"),
                },
                handler=self._upload_contract_handler(actor_id),
                actor_id=actor_id,
                project_id=project.id,
            )
            self._commit()
            return task
        except Exception:
            self._rollback()
            raise

    def get_contract_url(self, project_id: UUID) -> str | None:
        """Signed URL of the project's contract, or None if none was stored."""
        project = self._get_project_model(project_id)
        contract = (project.metadata_ or {}).get("contract")
        if not contract:
            return None
        return self._storage.get_signed_url(
            contract["path"], ttl_seconds=self._settings.contracts.signed_url_ttl_seconds
        )

    # =========================================================================
    # Side effects
    # =========================================================================

    def retry_failed_side_effects(
        self,
        actor_id: UUID,
        project_id: UUID | None = None,
    ) -> list[SideEffectTask]:
        """Re-run failed fee collections and contract uploads."""
        handlers: dict[str, Callable[[dict[str, Any]], Any]] = {
            ADMIN_FEE_TASK: self._admin_fee_handler(actor_id),
            CONTRACT_UPLOAD_TASK: self._upload_contract_handler(actor_id),
        }
        try:
            retried = []
            for task in self._side_effects.list_tasks(
                status=SideEffectStatus.FAILED, project_id=project_id,
            ):
                handler = handlers.get(task.task_type)
                if handler is None or task.attempts >= SideEffectService.MAX_ATTEMPTS:
                    continue
                retried.append(self._side_effects.retry(task.id, handler, actor_id))
            self._commit()
            logger.info(
                "side_effects_retried",
                extra={
                    "retried": len(retried),
                    "succeeded": sum(
                        1 for t in retried if t.status == SideEffectStatus.SUCCEEDED.value
                    ),
                },
            )
            return retried
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Internals
    # =========================================================================

    def _best_effort(self, step: str, warnings: list[str], fn: Callable[[], T]) -> T | None:
        """Run ``fn`` in a savepoint; on failure roll it back and record a warning."""
        savepoint = self._session.begin_nested()
        try:
            result = fn()
            savepoint.commit()
            return result
        except Exception as exc:
            savepoint.rollback()
            warnings.append(f"{step}: {exc}")
            logger.warning("project_creation_step_failed", extra={"step": step}, exc_info=True)
            return None

    def _resolve_fee_config(self, request: CreateProjectRequest) -> FeeConfig:
        fee_type = FeeType(request.admin_fee_type)
        if fee_type == FeeType.PERCENTAGE:
            percentage = request.admin_fee_percentage
            if percentage is None:
                percentage = self._config.admin_fee_percentage
            return FeeConfig(fee_type=fee_type, percentage=percentage)
        if fee_type == FeeType.NONE:
            return FeeConfig.none()
        return FeeConfig(fee_type=fee_type, fixed_amount=request.admin_fee_amount)

    def _validate_request(self, request: CreateProjectRequest, fee_config: FeeConfig) -> None:
        errors: dict[str, str] = {}
        if not request.project_name or not request.project_name.strip():
            errors["project_name"] = "required"
        if request.down_payment_amount.currency != request.total_amount.currency:
            errors["down_payment_amount"] = "must be in the project currency"
        elif request.down_payment_amount.is_negative:
            errors["down_payment_amount"] = "must not be negative"
        elif request.down_payment_amount > request.total_amount:
            errors["down_payment_amount"] = "must not exceed the total amount"
        if not request.total_amount.is_positive:
            errors["total_amount"] = "must be greater than zero"
        if request.installments_count < 0:
            errors["installments_count"] = "must not be negative"
        if request.down_payment_percentage is not None and not (
            Decimal("0") <= request.down_payment_percentage <= Decimal("100")
        ):
            errors["down_payment_percentage"] = "must be between 0 and 100"
        if request.late_fee_percentage < 0:
            errors["late_fee_percentage"] = "must not be negative"
        if errors:
            raise ValidationError(errors)
        validate_fee_config(fee_config)

    def _next_project_code(self) -> str:
        year = self._clock.today().year
        seq = self._sequences.next_value(SequenceService.project_code_sequence(year))
        return f"{self._config.code_prefix}-{year}-{seq:03d}"

    def _insert_project(
        self,
        request: CreateProjectRequest,
        code: str,
        fee_config: FeeConfig,
        actor_id: UUID,
    ) -> ProjectModel:
        financed = request.total_amount - request.down_payment_amount
        count = request.installments_count if request.installments_count > 0 else 1
        metadata = dict(request.metadata)
        metadata["payment_frequency"] = request.payment_frequency.value
        if request.first_payment_date:
            metadata["first_payment_date"] = request.first_payment_date.isoformat()
        if request.down_payment_date:
            metadata["down_payment_date"] = request.down_payment_date.isoformat()

        project = ProjectModel(
            id=self._ids.new_id(),
            code=code,
            project_name=request.project_name.strip(),
            client_id=request.client_id,
            client_name=request.client_name,
            project_type=request.project_type,
            description=request.description,
            status=ProjectStatus.ACTIVE.value,
            currency=request.currency,
            total_amount=request.total_amount.amount,
            down_payment_amount=request.down_payment_amount.amount,
            down_payment_percentage=request.down_payment_percentage,
            installments_count=count,
            installment_amount=(financed / count).round().amount,
            payment_frequency=request.payment_frequency.value,
            late_fee_percentage=request.late_fee_percentage,
            start_date=request.start_date,
            estimated_end_date=request.estimated_end_date,
            admin_fee_type=fee_config.fee_type.value,
            admin_fee_percentage=fee_config.percentage,
            admin_fee_amount=fee_config.fixed_amount,
            down_payment_status=(
                DownPaymentStatus.PENDING.value
                if request.down_payment_amount.is_positive
                else DownPaymentStatus.NONE.value
            ),
            down_payment_auto_confirmed=False,
            metadata_=metadata,
            created_by_id=actor_id,
        )
        self._session.add(project)
        self._session.flush()
        return project

    def _create_installments(
        self,
        project: ProjectModel,
        request: CreateProjectRequest,
        actor_id: UUID,
    ) -> list[InstallmentModel]:
        financed = request.total_amount - request.down_payment_amount
        if financed.is_zero:
            logger.info("installments_skipped_fully_paid_upfront", extra={"code": project.code})
            return []
        planned = plan_installments(
            total=request.total_amount,
            down_payment=request.down_payment_amount,
            count=request.installments_count,
            frequency=request.payment_frequency,
            first_payment_date=request.first_payment_date or request.start_date,
        )
        created = [self._insert_installment(project, p, actor_id) for p in planned]
        logger.info(
            "installments_created",
            extra={"code": project.code, "count": len(created),
                   "frequency": request.payment_frequency.value},
        )
        return created

    def _create_down_payment_installment(
        self,
        project: ProjectModel,
        request: CreateProjectRequest,
        actor_id: UUID,
    ) -> InstallmentModel:
        planned = plan_down_payment(
            request.down_payment_amount, self._down_payment_due_date(project)
        )
        return self._insert_installment(project, planned, actor_id)

    def _down_payment_due_date(self, project: ProjectModel) -> date:
        raw = (project.metadata_ or {}).get("down_payment_date")
        if raw:
            return date.fromisoformat(raw)
        return project.start_date or self._clock.today()

    def _insert_installment(
        self,
        project: ProjectModel,
        planned: PlannedInstallment,
        actor_id: UUID,
    ) -> InstallmentModel:
        installment = InstallmentModel(
            id=self._ids.new_id(),
            project_id=project.id,
            installment_number=planned.number,
            amount=planned.amount.amount,
            currency=planned.amount.currency.code,
            due_date=planned.due_date,
            status=InstallmentStatus.PENDING.value,
            paid_amount=Decimal("0"),
            notes=planned.description,
            created_by_id=actor_id,
        )
        self._session.add(installment)
        self._session.flush()
        return installment

    def _post_down_payment(
        self,
        project: ProjectModel,
        installment: InstallmentModel,
        confirmation: DownPaymentConfirmation,
        actor_id: UUID,
        auto: bool,
    ) -> InstallmentModel:
        """Shared by the automatic and the manual confirmation path."""
        if project.down_payment_status == DownPaymentStatus.CONFIRMED.value:
            raise DownPaymentAlreadyConfirmedError(str(project.id))
        if installment.status == InstallmentStatus.PAID.value or installment.paid_amount:
            raise DownPaymentAlreadyConfirmedError(str(project.id))

        method = PaymentMethod(confirmation.payment_method).value
        income, _ = self._ledger.post_project_income(
            project.id,
            confirmation.amount,
            actor_id=actor_id,
            description=f"Anticipo recibido - {project.project_name}",
            metadata={
                "installment_id": str(installment.id),
                "payment_method": method,
                "reference_number": confirmation.reference_number,
                "bank_account": confirmation.bank_account,
                "notes": confirmation.notes,
                "auto_confirmed": auto,
            },
            movement_type=MovementType.DOWN_PAYMENT,
            mirror_type=MovementType.MASTER_INCOME,
        )

        installment.status = InstallmentStatus.PAID.value
        installment.paid_amount = confirmation.amount.amount
        installment.paid_at = self._clock.now()
        installment.notes = AUTO_CONFIRM_NOTE if auto else (confirmation.notes or installment.notes)
        installment.updated_by_id = actor_id

        self._session.add(PaymentModel(
            id=self._ids.new_id(),
            project_id=project.id,
            installment_id=installment.id,
            amount=confirmation.amount.amount,
            currency=confirmation.amount.currency.code,
            payment_date=confirmation.payment_date or self._clock.today(),
            payment_method=method,
            reference_number=confirmation.reference_number,
            notes=confirmation.notes,
            movement_id=income.id,
            created_by_id=actor_id,
        ))

        project.down_payment_status = DownPaymentStatus.CONFIRMED.value
        project.down_payment_auto_confirmed = auto
        project.updated_by_id = actor_id
        self._session.flush()
        return installment

    def _queue_admin_fee(
        self,
        project: ProjectModel,
        installment: InstallmentModel,
        base: Money,
        actor_id: UUID,
    ) -> SideEffectTask | None:
        config = project.fee_config
        if config.fee_type == FeeType.NONE:
            return None
        return self._side_effects.run(
            task_type=ADMIN_FEE_TASK,
            payload={
                "project_id": str(project.id),
                "installment_id": str(installment.id),
                "amount": str(base.amount),
                "currency": base.currency.code,
                "fee_type": config.fee_type.value,
                "percentage": str(config.percentage) if config.percentage is not None else None,
                "fixed_amount": (
                    str(config.fixed_amount) if config.fixed_amount is not None else None
                ),
            },
            handler=self._admin_fee_handler(actor_id),
            actor_id=actor_id,
            project_id=project.id,
        )

    def _admin_fee_handler(self, actor_id: UUID) -> Callable[[dict[str, Any]], Any]:
        def handle(payload: dict[str, Any]) -> Any:
            config = FeeConfig(
                fee_type=FeeType(payload["fee_type"]),
                percentage=Decimal(payload["percentage"]) if payload.get("percentage") else None,
                fixed_amount=(
                    Decimal(payload["fixed_amount"]) if payload.get("fixed_amount") else None
                ),
            )
            return self._fees.process_fee(
                UUID(payload["project_id"]),
                Money.of(payload["amount"], payload["currency"]),
                config,
                actor_id=actor_id,
                installment_id=UUID(payload["installment_id"]),
            )
        return handle

    def _upload_contract_handler(self, actor_id: UUID) -> Callable[[dict[str, Any]], Any]:
        def handle(payload: dict[str, Any]) -> Any:
            stored = self._storage.upload(payload["path"], base64.b64decode(payload["blob_b64"]))
            project = self._get_project_model(UUID(payload["project_id"]))
            metadata = dict(project.metadata_ or {})
            metadata["contract"] = {"path": stored.path, "url": stored.url}
            project.metadata_ = metadata
            project.updated_by_id = actor_id
            self._session.flush()
            return stored
        return handle

    def _get_project_model(self, project_id: UUID, lock: bool = False) -> ProjectModel:
        stmt = select(ProjectModel).where(ProjectModel.id == project_id)
        if lock:
            stmt = stmt.with_for_update()
        project = self._session.execute(stmt).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _installment_models(self, project_id: UUID) -> list[InstallmentModel]:
        stmt = (
            select(InstallmentModel)
            .where(InstallmentModel.project_id == project_id)
            .order_by(InstallmentModel.installment_number)
        )
        return list(self._session.scalars(stmt))

    def _find_installment(self, project_id: UUID, number: int) -> InstallmentModel | None:
        return self._session.execute(
            select(InstallmentModel).where(
                InstallmentModel.project_id == project_id,
                InstallmentModel.installment_number == number,
            )
        ).scalar_one_or_none()

    @staticmethod
    def _require_project_currency(project: ProjectModel, amount: Money) -> None:
        if amount.currency.code != project.currency:
            raise CurrencyMismatchError(project.currency, amount.currency.code)

    @staticmethod
    def _require_not_deleted(project: ProjectModel) -> None:
        if project.deleted_at is not None:
            raise InvalidStatusTransitionError("project", "deleted", "modified")

    def _require_open(self, project: ProjectModel) -> None:
        self._require_not_deleted(project)
        if project.status == ProjectStatus.CANCELLED.value:
            raise InvalidStatusTransitionError("project", project.status, "payment")
