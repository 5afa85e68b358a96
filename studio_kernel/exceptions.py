"""
Typed Exception Hierarchy for the Studio Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI handlers, API adapters, reconciliation jobs) must tell an
insufficient-funds rejection apart from a missing project or a bad form
field without parsing message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA (shortfall amounts, ids, field errors)

Example - WRONG way to handle errors:
    try:
        service.mark_as_paid(payment_id, actor_id)
    except Exception as e:
        if "Fondos insuficientes" in str(e):  # FRAGILE
            show_shortfall()

Example - RIGHT way:
    try:
        service.mark_as_paid(payment_id, actor_id)
    except InsufficientFundsError as e:
        show_shortfall(e.shortfall, e.currency)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StudioLedgerError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- CashBoxNotFoundError
    |   +-- InstallmentNotFoundError
    |   +-- ContractorPaymentNotFoundError
    |   +-- ProjectContractorNotFoundError
    |   +-- BudgetItemNotFoundError
    |   +-- AdministratorFeeNotFoundError
    |   +-- SideEffectTaskNotFoundError
    |
    +-- LedgerError
    |   +-- InsufficientFundsError
    |   +-- CurrencyMismatchError
    |
    +-- StateError
    |   +-- InvalidStatusTransitionError
    |   +-- PaymentAlreadyPaidError
    |   +-- DownPaymentAlreadyConfirmedError
    |   +-- AdministratorFeeStateError
    |
    +-- ProjectCreationError
    |
    +-- CollaboratorError
        +-- StorageError
        +-- ExchangeRateUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                             | When Raised
--------------|----------------------------------|--------------------------------------
Validation    | VALIDATION_FAILED                | Missing field, amount <= 0, % out of range
--------------|----------------------------------|--------------------------------------
Lookup        | PROJECT_NOT_FOUND                | Project id unknown
              | CASH_BOX_NOT_FOUND               | Project/master/admin ledger row missing
              | INSTALLMENT_NOT_FOUND            | (project, number) unknown
              | CONTRACTOR_PAYMENT_NOT_FOUND     | Payment id unknown
              | PROJECT_CONTRACTOR_NOT_FOUND     | Contractor assignment unknown
              | BUDGET_ITEM_NOT_FOUND            | Budget line unknown
              | ADMIN_FEE_NOT_FOUND              | Fee id unknown
              | SIDE_EFFECT_TASK_NOT_FOUND       | Outbox task id unknown
--------------|----------------------------------|--------------------------------------
Ledger        | INSUFFICIENT_FUNDS               | Balance below requested debit
              | CURRENCY_MISMATCH                | Money of the wrong currency supplied
--------------|----------------------------------|--------------------------------------
State         | INVALID_STATUS_TRANSITION        | Disallowed status change
              | PAYMENT_ALREADY_PAID             | markAsPaid on a paid payment
              | DOWN_PAYMENT_ALREADY_CONFIRMED   | Second down-payment posting
              | ADMIN_FEE_INVALID_STATE          | Collect/cancel on a non-pending fee
--------------|----------------------------------|--------------------------------------
Creation      | PROJECT_CREATION_FAILED          | Cash box could not be opened
--------------|----------------------------------|--------------------------------------
Collaborators | STORAGE_ERROR                    | Object storage rejected an operation
              | EXCHANGE_RATE_UNAVAILABLE        | No live or cached quote
"""

from decimal import Decimal


class StudioLedgerError(Exception):
    """Base exception for all studio ledger errors."""

    code: str = "STUDIO_LEDGER_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(StudioLedgerError):
    """Input rejected before any write; carries field-level messages."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        summary = "; ".join(f"{k}: {v}" for k, v in self.field_errors.items())
        super().__init__(f"Validation failed: {summary}")


# =============================================================================
# Lookup errors
# =============================================================================


class NotFoundError(StudioLedgerError):
    """Base for referential/setup errors."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class CashBoxNotFoundError(NotFoundError):
    """A project, master or admin ledger row does not exist."""

    code: str = "CASH_BOX_NOT_FOUND"

    def __init__(self, owner: str):
        self.owner = owner
        super().__init__(f"Cash box not found: {owner}")


class InstallmentNotFoundError(NotFoundError):
    code: str = "INSTALLMENT_NOT_FOUND"

    def __init__(self, project_id: str, installment_number: int):
        self.project_id = project_id
        self.installment_number = installment_number
        super().__init__(
            f"Installment {installment_number} not found for project {project_id}"
        )


class ContractorPaymentNotFoundError(NotFoundError):
    code: str = "CONTRACTOR_PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Contractor payment not found: {payment_id}")


class ProjectContractorNotFoundError(NotFoundError):
    code: str = "PROJECT_CONTRACTOR_NOT_FOUND"

    def __init__(self, project_contractor_id: str):
        self.project_contractor_id = project_contractor_id
        super().__init__(f"Project contractor not found: {project_contractor_id}")


class BudgetItemNotFoundError(NotFoundError):
    code: str = "BUDGET_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Budget item not found: {item_id}")


class AdministratorFeeNotFoundError(NotFoundError):
    code: str = "ADMIN_FEE_NOT_FOUND"

    def __init__(self, fee_id: str):
        self.fee_id = fee_id
        super().__init__(f"Administrator fee not found: {fee_id}")


class SideEffectTaskNotFoundError(NotFoundError):
    code: str = "SIDE_EFFECT_TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Side-effect task not found: {task_id}")


# =============================================================================
# Ledger errors
# =============================================================================


class LedgerError(StudioLedgerError):
    """Base for cash ledger errors."""

    code: str = "LEDGER_ERROR"


class InsufficientFundsError(LedgerError):
    """
    A debit exceeds the available balance in the requested currency.

    Rendered distinctly by callers, which show the shortfall.
    """

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        ledger: str,
        currency: str,
        required: Decimal,
        available: Decimal,
    ):
        self.ledger = ledger
        self.currency = currency
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Fondos insuficientes en {ledger}: se requieren {required} {currency}, "
            f"disponible {available} {currency} (faltan {self.shortfall})"
        )


class CurrencyMismatchError(LedgerError):
    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Currency mismatch: expected {expected}, got {actual}")


# =============================================================================
# State errors
# =============================================================================


class StateError(StudioLedgerError):
    """Base for lifecycle violations."""

    code: str = "STATE_ERROR"


class InvalidStatusTransitionError(StateError):
    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, current_status: str, requested_status: str):
        self.entity = entity
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot move {entity} from '{current_status}' to '{requested_status}'"
        )


class PaymentAlreadyPaidError(StateError):
    code: str = "PAYMENT_ALREADY_PAID"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment already paid: {payment_id}")


class DownPaymentAlreadyConfirmedError(StateError):
    code: str = "DOWN_PAYMENT_ALREADY_CONFIRMED"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Down payment already confirmed for project {project_id}")


class AdministratorFeeStateError(StateError):
    code: str = "ADMIN_FEE_INVALID_STATE"

    def __init__(self, fee_id: str, status: str):
        self.fee_id = fee_id
        self.status = status
        super().__init__(f"Administrator fee {fee_id} is {status}, expected pending")


# =============================================================================
# Project creation
# =============================================================================


class ProjectCreationError(StudioLedgerError):
    """Creation aborted; the project row was rolled back."""

    code: str = "PROJECT_CREATION_FAILED"

    def __init__(self, step: str, reason: str):
        self.step = step
        self.reason = reason
        super().__init__(f"Project creation failed at {step}: {reason}")


# =============================================================================
# External collaborators
# =============================================================================


class CollaboratorError(StudioLedgerError):
    code: str = "COLLABORATOR_ERROR"


class StorageError(CollaboratorError):
    code: str = "STORAGE_ERROR"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Storage operation failed for {path}: {reason}")


class ExchangeRateUnavailableError(CollaboratorError):
    code: str = "EXCHANGE_RATE_UNAVAILABLE"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"No exchange rate available for '{source}': {reason}")
