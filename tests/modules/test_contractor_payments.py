"""
Tests for ContractorPaymentAccountingService.

Verifies:
- Paying a contractor debits the project cash box through one expense
- Insufficient funds leaves the payment pending and balances unchanged
- A paid payment cannot be paid, edited, cancelled or deleted again
- register_and_process_payment leaves nothing behind on failure
- Overdue/upcoming queries and payment/financial summaries
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    ContractorPaymentNotFoundError,
    CurrencyMismatchError,
    InsufficientFundsError,
    InvalidStatusTransitionError,
    PaymentAlreadyPaidError,
    ProjectContractorNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)
from studio_modules.contractors.models import (
    BudgetCategory,
    ContractorPaymentStatus,
    ContractorPaymentType,
    NewContractorPayment,
    ProjectContractorStatus,
)
from studio_modules.ledger.models import MovementType

OTHER_CONTRACTOR_ID = UUID("00000000-0000-4000-a000-000000000004")


def ars(amount: str) -> Money:
    return Money.of(amount, "ARS")


def new_payment(assignment, amount: str, **kwargs) -> NewContractorPayment:
    return NewContractorPayment(project_contractor_id=assignment.id, amount=ars(amount), **kwargs)


# =============================================================================
# Assignment
# =============================================================================


class TestAssignContractor:

    def test_assign(self, assignment, funded_project, contractor_service):
        assert assignment.project_id == funded_project.id
        assert assignment.currency == "ARS"
        assert assignment.status == ProjectContractorStatus.ACTIVE
        assert contractor_service.get_project_contractors(funded_project.id) == [assignment]
        assert contractor_service.get_project_contractor(assignment.id) == assignment

    def test_duplicate_assignment(self, assignment, funded_project, contractor_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            contractor_service.assign_contractor(
                funded_project.id, assignment.contractor_id, "Otro nombre", "ARS", test_actor_id,
            )
        assert "contractor_id" in exc_info.value.field_errors

    def test_unknown_project(self, contractor_service, ids, test_actor_id):
        with pytest.raises(ProjectNotFoundError):
            contractor_service.assign_contractor(
                ids.new_id(), OTHER_CONTRACTOR_ID, "Nadie", "ARS", test_actor_id,
            )

    def test_unknown_assignment(self, contractor_service, ids):
        with pytest.raises(ProjectContractorNotFoundError):
            contractor_service.get_project_contractor(ids.new_id())


# =============================================================================
# Scheduling
# =============================================================================


class TestSchedulePayments:

    def test_create_is_pending(self, assignment, contractor_service, test_actor_id):
        payment = contractor_service.create_payment(
            new_payment(assignment, "600", due_date=date(2024, 3, 20)), test_actor_id,
        )
        assert payment.status == ContractorPaymentStatus.PENDING
        assert payment.payment_type == ContractorPaymentType.PROGRESS
        assert payment.amount == ars("600")

    def test_currency_must_match_contractor(self, assignment, contractor_service, test_actor_id):
        with pytest.raises(CurrencyMismatchError):
            contractor_service.create_payment(
                NewContractorPayment(assignment.id, Money.of("10", "USD")), test_actor_id,
            )

    def test_non_positive_amount(self, assignment, contractor_service, test_actor_id):
        with pytest.raises(ValidationError):
            contractor_service.create_payment(new_payment(assignment, "0"), test_actor_id)

    def test_budget_item_of_other_contractor(
        self, assignment, funded_project, contractor_service, budget_service, test_actor_id,
    ):
        other = contractor_service.assign_contractor(
            funded_project.id, OTHER_CONTRACTOR_ID, "Electricista", "ARS", test_actor_id,
        )
        foreign_item = budget_service.create_item(
            other.id, "Cableado", Decimal("1"), Decimal("500"), test_actor_id,
        )
        with pytest.raises(ValidationError) as exc_info:
            contractor_service.create_payment(
                new_payment(assignment, "100", budget_item_id=foreign_item.id), test_actor_id,
            )
        assert "budget_item_id" in exc_info.value.field_errors

    def test_bulk_create_is_all_or_nothing(self, assignment, contractor_service, test_actor_id):
        with pytest.raises(ValidationError):
            contractor_service.bulk_create(
                [new_payment(assignment, "100"), new_payment(assignment, "-5")], test_actor_id,
            )
        assert contractor_service.get_payments(assignment.id) == []

        created = contractor_service.bulk_create(
            [
                new_payment(assignment, "100", due_date=date(2024, 4, 1)),
                new_payment(assignment, "200", due_date=date(2024, 5, 1)),
            ],
            test_actor_id,
        )
        assert [p.amount for p in created] == [ars("100"), ars("200")]

    def test_update_pending(self, assignment, contractor_service, test_actor_id):
        payment = contractor_service.create_payment(new_payment(assignment, "100"), test_actor_id)
        updated = contractor_service.update_payment(
            payment.id,
            {"amount": "750", "payment_type": "advance", "notes": "Acopio"},
            test_actor_id,
        )
        assert updated.amount == ars("750")
        assert updated.payment_type == ContractorPaymentType.ADVANCE
        assert updated.notes == "Acopio"

    def test_update_rejects_unknown_fields(self, assignment, contractor_service, test_actor_id):
        payment = contractor_service.create_payment(new_payment(assignment, "100"), test_actor_id)
        with pytest.raises(ValidationError) as exc_info:
            contractor_service.update_payment(payment.id, {"status": "paid"}, test_actor_id)
        assert "status" in exc_info.value.field_errors

    def test_cancel_and_delete(self, assignment, contractor_service, test_actor_id):
        first = contractor_service.create_payment(new_payment(assignment, "100"), test_actor_id)
        second = contractor_service.create_payment(new_payment(assignment, "200"), test_actor_id)

        cancelled = contractor_service.cancel_payment(first.id, test_actor_id, reason="Duplicado")
        assert cancelled.status == ContractorPaymentStatus.CANCELLED
        assert cancelled.cancellation_reason == "Duplicado"
        with pytest.raises(InvalidStatusTransitionError):
            contractor_service.mark_as_paid(first.id, test_actor_id)
        with pytest.raises(InvalidStatusTransitionError):
            contractor_service.update_payment(first.id, {"notes": "x"}, test_actor_id)

        contractor_service.delete_payment(second.id, test_actor_id)
        with pytest.raises(ContractorPaymentNotFoundError):
            contractor_service.get_payment(second.id)


# =============================================================================
# Payout
# =============================================================================


class TestMarkAsPaid:

    def test_insufficient_funds_keeps_payment_pending(
        self, assignment, funded_project, contractor_service, ledger, test_actor_id,
    ):
        payment = contractor_service.create_payment(new_payment(assignment, "1500"), test_actor_id)

        with pytest.raises(InsufficientFundsError) as exc_info:
            contractor_service.mark_as_paid(payment.id, test_actor_id)

        assert exc_info.value.shortfall == Decimal("500")
        assert contractor_service.get_payment(payment.id).status == ContractorPaymentStatus.PENDING
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("1000")
        assert ledger.list_movements(
            project_id=funded_project.id, movement_type=MovementType.EXPENSE,
        ) == []

    def test_payout_debits_box_once(
        self, assignment, funded_project, contractor_service, ledger, test_actor_id,
    ):
        payment = contractor_service.create_payment(new_payment(assignment, "600"), test_actor_id)
        paid = contractor_service.mark_as_paid(
            payment.id, test_actor_id, paid_by="Tesoreria", receipt_url="memory://recibos/1.pdf",
        )

        assert paid.status == ContractorPaymentStatus.PAID
        assert paid.paid_by == "Tesoreria"
        assert paid.receipt_file_url == "memory://recibos/1.pdf"
        assert paid.paid_at is not None
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("400")
        assert ledger.get_master_balance("ARS") == ars("400")

        expenses = ledger.list_movements(
            project_id=funded_project.id, movement_type=MovementType.EXPENSE,
        )
        assert len(expenses) == 1
        assert expenses[0].id == paid.movement_id
        assert expenses[0].amount == Decimal("-600")
        assert expenses[0].description == "Avance - Corralon Norte"
        assert expenses[0].metadata_["contractor_payment_id"] == str(payment.id)

    def test_paid_payment_is_final(self, assignment, contractor_service, ledger, funded_project, test_actor_id):
        payment = contractor_service.create_payment(new_payment(assignment, "100"), test_actor_id)
        contractor_service.mark_as_paid(payment.id, test_actor_id)

        with pytest.raises(PaymentAlreadyPaidError):
            contractor_service.mark_as_paid(payment.id, test_actor_id)
        with pytest.raises(PaymentAlreadyPaidError):
            contractor_service.update_payment(payment.id, {"amount": "50"}, test_actor_id)
        with pytest.raises(PaymentAlreadyPaidError):
            contractor_service.cancel_payment(payment.id, test_actor_id)
        with pytest.raises(PaymentAlreadyPaidError):
            contractor_service.delete_payment(payment.id, test_actor_id)
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("900")

    def test_overdue_payment_can_be_paid(self, assignment, contractor_service, test_actor_id):
        payment = contractor_service.create_payment(
            new_payment(assignment, "100", due_date=date(2024, 3, 1)), test_actor_id,
        )
        assert contractor_service.mark_overdue_payments() == 1
        paid = contractor_service.mark_as_paid(payment.id, test_actor_id)
        assert paid.status == ContractorPaymentStatus.PAID

    def test_deleted_project_is_not_paid_out(
        self, assignment, funded_project, contractor_service, project_service, ledger, test_actor_id,
    ):
        payment = contractor_service.create_payment(
            new_payment(assignment, "100", due_date=date(2024, 3, 1)), test_actor_id,
        )
        project_service.delete_project(funded_project.id, test_actor_id)

        assert contractor_service.mark_overdue_payments() == 0
        with pytest.raises(InvalidStatusTransitionError):
            contractor_service.mark_as_paid(payment.id, test_actor_id)
        assert contractor_service.get_payment(payment.id).status == ContractorPaymentStatus.PENDING
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("1000")
        assert ledger.list_movements(project_id=funded_project.id, movement_type=MovementType.EXPENSE) == []

    def test_payout_logged_with_context(self, assignment, contractor_service, test_actor_id, captured_logs):
        payment = contractor_service.create_payment(new_payment(assignment, "100"), test_actor_id)
        contractor_service.mark_as_paid(payment.id, test_actor_id)

        records = [r for r in captured_logs() if r["message"] == "contractor_payment_paid"]
        assert len(records) == 1
        assert records[0]["payment_id"] == str(payment.id)
        assert records[0]["project_id"] == str(assignment.project_id)


class TestRegisterAndProcess:

    def test_success(self, assignment, funded_project, contractor_service, ledger, test_actor_id):
        paid = contractor_service.register_and_process_payment(
            new_payment(assignment, "300", payment_type=ContractorPaymentType.ADVANCE),
            test_actor_id,
            paid_by="Tesoreria",
        )
        assert paid.status == ContractorPaymentStatus.PAID
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("700")
        assert ledger.get_movement(paid.movement_id).description == "Anticipo - Corralon Norte"

    def test_failure_leaves_nothing(self, assignment, funded_project, contractor_service, ledger, test_actor_id):
        with pytest.raises(InsufficientFundsError):
            contractor_service.register_and_process_payment(
                new_payment(assignment, "5000"), test_actor_id,
            )
        assert contractor_service.get_payments(assignment.id) == []
        assert ledger.get_project_balance(funded_project.id, "ARS") == ars("1000")


# =============================================================================
# Queries and summaries
# =============================================================================


@pytest.fixture
def schedule(assignment, contractor_service, test_actor_id):
    """Clock is 2024-03-15.  One advance paid, one payment already late."""
    advance = contractor_service.create_payment(
        new_payment(assignment, "300", payment_type=ContractorPaymentType.ADVANCE,
                    due_date=date(2024, 3, 10)),
        test_actor_id,
    )
    contractor_service.mark_as_paid(advance.id, test_actor_id)
    late = contractor_service.create_payment(
        new_payment(assignment, "100", due_date=date(2024, 3, 1)), test_actor_id,
    )
    soon = contractor_service.create_payment(
        new_payment(assignment, "200", due_date=date(2024, 3, 18)), test_actor_id,
    )
    final = contractor_service.create_payment(
        new_payment(assignment, "400", payment_type=ContractorPaymentType.FINAL,
                    due_date=date(2024, 4, 30)),
        test_actor_id,
    )
    contractor_service.mark_overdue_payments()
    return {"advance": advance, "late": late, "soon": soon, "final": final}


class TestPaymentQueries:

    def test_overdue_and_upcoming(self, schedule, assignment, contractor_service):
        overdue = contractor_service.get_overdue_payments(project_contractor_id=assignment.id)
        assert [p.id for p in overdue] == [schedule["late"].id]
        assert overdue[0].status == ContractorPaymentStatus.OVERDUE

        upcoming = contractor_service.get_upcoming_payments(days=7)
        assert [p.id for p in upcoming] == [schedule["soon"].id]
        wider = contractor_service.get_upcoming_payments(days=60, project_contractor_id=assignment.id)
        assert [p.id for p in wider] == [schedule["soon"].id, schedule["final"].id]

    def test_filters(self, schedule, assignment, contractor_service):
        assert len(contractor_service.get_by_status(assignment.id, "pending")) == 2
        assert len(contractor_service.get_by_type(assignment.id, ContractorPaymentType.PROGRESS)) == 2
        ordered = [p.due_date for p in contractor_service.get_payments(assignment.id)]
        assert ordered == sorted(ordered)

    def test_summary(self, schedule, assignment, contractor_service):
        summary = contractor_service.get_summary(assignment.id)

        assert summary.currency == "ARS"
        assert summary.total_payments == 4
        assert summary.total_paid == ars("300")
        assert summary.total_pending == ars("600")
        assert summary.total_overdue == ars("100")
        assert summary.by_type == {
            "advance": ars("300"), "progress": ars("300"), "final": ars("400"),
        }
        assert summary.count_by_status == {"paid": 1, "overdue": 1, "pending": 2}
        assert summary.next_payment_date == date(2024, 3, 18)
        assert summary.next_payment_amount == ars("200")

    def test_financial_summary(self, schedule, assignment, contractor_service, budget_service, test_actor_id):
        budget_service.create_item(
            assignment.id, "Cemento", Decimal("10"), Decimal("100"), test_actor_id,
            category=BudgetCategory.MATERIALS, unit="bolsa",
        )
        budget_service.create_item(
            assignment.id, "Mano de obra", Decimal("1"), Decimal("1000"), test_actor_id,
            category=BudgetCategory.LABOR,
        )

        summary = contractor_service.get_financial_summary(assignment.id)
        assert summary.budget_total == ars("2000")
        assert summary.total_paid == ars("300")
        assert summary.total_pending == ars("700")
        assert summary.balance_due == ars("1700")
        assert summary.payment_progress == Decimal("15.00")
        assert summary.overdue_count == 1

    def test_financial_summary_without_budget(self, schedule, assignment, contractor_service):
        summary = contractor_service.get_financial_summary(assignment.id)
        assert summary.budget_total.is_zero
        assert summary.payment_progress == Decimal("0")
