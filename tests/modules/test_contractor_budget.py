"""Tests for ContractorBudgetService."""

from decimal import Decimal

import pytest

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    BudgetItemNotFoundError,
    ProjectContractorNotFoundError,
    ValidationError,
)
from studio_modules.contractors.models import BudgetCategory, NewContractorPayment


def ars(amount: str) -> Money:
    return Money.of(amount, "ARS")


@pytest.fixture
def items(assignment, budget_service, test_actor_id):
    cement = budget_service.create_item(
        assignment.id, "Cemento", Decimal("10"), Decimal("100"), test_actor_id,
        category=BudgetCategory.MATERIALS, unit="bolsa",
    )
    labor = budget_service.create_item(
        assignment.id, "Mano de obra", Decimal("3"), Decimal("333.335"), test_actor_id,
        category=BudgetCategory.LABOR, unit="jornal",
    )
    return cement, labor


class TestBudgetItems:

    def test_line_total_and_order(self, items):
        cement, labor = items
        assert cement.total_amount == ars("1000")
        assert cement.order_index == 0
        # 3 x 333.335 = 1000.005, rounded half up
        assert labor.total_amount == ars("1000.01")
        assert labor.order_index == 1

    def test_update_recomputes_total(self, items, budget_service, test_actor_id):
        cement, _ = items
        updated = budget_service.update_item(
            cement.id, {"quantity": Decimal("12"), "notes": "precio mayorista"}, test_actor_id,
        )
        assert updated.total_amount == ars("1200")
        assert updated.notes == "precio mayorista"

    def test_update_validation(self, items, budget_service, test_actor_id):
        cement, _ = items
        with pytest.raises(ValidationError):
            budget_service.update_item(cement.id, {"quantity": Decimal("0")}, test_actor_id)
        with pytest.raises(ValidationError):
            budget_service.update_item(cement.id, {"total_amount": Decimal("1")}, test_actor_id)
        assert budget_service.get_item(cement.id).quantity == Decimal("10")

    def test_create_validation(self, assignment, budget_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            budget_service.create_item(
                assignment.id, " ", Decimal("-1"), Decimal("-5"), test_actor_id,
            )
        assert set(exc_info.value.field_errors) == {"description", "quantity", "unit_price"}

    def test_unknown_owner(self, budget_service, ids, test_actor_id):
        with pytest.raises(ProjectContractorNotFoundError):
            budget_service.create_item(ids.new_id(), "x", Decimal("1"), Decimal("1"), test_actor_id)

    def test_duplicate_appends(self, items, budget_service, test_actor_id):
        cement, _ = items
        copy = budget_service.duplicate_item(cement.id, test_actor_id)
        assert copy.description == "Cemento (copia)"
        assert copy.order_index == 2
        assert copy.total_amount == cement.total_amount
        assert copy.id != cement.id

    def test_reorder(self, items, assignment, budget_service, test_actor_id):
        cement, labor = items
        reordered = budget_service.reorder(assignment.id, [labor.id, cement.id], test_actor_id)
        assert [i.id for i in reordered] == [labor.id, cement.id]
        with pytest.raises(BudgetItemNotFoundError):
            budget_service.reorder(assignment.id, [labor.id, assignment.id], test_actor_id)

    def test_delete(self, items, budget_service, test_actor_id):
        cement, _ = items
        budget_service.delete_item(cement.id, test_actor_id)
        with pytest.raises(BudgetItemNotFoundError):
            budget_service.get_item(cement.id)

    def test_delete_referenced_item(self, items, assignment, budget_service, contractor_service, test_actor_id):
        cement, _ = items
        contractor_service.create_payment(
            NewContractorPayment(assignment.id, ars("500"), budget_item_id=cement.id), test_actor_id,
        )
        with pytest.raises(ValidationError):
            budget_service.delete_item(cement.id, test_actor_id)


class TestBudgetSummary:

    def test_summary_by_category(self, items, assignment, budget_service):
        summary = budget_service.get_summary(assignment.id)
        assert summary.total_items == 2
        assert summary.currency == "ARS"
        assert summary.subtotal_by_category == {
            "materials": ars("1000"), "labor": ars("1000.01"),
        }
        assert summary.grand_total == ars("2000.01")

    def test_by_category(self, items, assignment, budget_service):
        labor_items = budget_service.get_by_category(assignment.id, "labor")
        assert [i.description for i in labor_items] == ["Mano de obra"]

    def test_empty_budget(self, assignment, budget_service):
        summary = budget_service.get_summary(assignment.id)
        assert summary.total_items == 0
        assert summary.grand_total == ars("0")
