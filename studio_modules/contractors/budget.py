"""
ContractorBudgetService (``studio_modules.contractors.budget``).

Responsibility
--------------
CRUD and aggregation for a contractor's budget line items.  The grand
total is the denominator of the contractor's payment progress.

Invariants enforced
-------------------
* ``total_amount = quantity * unit_price`` rounded to currency precision,
  recomputed on every change of either factor.
* New items append: ``order_index = last + 1`` (0 for the first item).
* Items are in the contractor's currency.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.ids import IdGenerator, UUID4Generator
from studio_kernel.domain.values import Money
from studio_kernel.exceptions import (
    BudgetItemNotFoundError,
    ProjectContractorNotFoundError,
    ValidationError,
)
from studio_kernel.logging_config import get_logger
from studio_modules.contractors.models import BudgetCategory, BudgetItem, BudgetSummary
from studio_modules.contractors.orm import (
    ContractorBudgetItemModel,
    ContractorPaymentModel,
    ProjectContractorModel,
)

logger = get_logger("modules.contractors.budget")

_EDITABLE_FIELDS = frozenset({"description", "category", "quantity", "unit", "unit_price", "notes"})


class ContractorBudgetService:
    """Budget line items of project contractors."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ids = ids or UUID4Generator()
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

    def create_item(
        self,
        project_contractor_id: UUID,
        description: str,
        quantity: Decimal,
        unit_price: Decimal,
        actor_id: UUID,
        category: BudgetCategory | str = BudgetCategory.OTHER,
        unit: str | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        try:
            owner = self._get_owner(project_contractor_id)
            self._validate(description, quantity, unit_price)
            last_index = self._session.execute(
                select(func.max(ContractorBudgetItemModel.order_index)).where(
                    ContractorBudgetItemModel.project_contractor_id == project_contractor_id
                )
            ).scalar()
            item = ContractorBudgetItemModel(
                id=self._ids.new_id(),
                project_contractor_id=project_contractor_id,
                description=description.strip(),
                category=BudgetCategory(category).value,
                quantity=quantity,
                unit=unit,
                unit_price=unit_price,
                total_amount=_line_total(quantity, unit_price, owner.currency),
                currency=owner.currency,
                order_index=0 if last_index is None else last_index + 1,
                notes=notes,
                created_by_id=actor_id,
            )
            self._session.add(item)
            self._session.flush()
            self._commit()
            logger.info(
                "budget_item_created",
                extra={"item_id": str(item.id), "project_contractor_id": str(project_contractor_id),
                       "total_amount": str(item.total_amount)},
            )
            return item.to_dto()
        except Exception:
            self._rollback()
            raise

    def update_item(self, item_id: UUID, changes: dict[str, Any], actor_id: UUID) -> BudgetItem:
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError({name: "not editable" for name in sorted(unknown)})
        try:
            item = self._get_item(item_id)
            for name, value in changes.items():
                if name == "category":
                    value = BudgetCategory(value).value
                setattr(item, name, value)
            self._validate(item.description, item.quantity, item.unit_price)
            item.total_amount = _line_total(item.quantity, item.unit_price, item.currency)
            item.updated_by_id = actor_id
            self._commit()
            return item.to_dto()
        except Exception:
            self._rollback()
            raise

    def delete_item(self, item_id: UUID, actor_id: UUID) -> None:
        try:
            item = self._get_item(item_id)
            referenced = self._session.execute(
                select(func.count()).select_from(ContractorPaymentModel).where(
                    ContractorPaymentModel.budget_item_id == item_id
                )
            ).scalar_one()
            if referenced:
                raise ValidationError(
                    {"budget_item_id": f"{referenced} payment(s) reference this item"}
                )
            self._session.delete(item)
            self._commit()
            logger.info(
                "budget_item_deleted",
                extra={"item_id": str(item_id), "actor_id": str(actor_id)},
            )
        except Exception:
            self._rollback()
            raise

    def duplicate_item(self, item_id: UUID, actor_id: UUID) -> BudgetItem:
        source = self.get_item(item_id)
        return self.create_item(
            source.project_contractor_id,
            description=f"{source.description} (copia)",
            quantity=source.quantity,
            unit_price=source.unit_price.amount,
            actor_id=actor_id,
            category=source.category,
            unit=source.unit,
            notes=source.notes,
        )

    def reorder(self, project_contractor_id: UUID, item_ids: list[UUID], actor_id: UUID) -> list[BudgetItem]:
        """Set ``order_index`` to each item's position in ``item_ids``."""
        try:
            items = {
                item.id: item
                for item in self._session.scalars(
                    select(ContractorBudgetItemModel).where(
                        ContractorBudgetItemModel.project_contractor_id == project_contractor_id
                    )
                )
            }
            for index, item_id in enumerate(item_ids):
                item = items.get(item_id)
                if item is None:
                    raise BudgetItemNotFoundError(str(item_id))
                item.order_index = index
                item.updated_by_id = actor_id
            self._commit()
            return self.get_items(project_contractor_id)
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_item(self, item_id: UUID) -> BudgetItem:
        return self._get_item(item_id).to_dto()

    def get_items(self, project_contractor_id: UUID) -> list[BudgetItem]:
        stmt = (
            select(ContractorBudgetItemModel)
            .where(ContractorBudgetItemModel.project_contractor_id == project_contractor_id)
            .order_by(ContractorBudgetItemModel.order_index, ContractorBudgetItemModel.id)
        )
        return [item.to_dto() for item in self._session.scalars(stmt)]

    def get_by_category(
        self,
        project_contractor_id: UUID,
        category: BudgetCategory | str,
    ) -> list[BudgetItem]:
        category = BudgetCategory(category)
        return [i for i in self.get_items(project_contractor_id) if i.category == category]

    def get_summary(self, project_contractor_id: UUID) -> BudgetSummary:
        owner = self._get_owner(project_contractor_id)
        items = self.get_items(project_contractor_id)
        subtotals: dict[str, Money] = {}
        grand_total = Money.zero(owner.currency)
        for item in items:
            key = item.category.value
            subtotals[key] = subtotals.get(key, Money.zero(owner.currency)) + item.total_amount
            grand_total = grand_total + item.total_amount
        return BudgetSummary(
            project_contractor_id=project_contractor_id,
            currency=owner.currency,
            total_items=len(items),
            subtotal_by_category=subtotals,
            grand_total=grand_total,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _get_owner(self, project_contractor_id: UUID) -> ProjectContractorModel:
        owner = self._session.get(ProjectContractorModel, project_contractor_id)
        if owner is None:
            raise ProjectContractorNotFoundError(str(project_contractor_id))
        return owner

    def _get_item(self, item_id: UUID) -> ContractorBudgetItemModel:
        item = self._session.get(ContractorBudgetItemModel, item_id)
        if item is None:
            raise BudgetItemNotFoundError(str(item_id))
        return item

    @staticmethod
    def _validate(description: str, quantity: Decimal, unit_price: Decimal) -> None:
        errors: dict[str, str] = {}
        if not description or not description.strip():
            errors["description"] = "required"
        if quantity is None or Decimal(quantity) <= 0:
            errors["quantity"] = "must be greater than zero"
        if unit_price is None or Decimal(unit_price) < 0:
            errors["unit_price"] = "must not be negative"
        if errors:
            raise ValidationError(errors)


def _line_total(quantity: Decimal, unit_price: Decimal, currency: str) -> Decimal:
    return (Money.of(unit_price, currency) * Decimal(quantity)).round().amount
