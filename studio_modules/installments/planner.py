"""
InstallmentPlanner (``studio_modules.installments.planner``).

Responsibility
--------------
Computes due dates and per-installment amounts for a project's financed
remainder.  Pure functions: no database, no clock.

Invariants enforced
-------------------
* ``sum(installment.amount) == total - down_payment`` exactly: amounts are
  rounded to currency precision and the last installment absorbs the
  remainder.
* Installment ``i`` (1-based) is due ``(i - 1)`` periods after the first
  payment date.  Monthly and quarterly periods use calendar months with
  day overflow carried into the following month (31 Jan + 1 month is
  2 or 3 March), never fixed 30-day steps.
* A non-positive installment count is treated as 1.

Failure modes
-------------
* ``ValidationError`` for negative totals, negative down payments, a down
  payment above the total, or mixed currencies.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import ROUND_DOWN, Decimal

from studio_kernel.domain.values import Money
from studio_kernel.exceptions import ValidationError
from studio_modules.installments.models import PaymentFrequency, PlannedInstallment

DOWN_PAYMENT_DESCRIPTION = "Anticipo inicial"

# Construction milestones: (percentage, description, days after start)
MILESTONES: tuple[tuple[int, str, int], ...] = (
    (20, "Anticipo - Inicio del proyecto", 0),
    (15, "Finalización de planos", 30),
    (20, "Inicio de obra - Fundaciones", 60),
    (15, "Estructura y techos", 120),
    (15, "Instalaciones y acabados", 180),
    (15, "Entrega final del proyecto", 240),
)


def add_months(start: date, months: int) -> date:
    """
    Calendar month arithmetic with day overflow.

    The day of month is kept; when the target month is shorter, the excess
    days roll into the next month (2023-01-31 + 1 month = 2023-03-03,
    2024-01-31 + 1 month = 2024-03-02).
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    days_in_month = calendar.monthrange(year, month)[1]
    if start.day <= days_in_month:
        return date(year, month, start.day)
    return date(year, month, days_in_month) + timedelta(days=start.day - days_in_month)


def add_period(start: date, frequency: PaymentFrequency | str, steps: int) -> date:
    """Date ``steps`` payment periods after ``start``."""
    frequency = PaymentFrequency(frequency)
    if frequency == PaymentFrequency.WEEKLY:
        return start + timedelta(days=7 * steps)
    if frequency == PaymentFrequency.BIWEEKLY:
        return start + timedelta(days=14 * steps)
    if frequency == PaymentFrequency.QUARTERLY:
        return add_months(start, 3 * steps)
    return add_months(start, steps)


def split_evenly(amount: Money, count: int) -> list[Money]:
    """
    Split ``amount`` into ``count`` parts at currency precision.

    All parts but the last are ``amount / count`` truncated to the
    currency's decimals; the last takes the remainder.
    """
    if count <= 0:
        count = 1
    quantum = Decimal(1).scaleb(-amount.currency.decimal_places)
    base = (amount.amount / count).quantize(quantum, rounding=ROUND_DOWN)
    parts = [Money(amount=base, currency=amount.currency) for _ in range(count - 1)]
    last = amount.amount - base * (count - 1)
    parts.append(Money(amount=last, currency=amount.currency))
    return parts


def plan_installments(
    total: Money,
    down_payment: Money,
    count: int,
    frequency: PaymentFrequency | str,
    first_payment_date: date,
) -> tuple[PlannedInstallment, ...]:
    """
    Build the regular installments 1..N for a financed remainder.

    Args:
        total: Project total.
        down_payment: Amount paid at signing (may be zero).
        count: Number of installments; values <= 0 become 1.
        frequency: monthly, biweekly, weekly or quarterly.
        first_payment_date: Due date of installment 1.

    Returns:
        Installments ordered by number, amounts summing to
        ``total - down_payment``.
    """
    if total.currency != down_payment.currency:
        raise ValidationError({"currency": "total and down payment must share a currency"})
    errors: dict[str, str] = {}
    if total.is_negative:
        errors["total_amount"] = "must not be negative"
    if down_payment.is_negative:
        errors["down_payment_amount"] = "must not be negative"
    elif down_payment > total:
        errors["down_payment_amount"] = "must not exceed the total amount"
    if errors:
        raise ValidationError(errors)

    frequency = PaymentFrequency(frequency)
    count = count if count > 0 else 1
    amounts = split_evenly((total - down_payment).round(), count)

    return tuple(
        PlannedInstallment(
            number=i,
            amount=amounts[i - 1],
            due_date=add_period(first_payment_date, frequency, i - 1),
            description=f"Cuota {frequency.label} {i} de {count}",
        )
        for i in range(1, count + 1)
    )


def plan_down_payment(amount: Money, due_date: date) -> PlannedInstallment:
    """Installment 0."""
    return PlannedInstallment(
        number=0,
        amount=amount,
        due_date=due_date,
        description=DOWN_PAYMENT_DESCRIPTION,
    )


def plan_milestones(total: Money, start: date) -> tuple[PlannedInstallment, ...]:
    """
    Milestone-based schedule used for construction contracts.

    The first milestone is the down payment (number 0).  Amounts are
    rounded; the final milestone absorbs the remainder.
    """
    planned: list[PlannedInstallment] = []
    allocated = Money.zero(total.currency)
    for index, (pct, description, days) in enumerate(MILESTONES):
        if index == len(MILESTONES) - 1:
            amount = total - allocated
        else:
            amount = (total * Decimal(pct) / Decimal(100)).round()
            allocated = allocated + amount
        planned.append(
            PlannedInstallment(
                number=index,
                amount=amount,
                due_date=start + timedelta(days=days),
                description=description,
            )
        )
    return tuple(planned)
