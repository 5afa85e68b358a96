"""
Installment Planning (``studio_modules.installments``).

Pure schedule computation: due dates by frequency and equal split of the
financed remainder with the rounding remainder on the last installment.
"""

from studio_modules.installments.models import PaymentFrequency, PlannedInstallment
from studio_modules.installments.planner import (
    add_months,
    add_period,
    plan_down_payment,
    plan_installments,
    plan_milestones,
    split_evenly,
)

__all__ = [
    "PaymentFrequency",
    "PlannedInstallment",
    "add_months",
    "add_period",
    "plan_down_payment",
    "plan_installments",
    "plan_milestones",
    "split_evenly",
]
