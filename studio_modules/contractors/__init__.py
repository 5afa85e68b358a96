"""
Contractors Module (``studio_modules.contractors``).

Contractors assigned to projects, their budget line items and their
payments, paid out of the project cash box.
"""

from studio_modules.contractors.budget import ContractorBudgetService
from studio_modules.contractors.models import (
    BudgetCategory,
    BudgetItem,
    BudgetSummary,
    ContractorFinancialSummary,
    ContractorPayment,
    ContractorPaymentStatus,
    ContractorPaymentType,
    NewContractorPayment,
    PaymentSummary,
    ProjectContractor,
    ProjectContractorStatus,
)
from studio_modules.contractors.service import ContractorPaymentAccountingService
from studio_modules.contractors.workflows import CONTRACTOR_PAYMENT_WORKFLOW

__all__ = [
    "BudgetCategory",
    "BudgetItem",
    "BudgetSummary",
    "CONTRACTOR_PAYMENT_WORKFLOW",
    "ContractorBudgetService",
    "ContractorFinancialSummary",
    "ContractorPayment",
    "ContractorPaymentAccountingService",
    "ContractorPaymentStatus",
    "ContractorPaymentType",
    "NewContractorPayment",
    "PaymentSummary",
    "ProjectContractor",
    "ProjectContractorStatus",
]
