"""
Project Accounting Module (``studio_modules.project``).

Creates projects with their cash box, installment plan, down payment and
administrator fee, then collects installments against the plan.
"""

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
from studio_modules.project.service import ProjectAccountingService
from studio_modules.project.workflows import PROJECT_WORKFLOW

__all__ = [
    "CreateProjectRequest",
    "DownPaymentConfirmation",
    "DownPaymentStatus",
    "Installment",
    "InstallmentStatus",
    "PROJECT_WORKFLOW",
    "PaymentMethod",
    "Project",
    "ProjectAccountingService",
    "ProjectConfig",
    "ProjectCreationResult",
    "ProjectProgress",
    "ProjectStatus",
]
