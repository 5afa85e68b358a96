"""Kernel services: flush-only infrastructure shared by the studio modules."""

from studio_kernel.services.base import BaseService
from studio_kernel.services.sequence_service import SequenceCounter, SequenceService
from studio_kernel.services.side_effect_service import (
    SideEffectService,
    SideEffectStatus,
    SideEffectTask,
)

__all__ = [
    "BaseService",
    "SequenceCounter",
    "SequenceService",
    "SideEffectService",
    "SideEffectStatus",
    "SideEffectTask",
]
