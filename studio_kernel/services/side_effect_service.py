"""
SideEffectService -- outbox for best-effort secondary work.

Responsibility:
    Runs work that must never abort the operation that triggered it
    (administrator fee collection after a payment, contract upload after
    signing) and records the outcome as a queryable ``side_effect_tasks``
    row instead of a swallowed log line.

Architecture position:
    Kernel > Services -- flush-only.  The handler runs inside a SAVEPOINT
    of the caller's transaction; a failing handler rolls back only its own
    writes.

Invariants enforced:
    - Every task ends a run as ``succeeded`` or ``failed``; ``failed``
      rows carry ``last_error`` and ``attempts``.
    - Only ``failed`` tasks can be retried, at most ``MAX_ATTEMPTS`` times.
    - ``run`` and ``retry`` never propagate the handler's exception.

Failure modes:
    - SideEffectTaskNotFoundError on retry of an unknown task.
    - InvalidStatusTransitionError on retry of a non-failed or exhausted
      task.

Audit relevance:
    Failed tasks are the reconciliation worklist: a project whose fee task
    failed has money in the master ledger that the admin ledger never
    received.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, select
from sqlalchemy.orm import Mapped, mapped_column

from studio_kernel.db.base import TrackedBase, UUIDString
from studio_kernel.exceptions import (
    InvalidStatusTransitionError,
    SideEffectTaskNotFoundError,
)
from studio_kernel.logging_config import get_logger
from studio_kernel.services.base import BaseService

logger = get_logger("services.side_effect")

SideEffectHandler = Callable[[dict[str, Any]], Any]


class SideEffectStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SideEffectTask(TrackedBase):
    """A unit of best-effort work and its last outcome."""

    __tablename__ = "side_effect_tasks"

    __table_args__ = (
        Index("idx_side_effect_status", "status"),
        Index("idx_side_effect_type", "task_type"),
        Index("idx_side_effect_project", "project_id"),
    )

    task_type: Mapped[str] = mapped_column(String(80), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SideEffectStatus.PENDING.value
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    attempts: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<SideEffectTask {self.task_type} [{self.status}] attempts={self.attempts}>"


class SideEffectService(BaseService):
    """
    Persist-then-execute runner for best-effort work.

    Usage:
        task = side_effects.run(
            task_type="admin_fee_collection",
            payload={"project_id": str(project.id), ...},
            handler=self._collect_fee_from_payload,
            actor_id=actor_id,
            project_id=project.id,
        )
        if task.status == SideEffectStatus.FAILED.value:
            warnings.append(task.last_error)
    """

    MAX_ATTEMPTS = 5

    def run(
        self,
        task_type: str,
        payload: dict[str, Any],
        handler: SideEffectHandler,
        actor_id: UUID,
        project_id: UUID | None = None,
    ) -> SideEffectTask:
        """Record a task and execute it once."""
        task = SideEffectTask(
            id=self.ids.new_id(),
            task_type=task_type,
            status=SideEffectStatus.PENDING.value,
            payload=dict(payload),
            attempts=0,
            project_id=project_id,
            created_by_id=actor_id,
        )
        self.session.add(task)
        self.session.flush()
        return self._execute(task, handler)

    def retry(
        self,
        task_id: UUID,
        handler: SideEffectHandler,
        actor_id: UUID,
    ) -> SideEffectTask:
        """Re-run a failed task."""
        task = self.get_task(task_id)
        if task.status != SideEffectStatus.FAILED.value:
            raise InvalidStatusTransitionError(
                "side_effect_task", task.status, SideEffectStatus.PENDING.value
            )
        if task.attempts >= self.MAX_ATTEMPTS:
            raise InvalidStatusTransitionError(
                "side_effect_task", f"failed after {task.attempts} attempts",
                SideEffectStatus.PENDING.value,
            )
        task.status = SideEffectStatus.PENDING.value
        task.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "side_effect_retry_started",
            extra={"task_id": str(task.id), "task_type": task.task_type,
                   "attempt": task.attempts + 1},
        )
        return self._execute(task, handler)

    def get_task(self, task_id: UUID) -> SideEffectTask:
        task = self.session.get(SideEffectTask, task_id)
        if task is None:
            raise SideEffectTaskNotFoundError(str(task_id))
        return task

    def list_tasks(
        self,
        status: SideEffectStatus | str | None = None,
        task_type: str | None = None,
        project_id: UUID | None = None,
    ) -> list[SideEffectTask]:
        stmt = select(SideEffectTask)
        if status is not None:
            stmt = stmt.where(SideEffectTask.status == SideEffectStatus(status).value)
        if task_type is not None:
            stmt = stmt.where(SideEffectTask.task_type == task_type)
        if project_id is not None:
            stmt = stmt.where(SideEffectTask.project_id == project_id)
        stmt = stmt.order_by(SideEffectTask.created_at, SideEffectTask.id)
        return list(self.session.scalars(stmt))

    def _execute(self, task: SideEffectTask, handler: SideEffectHandler) -> SideEffectTask:
        task.attempts += 1
        self.session.flush()

        savepoint = self.session.begin_nested()
        try:
            handler(dict(task.payload))
            savepoint.commit()
        except Exception as exc:
            savepoint.rollback()
            task.status = SideEffectStatus.FAILED.value
            task.last_error = f"{type(exc).__name__}: {exc}"[:2000]
            logger.warning(
                "side_effect_failed",
                extra={
                    "task_id": str(task.id),
                    "task_type": task.task_type,
                    "attempts": task.attempts,
                },
                exc_info=True,
            )
        else:
            task.status = SideEffectStatus.SUCCEEDED.value
            task.last_error = None
            task.completed_at = self.clock.now()
            logger.info(
                "side_effect_succeeded",
                extra={"task_id": str(task.id), "task_type": task.task_type},
            )
        self.session.flush()
        return task
