"""
SequenceService -- atomic sequence allocation via locked counter rows.

Responsibility:
    Hands out strictly increasing integers per named sequence.  Project
    codes (``PRY-2024-001``) draw from one sequence per calendar year,
    ``project_code:2024``.

Architecture position:
    Kernel > Services -- flush-only infrastructure.  Called by
    ProjectAccountingService inside its creation transaction.

Invariants enforced:
    - The locked counter row is the sole source of truth.  Reading
      ``max(code)`` and adding one is never used.
    - Transactional: the increment is only visible once the caller
      commits.  A rolled-back project creation returns its number.

Failure modes:
    - IntegrityError on concurrent first use of a sequence name, handled
      by savepoint rollback and re-read under lock.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from studio_kernel.db.base import Base
from studio_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence holding its last issued value."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Service for transactional sequence numbers.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations of the
          same sequence on PostgreSQL.
        - Does NOT call ``session.commit()``.

    Usage:
        seq = SequenceService(session).next_value(
            SequenceService.project_code_sequence(2024)
        )
    """

    PROJECT_CODE_PREFIX = "project_code"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def project_code_sequence(cls, year: int) -> str:
        return f"{cls.PROJECT_CODE_PREFIX}:{year}"

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for ``sequence_name``.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: only for tests and data migrations.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
