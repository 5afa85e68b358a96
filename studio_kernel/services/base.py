"""
BaseService -- common constructor for flush-only kernel services.

Responsibility:
    Holds the injected ``Session``, ``Clock`` and ``IdGenerator``.
    Subclasses persist with ``session.flush()`` -- never ``commit()``.
    The calling module service owns commit/rollback, so a ledger posting,
    its movements and the row it belongs to land in one transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session

from studio_kernel.domain.clock import Clock, SystemClock
from studio_kernel.domain.ids import IdGenerator, UUID4Generator


class BaseService(ABC):
    """
    Abstract base class for kernel and store services.

    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.ids = ids or UUID4Generator()
