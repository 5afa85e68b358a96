"""
Cash Ledger Module (``studio_modules.ledger``).

Responsibility
--------------
The dual cash-box system: per-project cash boxes, the master ledger that
mirrors every project income, the administrator pool that receives
collected fees, and the append-only movement log.

Invariants enforced
-------------------
* Every balance change has a ``cash_movements`` row.
* ARS and USD are independent ledgers; no implicit conversion.
* The store flushes only; callers own the transaction.
"""

from studio_modules.ledger.models import (
    CashBoxSnapshot,
    CashMovement,
    LedgerEndpoint,
    MovementType,
)
from studio_modules.ledger.service import CashLedgerStore

__all__ = [
    "CashBoxSnapshot",
    "CashLedgerStore",
    "CashMovement",
    "LedgerEndpoint",
    "MovementType",
]
