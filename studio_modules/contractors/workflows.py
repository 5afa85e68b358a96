"""Contractor payment lifecycle transitions."""

from __future__ import annotations

CONTRACTOR_PAYMENT_WORKFLOW = {
    "name": "contractor_payment_lifecycle",
    "states": ["pending", "overdue", "paid", "cancelled"],
    "transitions": {
        "pending": ["paid", "overdue", "cancelled"],
        "overdue": ["paid", "cancelled"],
    },
}

# Payments in these states may still be edited or deleted.
OPEN_PAYMENT_STATES = ("pending", "overdue")


def can_transition(current: str, requested: str) -> bool:
    return requested in CONTRACTOR_PAYMENT_WORKFLOW["transitions"].get(current, ())
