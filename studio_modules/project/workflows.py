"""Project lifecycle transitions."""

from __future__ import annotations

PROJECT_WORKFLOW = {
    "name": "project_lifecycle",
    "states": ["draft", "active", "on_hold", "completed", "cancelled"],
    "transitions": {
        "draft": ["active", "cancelled"],
        "active": ["on_hold", "completed", "cancelled"],
        "on_hold": ["active", "cancelled"],
    },
}


def can_transition(current: str, requested: str) -> bool:
    return requested in PROJECT_WORKFLOW["transitions"].get(current, ())
