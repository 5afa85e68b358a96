"""
Module ORM Registry (``studio_modules._orm_registry``).

Responsibility
--------------
Import every SQLAlchemy model so that ``Base.metadata`` holds all table
definitions before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``studio_kernel.db.engine.create_tables`` and by ``tests/conftest.py``.
"""


def import_all_orm_models() -> None:
    """Import kernel tables and every ``studio_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (sequence_counters, side_effect_tasks)
    import studio_kernel.services.sequence_service  # noqa: F401
    import studio_kernel.services.side_effect_service  # noqa: F401
    # fmt: off
    import studio_modules.ledger.orm  # noqa: F401
    import studio_modules.project.orm  # noqa: F401
    import studio_modules.admin_fee.orm  # noqa: F401
    import studio_modules.contractors.orm  # noqa: F401
    # fmt: on
