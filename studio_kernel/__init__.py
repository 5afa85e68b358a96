"""
Studio Kernel

Shared infrastructure for the studio ledger:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Injectable clock and id generation
- Money / Currency value objects (ARS, USD)
- SQLAlchemy base, engine and session scope
- Locked sequence counters and the side-effect outbox
"""

__version__ = "0.1.0"
