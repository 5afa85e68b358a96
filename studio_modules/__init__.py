"""
Studio Modules.

Business services over the studio kernel.  Each module contains:
- Domain models (frozen DTOs and enums)
- ORM persistence models
- Workflows (state machines) where the module has lifecycle states
- The service that owns the transaction

Modules:
- ledger: Project cash boxes, master and administrator ledgers, movements
- installments: Payment schedule computation
- admin_fee: Administrator fee calculation and collection
- project: Project creation, down payment, installment collection
- contractors: Contractor assignments, budgets and payouts
- collaborators: Contract storage and exchange-rate quotes
"""
