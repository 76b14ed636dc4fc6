"""
Work Order Modules.

Thin orchestration layers over the kernel and the engines.  Each module
contains:
- Domain models (frozen DTOs)
- ORM models (persistence)
- A service that owns the transaction boundary

Modules:
- work_orders: SPK issuance, numbering, draft -> published lifecycle
- payments: installment status tracking and progress
- vendors: vendor records, portal tokens, portal view
"""
