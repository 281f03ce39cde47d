"""
Billing Kernel

Invoicing core for multi-tenant clinics with:
- Tenant-scoped persistence (no tenant-less query path)
- Fixed-point money with central ROUND_HALF_UP rounding
- Derived invoice status and a terminal VOID state
- Row-locked payment posting
- Exactly-once posting of external charges
"""

__version__ = "0.1.0"
