"""
billing_services -- transaction-owning entry points to the billing kernel.

Dependency direction:
    billing_services/ -> billing_kernel/   (allowed)
    billing_services/ -> billing_config/   (allowed)
    billing_kernel/   -> billing_services/ (FORBIDDEN)
"""

from billing_services.billing_service import (
    BillingResult,
    BillingResultStatus,
    BillingService,
)
from billing_services.factory import build_billing_service

__all__ = [
    "BillingResult",
    "BillingResultStatus",
    "BillingService",
    "build_billing_service",
]
