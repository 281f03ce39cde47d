"""
Wiring for BillingService from the active configuration.

All configuration-to-kernel wiring happens here; BillingService itself
takes an already built BillingPolicy.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from billing_config import BillingConfig, build_billing_policy, get_active_config
from billing_kernel.domain.clock import Clock
from billing_kernel.services.directory import ClinicalDirectory
from billing_services.billing_service import BillingService


def build_billing_service(
    session: Session,
    directory: ClinicalDirectory,
    config: BillingConfig | None = None,
    clock: Clock | None = None,
) -> BillingService:
    """BillingService configured from ``config`` or ``get_active_config()``."""
    policy = build_billing_policy(config or get_active_config())
    return BillingService(session, directory, policy=policy, clock=clock)
