"""
Config -> Kernel bridge.

Converts a loaded BillingConfig into the kernel's BillingPolicy.  Lives here
because the kernel must never import billing_config.
"""

from __future__ import annotations

from billing_config.schema import BillingConfig
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import InvoiceStatus, ItemSourceType
from billing_kernel.exceptions import BillingError


def build_billing_policy(config: BillingConfig) -> BillingPolicy:
    """
    Raises:
        ValueError: If a value is well-formed YAML but meaningless to the
            kernel (unknown timezone, malformed currency).
    """
    try:
        return BillingPolicy(
            default_currency=config.default_currency,
            empty_invoice_status=InvoiceStatus(config.empty_invoice_status.upper()),
            allow_overpayment=config.allow_overpayment,
            invoice_number_prefix=config.invoice_number_prefix,
            invoice_number_timezone=config.invoice_number_timezone,
            external_charge_source_type=ItemSourceType(
                config.external_charge_source_type.upper()
            ),
        )
    except BillingError as e:
        # e.g. InvalidCurrencyError; reported as a configuration error
        raise ValueError(f"Invalid configuration {config.config_id!r}: {e}") from e
