"""
BillingPolicy -- the kernel's view of clinic billing settings.

Responsibility:
    Carries the handful of knobs services consult (default currency, the
    empty-invoice status, the overpayment switch, invoice numbering).  The
    kernel never reads configuration files; ``billing_config.bridges`` builds
    a BillingPolicy from the loaded configuration.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from billing_kernel.db.types import validate_currency
from billing_kernel.domain.status import InvoiceStatus, ItemSourceType


@dataclass(frozen=True)
class BillingPolicy:
    """
    Settings that shape billing behaviour.

    Defaults match a single clinic in Myanmar: kyat currency and Yangon local
    dates on invoice numbers.
    """

    default_currency: str = "MMK"
    empty_invoice_status: InvoiceStatus = InvoiceStatus.DRAFT
    allow_overpayment: bool = True
    invoice_number_prefix: str = "INV"
    invoice_number_timezone: str = "Asia/Yangon"
    external_charge_source_type: ItemSourceType = ItemSourceType.PHARMACY

    def __post_init__(self) -> None:
        object.__setattr__(self, "default_currency", validate_currency(self.default_currency))
        object.__setattr__(
            self, "empty_invoice_status", InvoiceStatus(self.empty_invoice_status)
        )
        if self.empty_invoice_status not in (InvoiceStatus.DRAFT, InvoiceStatus.PENDING):
            raise ValueError(
                "empty_invoice_status must be DRAFT or PENDING, "
                f"got {self.empty_invoice_status.value}"
            )
        object.__setattr__(
            self,
            "external_charge_source_type",
            ItemSourceType(self.external_charge_source_type),
        )
        prefix = self.invoice_number_prefix
        if not prefix or not prefix.isalnum():
            raise ValueError(f"invoice_number_prefix must be alphanumeric, got {prefix!r}")
        try:
            ZoneInfo(self.invoice_number_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(
                f"Unknown invoice_number_timezone: {self.invoice_number_timezone!r}"
            ) from e
