"""
Configuration schema (``billing_config.schema``).

Frozen dataclasses describing a clinic billing configuration as read from
YAML.  Values are validated in ``__post_init__``; a bad file fails at load
time with a ValueError naming the offending key, never later inside a
posting.
"""

from __future__ import annotations

from dataclasses import dataclass

_EMPTY_STATUSES = ("DRAFT", "PENDING")
_SOURCE_TYPES = ("SERVICE", "PHARMACY", "MANUAL")


@dataclass(frozen=True)
class BillingConfig:
    """
    One clinic billing configuration.

    Attributes:
        config_id: Identifier of the configuration set.
        version: Monotonic version of the set.
        default_currency: Currency of invoices created without one.
        empty_invoice_status: Status of an unpaid invoice with no lines.
        allow_overpayment: Accept payments larger than amount_due.
        invoice_number_prefix: Leading part of invoice numbers.
        invoice_number_timezone: IANA zone giving the date in invoice numbers.
        external_charge_source_type: Default source type of external charges.
        checksum: SHA-256 of the source file, set by the loader.
    """

    config_id: str = "default"
    version: int = 1
    default_currency: str = "MMK"
    empty_invoice_status: str = "DRAFT"
    allow_overpayment: bool = True
    invoice_number_prefix: str = "INV"
    invoice_number_timezone: str = "Asia/Yangon"
    external_charge_source_type: str = "PHARMACY"
    checksum: str = ""

    def __post_init__(self) -> None:
        if not self.config_id:
            raise ValueError("config_id must not be empty")
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise ValueError(f"version must be a positive integer, got {self.version!r}")
        if not isinstance(self.default_currency, str) or len(self.default_currency.strip()) != 3:
            raise ValueError(
                f"default_currency must be a three-letter code, got {self.default_currency!r}"
            )
        if str(self.empty_invoice_status).upper() not in _EMPTY_STATUSES:
            raise ValueError(
                f"empty_invoice_status must be one of {_EMPTY_STATUSES}, "
                f"got {self.empty_invoice_status!r}"
            )
        if not isinstance(self.allow_overpayment, bool):
            raise ValueError(
                f"allow_overpayment must be true or false, got {self.allow_overpayment!r}"
            )
        if str(self.external_charge_source_type).upper() not in _SOURCE_TYPES:
            raise ValueError(
                f"external_charge_source_type must be one of {_SOURCE_TYPES}, "
                f"got {self.external_charge_source_type!r}"
            )
        if not self.invoice_number_prefix:
            raise ValueError("invoice_number_prefix must not be empty")
        if not self.invoice_number_timezone:
            raise ValueError("invoice_number_timezone must not be empty")
