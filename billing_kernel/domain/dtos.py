"""
DTOs -- frozen inputs and read models exchanged with collaborators.

Responsibility:
    Input objects (ItemInput, ItemPatch, ChargeLine, InvoiceFilter) validate
    and normalize caller data on construction, so services only ever see
    well-formed values.  Read models (InvoiceView, InvoiceItemView,
    PaymentView) are what the kernel hands back; they carry Money, never ORM
    instances.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - quantity is a positive int no larger than MAX_QUANTITY (bools rejected).
    - unit_price is a non-negative Decimal rounded to the persisted precision.
    - source_type / method / status values are members of their enums.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from billing_kernel.db.types import round_money
from billing_kernel.domain.status import InvoiceStatus, ItemSourceType, PaymentMethod
from billing_kernel.domain.values import Money, parse_amount
from billing_kernel.exceptions import (
    InvalidItemInputError,
    InvalidPaymentMethodError,
    InvalidQuantityError,
    InvalidSourceTypeError,
)


def coerce_source_type(value: ItemSourceType | str) -> ItemSourceType:
    try:
        return ItemSourceType(value.upper() if isinstance(value, str) else value)
    except ValueError as e:
        raise InvalidSourceTypeError(value) from e


def coerce_payment_method(value: PaymentMethod | str) -> PaymentMethod:
    try:
        return PaymentMethod(value.upper() if isinstance(value, str) else value)
    except ValueError as e:
        raise InvalidPaymentMethodError(value) from e


# Largest value the INTEGER quantity column accepts
MAX_QUANTITY = 2**31 - 1


def check_quantity(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value <= MAX_QUANTITY:
        raise InvalidQuantityError(value)
    return value


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


# -----------------------------------------------------------------------------
# Inputs
# -----------------------------------------------------------------------------

_Input = TypeVar("_Input")


def from_mapping(input_type: type[_Input], data: _Input | Mapping[str, Any]) -> _Input:
    """
    ``data`` as an ``input_type`` instance, building it from a mapping.

    Keys are checked against the dataclass fields first, so a misspelt or
    missing field is reported as InvalidItemInputError.
    """
    if isinstance(data, input_type):
        return data
    if not isinstance(data, Mapping):
        raise InvalidItemInputError(input_type.__name__)
    declared = fields(input_type)
    names = {f.name for f in declared}
    unknown = tuple(sorted(str(key) for key in data if key not in names))
    missing = tuple(
        f.name
        for f in declared
        if f.default is MISSING and f.default_factory is MISSING and f.name not in data
    )
    if unknown or missing:
        raise InvalidItemInputError(input_type.__name__, unknown, missing)
    return input_type(**data)


@dataclass(frozen=True)
class ItemInput:
    """A charge line to add to an invoice."""

    quantity: int
    unit_price: Decimal
    source_type: ItemSourceType = ItemSourceType.MANUAL
    description: str | None = None
    source_ref_id: str | None = None
    service_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "source_type", coerce_source_type(self.source_type))
        object.__setattr__(self, "quantity", check_quantity(self.quantity))
        object.__setattr__(
            self, "unit_price", round_money(parse_amount(self.unit_price, "unit_price"))
        )
        object.__setattr__(self, "description", _clean_text(self.description))
        if self.source_ref_id is not None:
            object.__setattr__(self, "source_ref_id", str(self.source_ref_id))
        if self.service_id is not None:
            object.__setattr__(self, "service_id", str(self.service_id))


@dataclass(frozen=True)
class ItemPatch:
    """Partial update of an invoice line; None means 'leave unchanged'."""

    description: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None

    def __post_init__(self) -> None:
        if self.quantity is not None:
            object.__setattr__(self, "quantity", check_quantity(self.quantity))
        if self.unit_price is not None:
            object.__setattr__(
                self,
                "unit_price",
                round_money(parse_amount(self.unit_price, "unit_price")),
            )
        object.__setattr__(self, "description", _clean_text(self.description))

    @property
    def is_empty(self) -> bool:
        return self.description is None and self.quantity is None and self.unit_price is None


@dataclass(frozen=True)
class ChargeLine:
    """
    One line of an externally triggered charge (e.g. a dispensed drug).

    Either ``description`` or ``name`` must be given; with only a name the
    description becomes "<name> x <quantity>".
    """

    quantity: int
    unit_price: Decimal
    description: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", check_quantity(self.quantity))
        object.__setattr__(
            self, "unit_price", round_money(parse_amount(self.unit_price, "unit_price"))
        )
        object.__setattr__(self, "description", _clean_text(self.description))
        object.__setattr__(self, "name", _clean_text(self.name))

    @property
    def resolved_description(self) -> str | None:
        if self.description:
            return self.description
        if self.name:
            return f"{self.name} x {self.quantity}"
        return None


@dataclass(frozen=True)
class InvoiceFilter:
    """Criteria for list_invoices.  Unknown status names are ignored."""

    visit_id: str | None = None
    patient_id: str | None = None
    statuses: tuple[InvoiceStatus, ...] = ()
    limit: int | None = None
    offset: int = 0

    @classmethod
    def from_status_names(cls, names: str | list[str] | None, **kwargs) -> InvoiceFilter:
        """Build a filter from a comma-separated or listed set of status names."""
        if names is None:
            raw: list[str] = []
        elif isinstance(names, str):
            raw = names.split(",")
        else:
            raw = list(names)
        allowed = {s.value for s in InvoiceStatus}
        statuses = tuple(
            InvoiceStatus(n.strip().upper())
            for n in raw
            if n and n.strip().upper() in allowed
        )
        return cls(statuses=statuses, **kwargs)


# -----------------------------------------------------------------------------
# Read models
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class InvoiceItemView:
    id: UUID
    invoice_id: UUID
    source_type: ItemSourceType
    source_ref_id: str | None
    service_id: str | None
    description: str
    quantity: int
    unit_price: Money
    line_total: Money
    removed_at: datetime | None = None


@dataclass(frozen=True)
class PaymentView:
    id: UUID
    invoice_id: UUID
    amount: Money
    method: PaymentMethod
    paid_at: datetime
    reference_no: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class InvoiceView:
    """An invoice with its lines and payments, as seen by collaborators."""

    id: UUID
    tenant_id: str
    invoice_no: str
    visit_id: str
    patient_id: str
    status: InvoiceStatus
    currency: str
    sub_total: Money
    discount_amt: Money
    tax_amt: Money
    grand_total: Money
    amount_paid: Money
    amount_due: Money
    note: str | None = None
    void_reason: str | None = None
    voided_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: tuple[InvoiceItemView, ...] = field(default_factory=tuple)
    payments: tuple[PaymentView, ...] = field(default_factory=tuple)

    @property
    def active_items(self) -> tuple[InvoiceItemView, ...]:
        """Lines that count towards the totals."""
        return tuple(i for i in self.items if i.removed_at is None)
