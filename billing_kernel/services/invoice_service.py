"""
InvoiceService -- the invoice lifecycle controller.

Responsibility:
    Creates invoices and edits their structure: lines (add, update, remove)
    and invoice-level adjustments (discount, tax).  Every edit ends with a
    full recomputation of totals and status under the invoice row lock.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the BillingService
    facade and by ChargePoster (which reuses ``open_invoice`` and
    ``append_line``).

Invariants enforced:
    - A VOID invoice accepts no structural change (InvoiceVoidError).
    - Mutations lock the invoice row first (SELECT ... FOR UPDATE), then
      read lines and adjustments, so concurrent edits serialize.
    - line_total = quantity * unit_price, rounded once when written.
    - Lines removed after a payment exists are kept with ``removed_at`` set
      and excluded from totals; otherwise they are deleted.
    - Every new invoice gets a number from the locked sequence counter.

Failure modes:
    - VisitNotFoundError if the visit/patient pair is unknown to the tenant.
    - ServiceNotFoundError / MissingDescriptionError when a line's
      description cannot be resolved.
    - EmptyPatchError for a patch that changes nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from uuid import UUID

from billing_kernel.db.types import round_money, validate_currency
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import ItemInput, ItemPatch, from_mapping
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import ItemSourceType
from billing_kernel.domain.totals import line_total
from billing_kernel.domain.values import ensure_storable, parse_amount
from billing_kernel.exceptions import (
    EmptyPatchError,
    MissingDescriptionError,
    ServiceNotFoundError,
    VisitNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import InvoiceItemModel, InvoiceModel
from billing_kernel.services.base import BaseService
from billing_kernel.services.directory import ClinicalDirectory
from billing_kernel.services.invoice_repository import InvoiceRepository
from billing_kernel.services.sequence_service import SequenceService

logger = get_logger("services.invoice")


def as_item_input(item: ItemInput | Mapping) -> ItemInput:
    return from_mapping(ItemInput, item)


def as_item_patch(patch: ItemPatch | Mapping) -> ItemPatch:
    return from_mapping(ItemPatch, patch)


def priced_line(quantity: int, unit_price: Decimal) -> Decimal:
    """Rounded line total, rejected when it would not fit a money column."""
    return round_money(ensure_storable(line_total(quantity, unit_price), "line_total"))


class InvoiceService(BaseService):
    """
    Invoice creation and structural edits for one tenant.

    Usage:
        repo = InvoiceRepository(session, tenant_id="clinic-a")
        service = InvoiceService(repo, directory)
        invoice = service.create_invoice("visit-1", "patient-1", [
            ItemInput(quantity=1, unit_price=Decimal("8000.00"),
                      description="Consultation"),
        ])
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        directory: ClinicalDirectory,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        super().__init__(repository, policy, clock)
        self.directory = directory
        self.actor_id = actor_id
        self._sequences = SequenceService(self.session)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_invoice(
        self,
        visit_id: str,
        patient_id: str,
        initial_items: Iterable[ItemInput | Mapping] = (),
        *,
        note: str | None = None,
        discount_amt: Decimal | str | int | None = None,
        tax_amt: Decimal | str | int | None = None,
        currency: str | None = None,
    ) -> InvoiceModel:
        """
        Create an invoice for a visit, optionally with initial lines.

        Status is PENDING when lines exist, otherwise the configured
        empty-invoice status.

        Raises:
            VisitNotFoundError: Visit/patient unknown to the tenant.
            BillingValidationError: Any malformed line or amount.
        """
        items = [as_item_input(i) for i in initial_items]
        discount = self._adjustment(discount_amt, "discount_amt")
        tax = self._adjustment(tax_amt, "tax_amt")
        resolved_currency = (
            validate_currency(currency) if currency else self.policy.default_currency
        )
        self.check_visit(visit_id, patient_id)
        descriptions = [self.resolve_description(i) for i in items]

        logger.info(
            "invoice_create_started",
            extra={
                "visit_id": visit_id,
                "patient_id": patient_id,
                "item_count": len(items),
            },
        )

        with self.atomic():
            invoice = self.open_invoice(
                visit_id,
                patient_id,
                currency=resolved_currency,
                note=note,
                discount_amt=discount or Decimal("0"),
                tax_amt=tax or Decimal("0"),
            )
            for item, description in zip(items, descriptions):
                self.append_line(invoice, item, description)
            self.recalculate(invoice, "create")

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "invoice_no": invoice.invoice_no,
                "status": invoice.status,
                "grand_total": str(invoice.grand_total),
            },
        )
        return invoice

    def open_invoice(
        self,
        visit_id: str,
        patient_id: str,
        *,
        currency: str | None = None,
        note: str | None = None,
        discount_amt: Decimal = Decimal("0"),
        tax_amt: Decimal = Decimal("0"),
    ) -> InvoiceModel:
        """
        Insert an empty invoice row with a freshly allocated number.

        Caller has already validated the visit and runs inside a savepoint.
        """
        invoice_no = self._sequences.next_invoice_number(
            self.tenant_id,
            self.policy.invoice_number_prefix,
            self.clock.now(),
            self.policy.invoice_number_timezone,
        )
        invoice = InvoiceModel(
            invoice_no=invoice_no,
            visit_id=visit_id,
            patient_id=patient_id,
            status=self.policy.empty_invoice_status.value,
            currency=currency or self.policy.default_currency,
            sub_total=Decimal("0"),
            discount_amt=discount_amt,
            tax_amt=tax_amt,
            grand_total=Decimal("0"),
            amount_paid=Decimal("0"),
            amount_due=Decimal("0"),
            note=note,
            created_by_id=self.actor_id,
            updated_by_id=self.actor_id,
        )
        self.repository.add_invoice(invoice)
        return invoice

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    def add_item(self, invoice_id: UUID | str, item: ItemInput | Mapping) -> InvoiceItemModel:
        """
        Append a line to a non-void invoice and recompute.

        Raises:
            InvoiceNotFoundError: Invoice absent from the tenant.
            InvoiceVoidError: Invoice is VOID.
        """
        item = as_item_input(item)
        description = self.resolve_description(item)

        with self.atomic():
            invoice = self.repository.get_invoice(invoice_id, for_update=True)
            self.ensure_not_void(invoice, "add_item")
            line = self.append_line(invoice, item, description)
            self.recalculate(invoice, "add_item")

        logger.info(
            "invoice_item_added",
            extra={
                "invoice_id": str(invoice.id),
                "item_id": str(line.id),
                "source_type": line.source_type,
                "line_total": str(line.line_total),
            },
        )
        return line

    def update_item(self, item_id: UUID | str, patch: ItemPatch | Mapping) -> InvoiceItemModel:
        """
        Change description, quantity or unit price of a line and recompute.

        Raises:
            EmptyPatchError: Patch carries no field.
            InvoiceItemNotFoundError: Item absent, removed, or in another tenant.
            InvoiceVoidError: Owning invoice is VOID.
        """
        patch = as_item_patch(patch)
        if patch.is_empty:
            raise EmptyPatchError(str(item_id))

        with self.atomic():
            item = self.repository.get_item(item_id)
            invoice = self.repository.get_invoice(item.invoice_id, for_update=True)
            self.ensure_not_void(invoice, "update_item")
            # Re-read under the invoice lock
            item = self.repository.get_item(item.id)

            if patch.description is not None:
                item.description = patch.description
            if patch.quantity is not None:
                item.quantity = patch.quantity
            if patch.unit_price is not None:
                item.unit_price = patch.unit_price
            item.line_total = priced_line(item.quantity, item.unit_price)
            item.updated_by_id = self.actor_id
            self.recalculate(invoice, "update_item")

        logger.info(
            "invoice_item_updated",
            extra={
                "invoice_id": str(invoice.id),
                "item_id": str(item.id),
                "line_total": str(item.line_total),
            },
        )
        return item

    def remove_item(self, item_id: UUID | str) -> InvoiceModel:
        """
        Remove a line and recompute.

        Deleted outright while the invoice has no payments; afterwards kept
        as a removed line so the payment history still reconciles.
        """
        with self.atomic():
            item = self.repository.get_item(item_id)
            invoice = self.repository.get_invoice(item.invoice_id, for_update=True)
            self.ensure_not_void(invoice, "remove_item")
            item = self.repository.get_item(item.id)

            soft = self.repository.count_payments(invoice.id) > 0
            if soft:
                item.removed_at = self.clock.now()
                item.updated_by_id = self.actor_id
                self.session.flush()
            else:
                self.repository.delete_item(invoice, item)
            self.recalculate(invoice, "remove_item")

        logger.info(
            "invoice_item_removed",
            extra={
                "invoice_id": str(invoice.id),
                "item_id": str(item_id),
                "soft": soft,
            },
        )
        return invoice

    def append_line(
        self,
        invoice: InvoiceModel,
        item: ItemInput,
        description: str,
    ) -> InvoiceItemModel:
        """Insert one line; the caller recomputes afterwards."""
        line = InvoiceItemModel(
            source_type=item.source_type.value,
            source_ref_id=item.source_ref_id,
            service_id=item.service_id,
            description=description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=priced_line(item.quantity, item.unit_price),
            created_by_id=self.actor_id,
            updated_by_id=self.actor_id,
        )
        return self.repository.add_item(invoice, line)

    # -------------------------------------------------------------------------
    # Adjustments
    # -------------------------------------------------------------------------

    def update_adjustments(
        self,
        invoice_id: UUID | str,
        discount_amt: Decimal | str | int | None = None,
        tax_amt: Decimal | str | int | None = None,
    ) -> InvoiceModel:
        """
        Set invoice-level discount and/or tax and recompute.

        A value left as None keeps the stored amount.
        """
        discount = self._adjustment(discount_amt, "discount_amt")
        tax = self._adjustment(tax_amt, "tax_amt")

        with self.atomic():
            invoice = self.repository.get_invoice(invoice_id, for_update=True)
            self.ensure_not_void(invoice, "update_adjustments")
            if discount is not None:
                invoice.discount_amt = discount
            if tax is not None:
                invoice.tax_amt = tax
            invoice.updated_by_id = self.actor_id
            self.recalculate(invoice, "update_adjustments")

        logger.info(
            "invoice_adjustments_updated",
            extra={
                "invoice_id": str(invoice.id),
                "discount_amt": str(invoice.discount_amt),
                "tax_amt": str(invoice.tax_amt),
                "grand_total": str(invoice.grand_total),
            },
        )
        return invoice

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def check_visit(self, visit_id: str, patient_id: str) -> None:
        if not self.directory.visit_belongs_to(self.tenant_id, visit_id, patient_id):
            raise VisitNotFoundError(visit_id, patient_id)

    def resolve_description(self, item: ItemInput) -> str:
        """Caller's description, else the catalog name for SERVICE lines."""
        if item.description:
            return item.description
        if item.source_type == ItemSourceType.SERVICE and item.service_id:
            name = self.directory.service_name(self.tenant_id, item.service_id)
            if name is None:
                raise ServiceNotFoundError(item.service_id)
            return name
        raise MissingDescriptionError()

    @staticmethod
    def _adjustment(value: Decimal | str | int | None, field: str) -> Decimal | None:
        if value is None:
            return None
        return round_money(parse_amount(value, field))
