"""Tests for invoice voiding (services/void_service.py)."""

from decimal import Decimal

import pytest

from billing_kernel.domain.dtos import ItemInput
from billing_kernel.domain.status import InvoiceStatus
from billing_kernel.exceptions import (
    EmptyVoidReasonError,
    InvoiceAlreadyVoidError,
    InvoiceNotFoundError,
    InvoiceVoidError,
)


@pytest.fixture
def invoice(invoice_service, consultation):
    return invoice_service.create_invoice("visit-1", "patient-1", [consultation])


class TestVoidInvoice:
    def test_voids_pending_invoice(self, void_service, invoice, deterministic_clock):
        voided = void_service.void_invoice(invoice.id, "  patient left before consultation ")

        assert voided.status == InvoiceStatus.VOID.value
        assert voided.void_reason == "patient left before consultation"
        assert voided.voided_at is not None
        # Totals and balance stay as they were for the audit trail
        assert voided.grand_total == Decimal("8000.00")
        assert voided.amount_due == Decimal("8000.00")

    def test_voids_partially_paid_invoice(self, void_service, payment_service, invoice):
        payment_service.post_payment(invoice.id, "3000", "CASH")
        void_service.void_invoice(invoice.id, "billing error")
        assert invoice.status == InvoiceStatus.VOID.value
        assert invoice.amount_paid == Decimal("3000.00")
        # amount_due = max(grand_total - amount_paid, 0) holds after a void too
        assert invoice.amount_due == invoice.grand_total - invoice.amount_paid
        assert invoice.amount_due == Decimal("5000.00")

    def test_overpaid_invoice_keeps_zero_balance_when_voided(
        self, void_service, payment_service, invoice
    ):
        payment_service.post_payment(invoice.id, "9000", "CASH")
        void_service.void_invoice(invoice.id, "duplicate visit")
        assert invoice.amount_due == Decimal("0.00")
        assert str(invoice.amount_due) == "0.00"

    def test_voids_empty_draft(self, void_service, invoice_service):
        draft = invoice_service.create_invoice("visit-2", "patient-2")
        void_service.void_invoice(draft.id, "opened by mistake")
        assert draft.status == InvoiceStatus.VOID.value

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_blank_reason_rejected(self, void_service, invoice, reason):
        with pytest.raises(EmptyVoidReasonError):
            void_service.void_invoice(invoice.id, reason)
        assert invoice.status == InvoiceStatus.PENDING.value

    def test_double_void_conflicts(self, void_service, invoice):
        void_service.void_invoice(invoice.id, "first")
        with pytest.raises(InvoiceAlreadyVoidError):
            void_service.void_invoice(invoice.id, "second")
        assert invoice.void_reason == "first"

    def test_unknown_invoice(self, void_service):
        with pytest.raises(InvoiceNotFoundError):
            void_service.void_invoice("0b9d8f7e-1111-4c2c-8e3e-123456789abc", "x")


class TestVoidIsTerminal:
    """After voiding, every structural mutation is refused."""

    @pytest.fixture
    def voided(self, void_service, invoice):
        void_service.void_invoice(invoice.id, "duplicate")
        return invoice

    def test_add_item(self, invoice_service, voided):
        with pytest.raises(InvoiceVoidError):
            invoice_service.add_item(
                voided.id, ItemInput(quantity=1, unit_price="1", description="x")
            )

    def test_update_item(self, invoice_service, voided):
        with pytest.raises(InvoiceVoidError):
            invoice_service.update_item(voided.items[0].id, {"quantity": 2})

    def test_remove_item(self, invoice_service, voided):
        with pytest.raises(InvoiceVoidError):
            invoice_service.remove_item(voided.items[0].id)
        assert len(voided.items) == 1

    def test_update_adjustments(self, invoice_service, voided):
        with pytest.raises(InvoiceVoidError):
            invoice_service.update_adjustments(voided.id, discount_amt="10")

    def test_payment(self, payment_service, voided):
        with pytest.raises(InvoiceVoidError):
            payment_service.post_payment(voided.id, "10", "CASH")
