"""
End-to-end billing flows through the BillingService facade.

The facade owns commit/rollback; in these tests ``commit()`` releases a
savepoint of the per-test transaction (see conftest.session).
"""

from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy.exc import OperationalError

from billing_kernel.domain.dtos import ChargeLine, InvoiceFilter, ItemInput
from billing_kernel.domain.status import InvoiceStatus
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import InfrastructureError
from billing_kernel.services.invoice_repository import InvoiceRepository
from billing_services import BillingResultStatus


def mmk(amount: str) -> Money:
    return Money(Decimal(amount), "MMK")


@pytest.fixture
def consultation_invoice(billing, consultation):
    result = billing.create_invoice("clinic-a", "visit-1", "patient-1", [consultation])
    assert result.is_success
    return result.value


class TestSettlementScenario:
    def test_create_pay_partially_then_fully(self, billing, consultation):
        created = billing.create_invoice("clinic-a", "visit-1", "patient-1", [consultation])
        assert created.status == BillingResultStatus.OK
        invoice = created.value
        assert invoice.sub_total == invoice.grand_total == invoice.amount_due == mmk("8000.00")
        assert invoice.status is InvoiceStatus.PENDING

        first = billing.post_payment("clinic-a", invoice.id, Decimal("3000.00"), "CASH")
        assert first.is_success
        after_first = billing.get_invoice("clinic-a", invoice.id).value
        assert after_first.amount_paid == mmk("3000.00")
        assert after_first.amount_due == mmk("5000.00")
        assert after_first.status is InvoiceStatus.PARTIALLY_PAID

        billing.post_payment("clinic-a", invoice.id, Decimal("5000.00"), "CASH")
        settled = billing.get_invoice("clinic-a", invoice.id).value
        assert settled.amount_paid == mmk("8000.00")
        assert settled.amount_due == mmk("0.00")
        assert settled.status is InvoiceStatus.PAID
        assert len(settled.payments) == 2


class TestVoidScenario:
    def test_void_blocks_items_and_payments(self, billing, consultation_invoice):
        second = billing.create_invoice("clinic-a", "visit-1", "patient-1").value

        voided = billing.void_invoice("clinic-a", second.id, "Test void")
        assert voided.is_success
        assert voided.value.status is InvoiceStatus.VOID
        assert voided.value.void_reason == "Test void"

        added = billing.add_item(
            "clinic-a", second.id, ItemInput(quantity=1, unit_price="1", description="x")
        )
        paid = billing.post_payment("clinic-a", second.id, "1", "CASH")

        assert added.status == BillingResultStatus.CONFLICT
        assert added.error_code == "INVOICE_VOID"
        assert paid.status == BillingResultStatus.CONFLICT

    def test_second_void_conflicts(self, billing, consultation_invoice):
        billing.void_invoice("clinic-a", consultation_invoice.id, "first")
        again = billing.void_invoice("clinic-a", consultation_invoice.id, "second")
        assert again.status == BillingResultStatus.CONFLICT
        assert again.error_code == "INVOICE_ALREADY_VOID"


class TestExternalChargeScenario:
    def test_duplicate_dispense_posts_once(self, billing):
        lines = [ChargeLine(quantity=5, unit_price=Decimal("0.00"), name="Vitamin B complex")]

        first = billing.post_external_charges("disp-100", "visit-1", "patient-1", "clinic-a", lines)
        second = billing.post_external_charges("disp-100", "visit-1", "patient-1", "clinic-a", lines)

        assert first.status == BillingResultStatus.OK
        assert second.status == BillingResultStatus.ALREADY_POSTED
        assert second.is_success
        assert isinstance(first.value, UUID)
        assert first.value == second.value

        invoice = billing.get_invoice("clinic-a", first.value).value
        assert len(invoice.items) == 1
        assert invoice.items[0].description == "Vitamin B complex x 5"
        assert invoice.status is InvoiceStatus.PENDING
        assert invoice.grand_total == mmk("0.00")

    def test_charges_land_on_consultation_invoice(self, billing, consultation_invoice):
        result = billing.post_external_charges(
            "disp-1", "visit-1", "patient-1", "clinic-a",
            [{"quantity": 2, "unit_price": "500", "name": "Cetirizine"}],
        )
        assert result.value == consultation_invoice.id
        invoice = billing.get_invoice("clinic-a", consultation_invoice.id).value
        assert invoice.grand_total == mmk("9000.00")


class TestItemEditing:
    def test_add_update_remove(self, billing, consultation_invoice):
        added = billing.add_item(
            "clinic-a",
            consultation_invoice.id,
            {"quantity": 2, "unit_price": "1200", "description": "Dressing"},
        )
        assert added.is_success
        assert added.value.line_total == mmk("2400.00")

        updated = billing.update_item("clinic-a", added.value.id, {"quantity": 1})
        assert updated.value.line_total == mmk("1200.00")

        removed = billing.remove_item("clinic-a", added.value.id)
        assert removed.value.grand_total == mmk("8000.00")
        assert len(removed.value.items) == 1

    def test_adjustments(self, billing, consultation_invoice):
        result = billing.update_adjustments(
            "clinic-a", consultation_invoice.id, discount_amt="800", tax_amt="400"
        )
        assert result.value.grand_total == mmk("7600.00")


class TestResultMapping:
    def test_validation_rolls_back(self, billing, consultation_invoice):
        result = billing.post_payment("clinic-a", consultation_invoice.id, "-1", "CASH")
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_AMOUNT"
        assert result.value is None
        assert result.message
        assert not result.retryable

        invoice = billing.get_invoice("clinic-a", consultation_invoice.id).value
        assert invoice.payments == ()
        assert invoice.amount_paid == mmk("0")

    def test_not_found(self, billing):
        result = billing.get_invoice("clinic-a", "5b1f6d3c-0000-4000-8000-000000000000")
        assert result.status == BillingResultStatus.NOT_FOUND

    def test_other_tenant_reads_as_not_found(self, billing, consultation_invoice):
        result = billing.get_invoice("clinic-b", consultation_invoice.id)
        assert result.status == BillingResultStatus.NOT_FOUND

    def test_unknown_visit(self, billing):
        result = billing.create_invoice("clinic-a", "visit-404", "patient-1")
        assert result.status == BillingResultStatus.NOT_FOUND
        assert result.error_code == "VISIT_NOT_FOUND"

    def test_failed_create_leaves_nothing(self, billing):
        result = billing.create_invoice(
            "clinic-a", "visit-1", "patient-1",
            [{"quantity": 1, "unit_price": "5", "source_type": "SERVICE", "service_id": "svc-x"}],
        )
        assert result.status == BillingResultStatus.NOT_FOUND
        assert billing.list_invoices("clinic-a").value == []

    def test_list_invoices_and_payments(self, billing, consultation_invoice):
        billing.post_payment("clinic-a", consultation_invoice.id, "100", "CASH")
        listed = billing.list_invoices(
            "clinic-a", InvoiceFilter.from_status_names("PARTIALLY_PAID")
        )
        assert [v.id for v in listed.value] == [consultation_invoice.id]
        payments = billing.list_payments("clinic-a", consultation_invoice.id)
        assert [p.amount for p in payments.value] == [mmk("100.00")]


def _storage_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("connection refused"))


class TestMalformedInput:
    """Bad caller data always comes back as a VALIDATION result, never an exception."""

    def test_oversized_payment(self, billing, consultation_invoice):
        result = billing.post_payment("clinic-a", consultation_invoice.id, "1" * 30, "CASH")
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_AMOUNT"
        invoice = billing.get_invoice("clinic-a", consultation_invoice.id).value
        assert invoice.amount_paid == mmk("0.00")

    def test_line_total_beyond_column_range(self, billing):
        result = billing.create_invoice(
            "clinic-a", "visit-1", "patient-1",
            [{"quantity": 1, "unit_price": "99999999999999.00", "description": "Surgery"}],
        )
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_AMOUNT"
        assert billing.list_invoices("clinic-a").value == []

    def test_misspelt_item_field(self, billing, consultation_invoice):
        result = billing.add_item(
            "clinic-a", consultation_invoice.id,
            {"quantity": 1, "unitPrice": "10", "description": "Dressing"},
        )
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_ITEM_INPUT"
        assert "unitPrice" in result.message
        invoice = billing.get_invoice("clinic-a", consultation_invoice.id).value
        assert len(invoice.items) == 1

    def test_item_without_quantity(self, billing):
        result = billing.create_invoice(
            "clinic-a", "visit-1", "patient-1", [{"unit_price": "10", "description": "Dressing"}]
        )
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_ITEM_INPUT"

    def test_unknown_patch_field(self, billing, consultation_invoice):
        item_id = consultation_invoice.items[0].id
        result = billing.update_item("clinic-a", item_id, {"price": "10"})
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_ITEM_INPUT"

    def test_malformed_charge_line(self, billing):
        result = billing.post_external_charges(
            "disp-7", "visit-1", "patient-1", "clinic-a",
            [{"qty": 2, "unit_price": "500", "name": "Cetirizine"}],
        )
        assert result.status == BillingResultStatus.VALIDATION
        assert result.error_code == "INVALID_ITEM_INPUT"
        assert billing.list_invoices("clinic-a").value == []


class TestInfrastructureFailures:
    def test_write_failure_not_retryable(self, billing, consultation_invoice, monkeypatch):
        monkeypatch.setattr(InvoiceRepository, "get_invoice", _storage_down)
        result = billing.post_payment("clinic-a", consultation_invoice.id, "10", "CASH")
        assert result.status == BillingResultStatus.INFRASTRUCTURE
        assert isinstance(result.error, InfrastructureError)
        assert result.error_code == "INFRASTRUCTURE_ERROR"
        assert result.retryable is False

    def test_read_failure_retryable(self, billing, consultation_invoice, monkeypatch):
        monkeypatch.setattr(InvoiceRepository, "get_invoice", _storage_down)
        result = billing.get_invoice("clinic-a", consultation_invoice.id)
        assert result.status == BillingResultStatus.INFRASTRUCTURE
        assert result.retryable is True

    def test_charge_posting_failure_retryable(self, billing, monkeypatch):
        monkeypatch.setattr(InvoiceRepository, "find_posting", _storage_down)
        result = billing.post_external_charges(
            "disp-1", "visit-1", "patient-1", "clinic-a",
            [ChargeLine(quantity=1, unit_price="1", name="x")],
        )
        assert result.status == BillingResultStatus.INFRASTRUCTURE
        assert result.retryable is True


class TestLogging:
    def test_operation_lifecycle_logged(self, billing, consultation, captured_logs):
        billing.create_invoice("clinic-a", "visit-1", "patient-1", [consultation])

        records = captured_logs()
        messages = [r["message"] for r in records]
        assert "billing_create_invoice_started" in messages
        assert "invoice_created" in messages
        assert "billing_create_invoice_committed" in messages
        created = next(r for r in records if r["message"] == "invoice_created")
        assert created["tenant_id"] == "clinic-a"

    def test_rejection_logged(self, billing, captured_logs):
        billing.void_invoice("clinic-a", "5b1f6d3c-0000-4000-8000-000000000000", "x")
        rejected = [r for r in captured_logs() if r["message"] == "billing_void_invoice_rejected"]
        assert rejected
        assert rejected[0]["error_code"] == "INVOICE_NOT_FOUND"
        assert rejected[0]["level"] == "WARNING"
