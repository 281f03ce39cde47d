"""Tests for SequenceService: locked counters, invoice numbers and named locks."""

from datetime import datetime, timezone

from sqlalchemy import func, select

from billing_kernel.models.locks import BillingLock, SequenceCounter
from billing_kernel.services.sequence_service import SequenceService, visit_lock_name


class TestNextValue:
    def test_starts_at_one_and_increments(self, session):
        seq = SequenceService(session)
        assert [seq.next_value("test") for _ in range(3)] == [1, 2, 3]

    def test_counters_are_independent(self, session):
        seq = SequenceService(session)
        seq.next_value("a")
        seq.next_value("a")
        assert seq.next_value("b") == 1

    def test_one_row_per_counter(self, session):
        seq = SequenceService(session)
        for _ in range(5):
            seq.next_value("test")
        row = session.execute(
            select(SequenceCounter).where(SequenceCounter.name == "test")
        ).scalar_one()
        assert row.current_value == 5

    def test_rolled_back_value_is_reissued(self, session):
        seq = SequenceService(session)
        seq.next_value("test")
        savepoint = session.begin_nested()
        assert seq.next_value("test") == 2
        savepoint.rollback()
        assert seq.next_value("test") == 2


class TestInvoiceNumbers:
    def test_format(self, session):
        seq = SequenceService(session)
        moment = datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc)
        assert seq.next_invoice_number("clinic-a", "INV", moment, "Asia/Yangon") == "INV-20240305-0001"

    def test_local_day_boundary(self, session):
        """18:00 UTC is already the next day in Yangon (UTC+06:30)."""
        seq = SequenceService(session)
        moment = datetime(2024, 3, 5, 18, 0, tzinfo=timezone.utc)
        assert seq.next_invoice_number("clinic-a", "INV", moment, "Asia/Yangon") == "INV-20240306-0001"
        assert seq.next_invoice_number("clinic-a", "INV", moment, "UTC") == "INV-20240305-0001"

    def test_daily_counter_restarts(self, session):
        seq = SequenceService(session)
        day1 = datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc)
        day2 = datetime(2024, 3, 6, 3, 0, tzinfo=timezone.utc)
        seq.next_invoice_number("clinic-a", "INV", day1, "Asia/Yangon")
        seq.next_invoice_number("clinic-a", "INV", day1, "Asia/Yangon")
        assert seq.next_invoice_number("clinic-a", "INV", day2, "Asia/Yangon").endswith("-0001")

    def test_counter_scoped_by_tenant_and_prefix(self, session):
        seq = SequenceService(session)
        moment = datetime(2024, 3, 5, 3, 0, tzinfo=timezone.utc)
        seq.next_invoice_number("clinic-a", "INV", moment, "Asia/Yangon")
        assert seq.next_invoice_number("clinic-b", "INV", moment, "Asia/Yangon").endswith("-0001")
        assert seq.next_invoice_number("clinic-a", "RX", moment, "Asia/Yangon") == "RX-20240305-0001"


class TestNamedLocks:
    def test_lock_row_created_once(self, session):
        seq = SequenceService(session)
        name = visit_lock_name("clinic-a", "visit-1")
        seq.acquire_lock(name)
        seq.acquire_lock(name)
        count = session.execute(
            select(func.count(BillingLock.id)).where(BillingLock.name == name)
        ).scalar_one()
        assert count == 1

    def test_lock_name(self):
        assert visit_lock_name("clinic-a", "visit-1") == "visit:clinic-a:visit-1"
