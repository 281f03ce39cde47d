"""
BillingService -- transaction-owning facade over the billing kernel.

Responsibility:
    The surface other parts of the clinic system call: invoice lifecycle,
    payments, voids, external charge posting and reads.  Each call is one
    unit of work: the facade builds tenant-bound kernel services, runs the
    operation, commits on success and rolls back on any failure.  Errors
    come back as a typed BillingResult instead of exceptions.

Architecture position:
    Services -- stateful orchestration over the kernel.  The kernel MUST
    NOT import from this package.

Invariants enforced:
    - Transaction ownership: only this class calls ``session.commit()`` and
      ``session.rollback()``.
    - Every call is scoped to the tenant passed in; there is no tenant-less
      entry point.
    - Money leaves as Money (Decimal), never float.

Failure modes:
    - BillingValidationError -> VALIDATION, BillingNotFoundError ->
      NOT_FOUND, BillingConflictError -> CONFLICT.
    - SQLAlchemyError -> INFRASTRUCTURE; ``retryable`` is True for reads and
      for the idempotent charge poster, False for other writes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.dtos import (
    ChargeLine,
    InvoiceFilter,
    InvoiceItemView,
    InvoiceView,
    ItemInput,
    ItemPatch,
    PaymentView,
)
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import ItemSourceType, PaymentMethod
from billing_kernel.exceptions import (
    BillingConflictError,
    BillingError,
    BillingNotFoundError,
    BillingValidationError,
    InfrastructureError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_kernel.selectors.invoice_selector import InvoiceSelector
from billing_kernel.services.charge_poster import ChargePoster
from billing_kernel.services.directory import ClinicalDirectory
from billing_kernel.services.invoice_repository import InvoiceRepository
from billing_kernel.services.invoice_service import InvoiceService
from billing_kernel.services.payment_service import PaymentService
from billing_kernel.services.void_service import VoidService

logger = get_logger("services.billing")

T = TypeVar("T")


class BillingResultStatus(str, Enum):
    """Outcome category of a billing call."""

    OK = "ok"
    ALREADY_POSTED = "already_posted"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True)
class BillingResult(Generic[T]):
    """Result of a billing operation."""

    status: BillingResultStatus
    value: T | None = None
    error: BillingError | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (
            BillingResultStatus.OK,
            BillingResultStatus.ALREADY_POSTED,
        )

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None

    @property
    def retryable(self) -> bool:
        return isinstance(self.error, InfrastructureError) and self.error.retryable


@dataclass(frozen=True)
class _Done:
    """Internal: a value plus whether the call was an idempotent replay."""

    value: Any
    already_posted: bool = False


def _status_for(error: BillingError) -> BillingResultStatus:
    if isinstance(error, BillingValidationError):
        return BillingResultStatus.VALIDATION
    if isinstance(error, BillingNotFoundError):
        return BillingResultStatus.NOT_FOUND
    if isinstance(error, BillingConflictError):
        return BillingResultStatus.CONFLICT
    return BillingResultStatus.INFRASTRUCTURE


class BillingService:
    """
    Facade owning the transaction boundary for billing operations.

    Usage:
        with get_session() as session:
            billing = BillingService(session, directory, policy)
            result = billing.create_invoice(
                "clinic-a", "visit-1", "patient-1",
                [ItemInput(quantity=1, unit_price=Decimal("8000.00"),
                           description="Consultation")],
            )
            if result.is_success:
                print(result.value.invoice_no)
    """

    def __init__(
        self,
        session: Session,
        directory: ClinicalDirectory,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._directory = directory
        self._policy = policy or BillingPolicy()
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def _repository(self, tenant_id: str) -> InvoiceRepository:
        return InvoiceRepository(self._session, tenant_id)

    def _run(
        self,
        operation: str,
        tenant_id: str,
        work: Callable[[InvoiceRepository], _Done],
        *,
        retryable: bool = False,
        read_only: bool = False,
        actor_id: UUID | None = None,
        **log_fields: Any,
    ) -> BillingResult:
        repository = self._repository(tenant_id)

        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id, **log_fields):
            logger.info(f"billing_{operation}_started")
            try:
                done = work(repository)
                if read_only:
                    self._session.rollback()
                else:
                    self._session.commit()
            except BillingError as e:
                self._session.rollback()
                logger.warning(
                    f"billing_{operation}_rejected",
                    extra={"error_code": e.code, "detail": str(e)},
                )
                return BillingResult(status=_status_for(e), error=e, message=str(e))
            except SQLAlchemyError as e:
                self._session.rollback()
                logger.error(f"billing_{operation}_storage_failure", exc_info=True)
                error = InfrastructureError(operation, str(e), retryable or read_only)
                return BillingResult(
                    status=BillingResultStatus.INFRASTRUCTURE,
                    error=error,
                    message=str(error),
                )

            status = (
                BillingResultStatus.ALREADY_POSTED
                if done.already_posted
                else BillingResultStatus.OK
            )
            logger.info(
                f"billing_{operation}_committed",
                extra={"status": status.value},
            )
            return BillingResult(status=status, value=done.value)

    def _invoices(self, repository: InvoiceRepository, actor_id: UUID | None) -> InvoiceService:
        return InvoiceService(repository, self._directory, self._policy, self._clock, actor_id)

    # -------------------------------------------------------------------------
    # Invoice lifecycle
    # -------------------------------------------------------------------------

    def create_invoice(
        self,
        tenant_id: str,
        visit_id: str,
        patient_id: str,
        initial_items: Iterable[ItemInput | Mapping] = (),
        *,
        note: str | None = None,
        discount_amt: Decimal | str | int | None = None,
        tax_amt: Decimal | str | int | None = None,
        currency: str | None = None,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceView]:
        def work(repo: InvoiceRepository) -> _Done:
            invoice = self._invoices(repo, actor_id).create_invoice(
                visit_id,
                patient_id,
                initial_items,
                note=note,
                discount_amt=discount_amt,
                tax_amt=tax_amt,
                currency=currency,
            )
            return _Done(invoice.to_dto())

        return self._run("create_invoice", tenant_id, work, actor_id=actor_id)

    def add_item(
        self,
        tenant_id: str,
        invoice_id: UUID | str,
        item: ItemInput | Mapping,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceItemView]:
        def work(repo: InvoiceRepository) -> _Done:
            line = self._invoices(repo, actor_id).add_item(invoice_id, item)
            return _Done(line.to_dto(line.invoice.currency))

        return self._run(
            "add_item", tenant_id, work, actor_id=actor_id, invoice_id=invoice_id
        )

    def update_item(
        self,
        tenant_id: str,
        item_id: UUID | str,
        patch: ItemPatch | Mapping,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceItemView]:
        def work(repo: InvoiceRepository) -> _Done:
            line = self._invoices(repo, actor_id).update_item(item_id, patch)
            return _Done(line.to_dto(line.invoice.currency))

        return self._run("update_item", tenant_id, work, actor_id=actor_id)

    def remove_item(
        self,
        tenant_id: str,
        item_id: UUID | str,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceView]:
        def work(repo: InvoiceRepository) -> _Done:
            return _Done(self._invoices(repo, actor_id).remove_item(item_id).to_dto())

        return self._run("remove_item", tenant_id, work, actor_id=actor_id)

    def update_adjustments(
        self,
        tenant_id: str,
        invoice_id: UUID | str,
        discount_amt: Decimal | str | int | None = None,
        tax_amt: Decimal | str | int | None = None,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceView]:
        def work(repo: InvoiceRepository) -> _Done:
            invoice = self._invoices(repo, actor_id).update_adjustments(
                invoice_id, discount_amt=discount_amt, tax_amt=tax_amt
            )
            return _Done(invoice.to_dto())

        return self._run(
            "update_adjustments", tenant_id, work, actor_id=actor_id, invoice_id=invoice_id
        )

    # -------------------------------------------------------------------------
    # Payments and voids
    # -------------------------------------------------------------------------

    def post_payment(
        self,
        tenant_id: str,
        invoice_id: UUID | str,
        amount: Decimal | str | int,
        method: PaymentMethod | str,
        reference_no: str | None = None,
        note: str | None = None,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[PaymentView]:
        def work(repo: InvoiceRepository) -> _Done:
            service = PaymentService(repo, self._policy, self._clock, actor_id)
            payment = service.post_payment(invoice_id, amount, method, reference_no, note)
            return _Done(payment.to_dto(payment.invoice.currency))

        return self._run(
            "post_payment", tenant_id, work, actor_id=actor_id, invoice_id=invoice_id
        )

    def void_invoice(
        self,
        tenant_id: str,
        invoice_id: UUID | str,
        reason: str,
        *,
        actor_id: UUID | None = None,
    ) -> BillingResult[InvoiceView]:
        def work(repo: InvoiceRepository) -> _Done:
            service = VoidService(repo, self._policy, self._clock, actor_id)
            return _Done(service.void_invoice(invoice_id, reason).to_dto())

        return self._run(
            "void_invoice", tenant_id, work, actor_id=actor_id, invoice_id=invoice_id
        )

    # -------------------------------------------------------------------------
    # External charges
    # -------------------------------------------------------------------------

    def post_external_charges(
        self,
        source_event_id: str,
        visit_id: str,
        patient_id: str,
        tenant_id: str,
        lines: Iterable[ChargeLine | Mapping],
        *,
        source_type: ItemSourceType | str | None = None,
        actor_id: UUID | None = None,
    ) -> BillingResult[UUID]:
        """
        Post an external event's charges exactly once.

        ``value`` is the invoice id; status ALREADY_POSTED marks a replay.
        """

        def work(repo: InvoiceRepository) -> _Done:
            poster = ChargePoster(repo, self._directory, self._policy, self._clock, actor_id)
            outcome = poster.post_external_charges(
                source_event_id, visit_id, patient_id, lines, source_type=source_type
            )
            return _Done(outcome.invoice_id, already_posted=outcome.already_posted)

        return self._run(
            "post_external_charges",
            tenant_id,
            work,
            retryable=True,
            actor_id=actor_id,
            source_event_id=source_event_id,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_invoice(self, tenant_id: str, invoice_id: UUID | str) -> BillingResult[InvoiceView]:
        def work(repo: InvoiceRepository) -> _Done:
            return _Done(InvoiceSelector(repo).get_invoice(invoice_id))

        return self._run("get_invoice", tenant_id, work, read_only=True, invoice_id=invoice_id)

    def list_invoices(
        self,
        tenant_id: str,
        criteria: InvoiceFilter | None = None,
    ) -> BillingResult[list[InvoiceView]]:
        def work(repo: InvoiceRepository) -> _Done:
            return _Done(InvoiceSelector(repo).list_invoices(criteria))

        return self._run("list_invoices", tenant_id, work, read_only=True)

    def list_payments(
        self, tenant_id: str, invoice_id: UUID | str
    ) -> BillingResult[list[PaymentView]]:
        def work(repo: InvoiceRepository) -> _Done:
            return _Done(InvoiceSelector(repo).list_payments(invoice_id))

        return self._run("list_payments", tenant_id, work, read_only=True, invoice_id=invoice_id)
