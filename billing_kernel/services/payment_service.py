"""
PaymentService -- the payment ledger.

Responsibility:
    Records payments against invoices and keeps amount_paid, amount_due and
    status consistent with them.  Payments are settled facts (cash at the
    desk, a card slip, a wallet transfer); nothing here talks to a gateway.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the BillingService
    facade.

Invariants enforced:
    - amount > 0, method in PaymentMethod.
    - No payment on a VOID invoice (InvoiceVoidError).
    - amount_paid is incremented by the database
      (``amount_paid = amount_paid + :amount``) while the invoice row is
      locked, so two concurrent payments both land.
    - Payment rows are never updated or deleted (ORM listeners on
      PaymentModel).

Failure modes:
    - OverpaymentError when the policy forbids overpayment and the amount
      exceeds amount_due.
    - InvalidAmountError when the amount, or the running amount_paid, would
      not fit a money column.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from billing_kernel.db.types import round_money
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.dtos import coerce_payment_method
from billing_kernel.domain.policy import BillingPolicy
from billing_kernel.domain.status import PaymentMethod
from billing_kernel.domain.values import ensure_storable, parse_amount
from billing_kernel.exceptions import InvalidAmountError, OverpaymentError
from billing_kernel.logging_config import get_logger
from billing_kernel.models.invoice import PaymentModel
from billing_kernel.services.base import BaseService
from billing_kernel.services.invoice_repository import InvoiceRepository

logger = get_logger("services.payment")


class PaymentService(BaseService):
    """Append-only payment recording for one tenant."""

    def __init__(
        self,
        repository: InvoiceRepository,
        policy: BillingPolicy | None = None,
        clock: Clock | None = None,
        actor_id: UUID | None = None,
    ):
        super().__init__(repository, policy, clock)
        self.actor_id = actor_id

    def post_payment(
        self,
        invoice_id: UUID | str,
        amount: Decimal | str | int,
        method: PaymentMethod | str,
        reference_no: str | None = None,
        note: str | None = None,
    ) -> PaymentModel:
        """
        Record a payment and update the invoice balance and status.

        Preconditions:
            - The invoice exists in the tenant and is not VOID.
            - ``amount`` is a positive decimal.

        Postconditions:
            - amount_paid grew by exactly ``amount``.
            - amount_due = max(grand_total - amount_paid, 0).
            - status is PARTIALLY_PAID or PAID.

        Raises:
            InvalidAmountError, InvalidPaymentMethodError, OverpaymentError,
            InvoiceNotFoundError, InvoiceVoidError.
        """
        value = round_money(parse_amount(amount, "amount", allow_zero=False))
        if value == 0:
            raise InvalidAmountError("amount", amount, "rounds to zero")
        payment_method = coerce_payment_method(method)

        logger.info(
            "payment_post_started",
            extra={
                "invoice_id": str(invoice_id),
                "amount": str(value),
                "method": payment_method.value,
            },
        )

        with self.atomic():
            invoice = self.repository.get_invoice(invoice_id, for_update=True)
            self.ensure_not_void(invoice, "post_payment")
            ensure_storable(invoice.amount_paid + value, "amount_paid")

            if not self.policy.allow_overpayment and value > invoice.amount_due:
                logger.warning(
                    "payment_rejected_overpayment",
                    extra={
                        "invoice_id": str(invoice.id),
                        "amount": str(value),
                        "amount_due": str(invoice.amount_due),
                    },
                )
                raise OverpaymentError(str(invoice.id), str(value), str(invoice.amount_due))

            payment = PaymentModel(
                amount=value,
                method=payment_method.value,
                reference_no=reference_no,
                note=note,
                paid_at=self.clock.now(),
                created_by_id=self.actor_id,
                updated_by_id=self.actor_id,
            )
            self.repository.add_payment(invoice, payment)
            self.repository.increment_amount_paid(invoice.id, value)
            self.repository.refresh_invoice(invoice)
            self.recalculate(invoice, "post_payment")

        logger.info(
            "payment_posted",
            extra={
                "invoice_id": str(invoice.id),
                "payment_id": str(payment.id),
                "amount_paid": str(invoice.amount_paid),
                "amount_due": str(invoice.amount_due),
                "status": invoice.status,
            },
        )
        return payment

    def list_payments(self, invoice_id: UUID | str) -> list[PaymentModel]:
        """Payments of an invoice, oldest first."""
        return self.repository.list_payments(invoice_id)
