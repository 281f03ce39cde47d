"""
Typed exception hierarchy for the billing kernel.

Every error is a typed class with a machine-readable ``code`` class attribute
and carries its context as attributes, so callers catch by type and read
structured data instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingError (base)
    |
    +-- BillingValidationError        malformed input, nothing written
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- InvalidCurrencyError
    |   +-- InvalidPaymentMethodError
    |   +-- InvalidSourceTypeError
    |   +-- InvalidItemInputError
    |   +-- MissingDescriptionError
    |   +-- EmptyPatchError
    |   +-- EmptyVoidReasonError
    |   +-- OverpaymentError
    |   +-- EmptyChargeError
    |
    +-- BillingNotFoundError          absent OR outside the caller's tenant
    |   +-- InvoiceNotFoundError
    |   +-- InvoiceItemNotFoundError
    |   +-- VisitNotFoundError
    |   +-- ServiceNotFoundError
    |
    +-- BillingConflictError          state forbids the operation
    |   +-- InvoiceVoidError
    |   +-- InvoiceAlreadyVoidError
    |   +-- ImmutablePaymentError
    |
    +-- InfrastructureError           storage failure, outside the domain taxonomy

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|------------------------------------------
Validation   | INVALID_AMOUNT          | Unparseable, float, too large, negative or zero amount
             | INVALID_QUANTITY        | Quantity not a positive integer
             | INVALID_CURRENCY        | Currency is not a three-letter code
             | INVALID_PAYMENT_METHOD  | Method outside the PaymentMethod enum
             | INVALID_SOURCE_TYPE     | Source type outside ItemSourceType
             | INVALID_ITEM_INPUT      | Line mapping with unknown or missing fields
             | MISSING_DESCRIPTION     | No description and none resolvable
             | EMPTY_PATCH             | Item patch changes nothing
             | EMPTY_VOID_REASON       | Void reason blank
             | OVERPAYMENT             | Payment exceeds amount due (strict mode)
             | EMPTY_CHARGE            | External charge event with no lines
-------------|-------------------------|------------------------------------------
Not found    | INVOICE_NOT_FOUND       | Invoice absent or in another tenant
             | INVOICE_ITEM_NOT_FOUND  | Item absent or in another tenant
             | VISIT_NOT_FOUND         | Visit/patient pair unknown to the tenant
             | SERVICE_NOT_FOUND       | Service catalog entry unknown
-------------|-------------------------|------------------------------------------
Conflict     | INVOICE_VOID            | Mutation or payment on a VOID invoice
             | INVOICE_ALREADY_VOID    | Void requested twice
             | IMMUTABLE_PAYMENT       | Update/delete of a recorded payment
-------------|-------------------------|------------------------------------------
Storage      | INFRASTRUCTURE_ERROR    | Connection loss, constraint failure, ...

A repeated External Charge Poster call for a known source event is NOT an
error: it is answered with the existing invoice id.

Tenant mismatch is always reported as the corresponding *NotFound* error so
that the existence of another tenant's records never leaks.
"""


class BillingError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "BILLING_ERROR"


# Validation


class BillingValidationError(BillingError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(BillingValidationError):
    """Monetary amount is malformed or out of range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidQuantityError(BillingValidationError):
    """Quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, value: object):
        self.value = str(value)
        super().__init__(f"Quantity must be a positive integer, got {value!r}")


class InvalidCurrencyError(BillingValidationError):
    """Currency code is not a three-letter alphabetic code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: object):
        self.currency = str(currency)
        super().__init__(f"Invalid currency code: {currency!r}")


class InvalidPaymentMethodError(BillingValidationError):
    """Payment method is not one of the enumerated methods."""

    code: str = "INVALID_PAYMENT_METHOD"

    def __init__(self, method: object):
        self.method = str(method)
        super().__init__(f"Invalid payment method: {method!r}")


class InvalidSourceTypeError(BillingValidationError):
    """Item source type is not one of the enumerated sources."""

    code: str = "INVALID_SOURCE_TYPE"

    def __init__(self, source_type: object):
        self.source_type = str(source_type)
        super().__init__(f"Invalid item source type: {source_type!r}")


class InvalidItemInputError(BillingValidationError):
    """Line data does not have the fields of the expected input type."""

    code: str = "INVALID_ITEM_INPUT"

    def __init__(self, input_type: str, unknown: tuple[str, ...] = (), missing: tuple[str, ...] = ()):
        self.input_type = input_type
        self.unknown = ", ".join(unknown)
        self.missing = ", ".join(missing)
        problems = []
        if unknown:
            problems.append(f"unknown fields {self.unknown}")
        if missing:
            problems.append(f"missing fields {self.missing}")
        super().__init__(
            f"Invalid {input_type}: " + ("; ".join(problems) or "expected a mapping")
        )


class MissingDescriptionError(BillingValidationError):
    """Item has no description and none could be resolved."""

    code: str = "MISSING_DESCRIPTION"

    def __init__(self):
        super().__init__("Description is required")


class EmptyPatchError(BillingValidationError):
    """Item patch does not carry any field."""

    code: str = "EMPTY_PATCH"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"At least one field must be provided to update item {item_id}")


class EmptyVoidReasonError(BillingValidationError):
    """Void reason is blank."""

    code: str = "EMPTY_VOID_REASON"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"A reason is required to void invoice {invoice_id}")


class OverpaymentError(BillingValidationError):
    """Payment would exceed the amount due while overpayment is disabled."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id: str, amount: str, amount_due: str):
        self.invoice_id = invoice_id
        self.amount = amount
        self.amount_due = amount_due
        super().__init__(
            f"Payment {amount} exceeds amount due {amount_due} on invoice {invoice_id}"
        )


class EmptyChargeError(BillingValidationError):
    """External charge event carries no lines."""

    code: str = "EMPTY_CHARGE"

    def __init__(self, source_event_id: str):
        self.source_event_id = source_event_id
        super().__init__(f"Charge event {source_event_id} has no lines")


# Not found


class BillingNotFoundError(BillingError):
    """Base exception for records that are absent from the caller's tenant."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(BillingNotFoundError):
    """Invoice does not exist in the caller's tenant."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class InvoiceItemNotFoundError(BillingNotFoundError):
    """Invoice item does not exist in the caller's tenant."""

    code: str = "INVOICE_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Invoice item not found: {item_id}")


class VisitNotFoundError(BillingNotFoundError):
    """Visit/patient pair is unknown to the caller's tenant."""

    code: str = "VISIT_NOT_FOUND"

    def __init__(self, visit_id: str, patient_id: str):
        self.visit_id = visit_id
        self.patient_id = patient_id
        super().__init__(f"Visit {visit_id} for patient {patient_id} not found")


class ServiceNotFoundError(BillingNotFoundError):
    """Service catalog entry does not exist."""

    code: str = "SERVICE_NOT_FOUND"

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service not found: {service_id}")


# Conflict


class BillingConflictError(BillingError):
    """Base exception for operations the current invoice state forbids."""

    code: str = "CONFLICT"


class InvoiceVoidError(BillingConflictError):
    """Structural mutation or payment attempted on a VOID invoice."""

    code: str = "INVOICE_VOID"

    def __init__(self, invoice_id: str, operation: str):
        self.invoice_id = invoice_id
        self.operation = operation
        super().__init__(
            f"Invoice {invoice_id} is void and cannot be modified ({operation})"
        )


class InvoiceAlreadyVoidError(BillingConflictError):
    """Void requested for an invoice that is already VOID."""

    code: str = "INVOICE_ALREADY_VOID"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is already void")


class ImmutablePaymentError(BillingConflictError):
    """Recorded payments are never updated or deleted."""

    code: str = "IMMUTABLE_PAYMENT"

    def __init__(self, payment_id: str, operation: str):
        self.payment_id = payment_id
        self.operation = operation
        super().__init__(
            f"Payment {payment_id} is immutable; {operation} rejected "
            "(record a correcting payment instead)"
        )


# Storage


class InfrastructureError(BillingError):
    """
    Storage-layer failure (connection loss, unexpected constraint violation).

    ``retryable`` tells the caller whether a blind retry is safe for the
    operation that failed.
    """

    code: str = "INFRASTRUCTURE_ERROR"

    def __init__(self, operation: str, cause: str, retryable: bool):
        self.operation = operation
        self.cause = cause
        self.retryable = retryable
        super().__init__(f"Storage failure during {operation}: {cause}")
