"""Read-only selectors returning DTOs."""

from billing_kernel.selectors.invoice_selector import InvoiceSelector

__all__ = ["InvoiceSelector"]
