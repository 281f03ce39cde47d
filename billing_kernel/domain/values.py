"""
Values -- the Money value object and the amount parser.

Responsibility:
    ``parse_amount`` is where caller input (Decimal, int, plain decimal
    strings) becomes a Decimal; ``Money`` ties a Decimal to the invoice's
    currency for everything the kernel hands back.

Architecture position:
    Kernel > Domain -- pure, no I/O.

Invariants enforced:
    - A float or bool never becomes an amount; it is rejected, not coerced.
    - Money in two currencies cannot be added, subtracted or ordered.
    - Amounts that would not fit a Numeric(12, 2) column after rounding are
      rejected before they reach arithmetic or storage.

Failure modes:
    - InvalidAmountError: malformed, float, non-finite or too large input,
      and negative or zero input where disallowed.
    - InvalidCurrencyError: currency is not three letters.
    - ValueError: mixed-currency arithmetic or comparison.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import total_ordering

from billing_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    MONEY_PRECISION,
    round_money,
    validate_currency,
)
from billing_kernel.exceptions import InvalidAmountError

# Digits with an optional fractional part: no exponent, grouping or bare dot
_PLAIN_DECIMAL = re.compile(r"-?\d+(?:\.\d+)?")

FLOAT_REJECTED = "binary floating point is not accepted"

# Smallest magnitude a Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES) column cannot hold
MONEY_LIMIT = Decimal(10) ** (MONEY_PRECISION - MONEY_DECIMAL_PLACES)


def _to_decimal(value: object, field: str) -> Decimal:
    if isinstance(value, (bool, float)):
        raise InvalidAmountError(field, value, FLOAT_REJECTED)
    if isinstance(value, Decimal):
        if value.is_finite():
            return value
        raise InvalidAmountError(field, value, "must be finite")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        if _PLAIN_DECIMAL.fullmatch(value.strip()):
            return Decimal(value.strip())
        raise InvalidAmountError(field, value, "not a decimal number")
    raise InvalidAmountError(field, value, f"unsupported type {type(value).__name__}")


def ensure_storable(amount: Decimal, field: str, value: object = None) -> Decimal:
    """
    ``amount`` unchanged if it fits a money column once rounded.

    ``value`` is what the caller originally supplied, for the error message.
    """
    if abs(amount) >= MONEY_LIMIT or abs(round_money(amount)) >= MONEY_LIMIT:
        raise InvalidAmountError(field, amount if value is None else value, "too large")
    return amount


def parse_amount(
    value: Decimal | str | int,
    field: str = "amount",
    *,
    allow_zero: bool = True,
    allow_negative: bool = False,
) -> Decimal:
    """
    Decimal for a caller-supplied amount, unrounded.

    ``"8000"``, ``"8000.00"``, ``8000`` and ``Decimal("8000")`` are all
    fine; ``8000.0`` is not, and neither is anything with more integer
    digits than a money column holds.  ``field`` names the input in the
    raised InvalidAmountError.
    """
    amount = ensure_storable(_to_decimal(value, field), field, value)
    if amount < 0 and not allow_negative:
        raise InvalidAmountError(field, value, "must not be negative")
    if amount == 0 and not allow_zero:
        raise InvalidAmountError(field, value, "must be greater than zero")
    return amount


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """
    An amount in one currency.

    The currency travels with the amount only so that figures from different
    invoices cannot be combined by mistake; nothing is ever converted.
    Equality is exact on both fields; ordering refuses mixed currencies.
    """

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        amount = self.amount
        if isinstance(amount, (bool, float)):
            raise InvalidAmountError("amount", amount, FLOAT_REJECTED)
        if not isinstance(amount, Decimal):
            try:
                amount = Decimal(str(amount))
            except (InvalidOperation, ValueError) as e:
                raise InvalidAmountError("amount", self.amount, "not a decimal number") from e
            object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", validate_currency(self.currency))

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str) -> Money:
        """Parse ``amount`` like caller input; negatives are allowed."""
        return cls(parse_amount(amount, allow_negative=True), currency)

    def _other_amount(self, other: Money, verb: str) -> Decimal:
        if other.currency != self.currency:
            raise ValueError(
                f"cannot {verb} {self.currency} and {other.currency} amounts"
            )
        return other.amount

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + self._other_amount(other, "add"), self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - self._other_amount(other, "subtract"), self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._other_amount(other, "compare")

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"
