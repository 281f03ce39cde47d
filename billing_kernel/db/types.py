"""
Module: billing_kernel.db.types
Responsibility: Money scale constants, currency validation and the one rounding
    function every monetary write goes through.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is Numeric(MONEY_PRECISION, MONEY_DECIMAL_PLACES) in storage
      and Decimal in memory; floats never carry an amount.
    - round_money() rounds half up and is the only place money is rounded.
"""

from decimal import ROUND_HALF_UP, Decimal

from billing_kernel.exceptions import InvalidCurrencyError

MONEY_PRECISION = 12
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Quantize ``value`` to ``decimal_places`` (two, unless told otherwise).

    Arithmetic elsewhere runs at full precision; rounding happens once, when
    an amount is written to a row or returned to a caller.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


def validate_currency(currency: str) -> str:
    """Uppercase three-letter code, or InvalidCurrencyError.

    Currencies are recorded as given and never converted.
    """
    code = currency.strip().upper() if isinstance(currency, str) else ""
    if len(code) == 3 and code.isascii() and code.isalpha():
        return code
    raise InvalidCurrencyError(currency)
