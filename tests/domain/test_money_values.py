"""Tests for Money and parse_amount (billing_kernel/domain/values.py)."""

from decimal import Decimal

import pytest

from billing_kernel.domain.values import MONEY_LIMIT, Money, ensure_storable, parse_amount
from billing_kernel.exceptions import InvalidAmountError, InvalidCurrencyError


class TestParseAmount:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("8000", Decimal("8000")),
            ("8000.00", Decimal("8000.00")),
            (" 12.5 ", Decimal("12.5")),
            (0, Decimal("0")),
            (Decimal("0.01"), Decimal("0.01")),
        ],
    )
    def test_accepts_decimal_inputs(self, raw, expected):
        assert parse_amount(raw) == expected

    def test_rejects_float(self):
        with pytest.raises(InvalidAmountError) as exc:
            parse_amount(10.5)
        assert exc.value.code == "INVALID_AMOUNT"

    def test_rejects_bool(self):
        with pytest.raises(InvalidAmountError):
            parse_amount(True)

    @pytest.mark.parametrize("raw", ["", "abc", "1e5", "1,000", "12.", ".5", "NaN"])
    def test_rejects_malformed_strings(self, raw):
        with pytest.raises(InvalidAmountError):
            parse_amount(raw)

    def test_rejects_non_finite_decimal(self):
        with pytest.raises(InvalidAmountError):
            parse_amount(Decimal("Infinity"))

    def test_negative_rejected_unless_allowed(self):
        with pytest.raises(InvalidAmountError):
            parse_amount("-1")
        assert parse_amount("-1", allow_negative=True) == Decimal("-1")

    def test_zero_rejected_when_disallowed(self):
        with pytest.raises(InvalidAmountError) as exc:
            parse_amount("0.00", "amount", allow_zero=False)
        assert exc.value.field == "amount"

    @pytest.mark.parametrize(
        "raw",
        ["1" * 30, "10000000000", "9999999999.995", Decimal("1E+40"), 10**12],
    )
    def test_rejects_amounts_beyond_column_range(self, raw):
        with pytest.raises(InvalidAmountError) as exc:
            parse_amount(raw, "amount")
        assert exc.value.reason == "too large"
        assert exc.value.code == "INVALID_AMOUNT"

    def test_largest_storable_amount_accepted(self):
        assert parse_amount("9999999999.99") == Decimal("9999999999.99")


class TestEnsureStorable:
    def test_limit_is_ten_integer_digits(self):
        assert MONEY_LIMIT == Decimal("10000000000")

    def test_reports_field(self):
        with pytest.raises(InvalidAmountError) as exc:
            ensure_storable(Decimal("99999999999999.00"), "line_total")
        assert exc.value.field == "line_total"

    def test_negative_bound_is_symmetric(self):
        with pytest.raises(InvalidAmountError):
            ensure_storable(Decimal("-10000000000"), "amount")


class TestMoney:
    def test_currency_normalized(self):
        assert Money.of("1.00", "mmk").currency == "MMK"

    def test_invalid_currency(self):
        with pytest.raises(InvalidCurrencyError):
            Money.of("1.00", "KYAT")

    def test_float_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            Money(amount=1.5, currency="MMK")

    def test_arithmetic_same_currency(self):
        a = Money.of("10.25", "MMK")
        b = Money.of("0.75", "MMK")
        assert (a + b).amount == Decimal("11.00")
        assert (b - a).amount == Decimal("-9.50")

    def test_mixed_currency_rejected(self):
        with pytest.raises(ValueError):
            Money.of("1", "MMK") + Money.of("1", "USD")
        with pytest.raises(ValueError):
            Money.of("1", "MMK") < Money.of("1", "USD")

    def test_comparisons(self):
        assert Money.of("1", "MMK") < Money.of("2", "MMK")
        assert Money.of("2", "MMK") >= Money.of("2.00", "MMK")

    def test_str(self):
        assert str(Money.of("8000.00", "MMK")) == "8000.00 MMK"
