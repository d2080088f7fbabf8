from decimal import Decimal

import pytest

from receiptsplit.receipt.money import (
    add_money,
    coerce_amount,
    coerce_number,
    format_currency,
    round2,
    sum_money,
    to_decimal,
)


def test_round2_handles_binary_float_noise() -> None:
    assert round2(1.005) == Decimal("1.01")
    assert round2(2.675) == Decimal("2.68")
    assert round2(0.1 + 0.2) == Decimal("0.30")


def test_round2_rounds_half_away_from_zero_for_negatives() -> None:
    assert round2(-1.005) == Decimal("-1.01")
    assert round2("-2.345") == Decimal("-2.35")


def test_round2_is_idempotent() -> None:
    for value in (Decimal("3.333"), 19.999, "0.125", 7):
        once = round2(value)
        assert round2(once) == once


def test_to_decimal_rejects_bool() -> None:
    with pytest.raises(TypeError):
        to_decimal(True)


def test_running_sums_round_after_every_addition() -> None:
    assert add_money(Decimal("0.10"), 0.2) == Decimal("0.30")
    assert sum_money([0.1, 0.1, 0.1]) == Decimal("0.30")
    assert sum_money([]) == Decimal("0.00")


def test_coerce_amount_accepts_strings_and_rejects_garbage() -> None:
    assert coerce_amount("$4.50") == Decimal("4.50")
    assert coerce_amount(12) == Decimal("12")
    assert coerce_amount("abc") is None
    assert coerce_amount(float("nan")) is None
    assert coerce_amount(None) is None
    assert coerce_amount(True) is None
    assert coerce_amount(["4.50"]) is None


def test_coerce_number_keeps_leading_numeric_part() -> None:
    assert coerce_number("$12.5x") == Decimal("12.5")
    assert coerce_number("", 3) == Decimal("3")
    assert coerce_number("free", 0) == Decimal("0")


def test_format_currency() -> None:
    assert format_currency(1234.5) == "$1,234.50"
    assert format_currency(-1234.5) == "-$1,234.50"
    assert format_currency(-3, "AUD") == "-A$3.00"
    assert format_currency(Decimal("9.999"), "gbp") == "£10.00"
    assert format_currency(None) == "$0.00"


def test_format_currency_falls_back_for_unknown_codes() -> None:
    assert format_currency(5, "XYZ") == "$5.00"
    assert format_currency(5, "not-a-code") == "$5.00"


def test_coerce_amount_rejects_amounts_too_large_to_be_prices() -> None:
    assert coerce_amount(1e30) is None
    assert coerce_amount(10**400) is None
    assert coerce_amount("9" * 40) is None
    assert coerce_amount(-1e30) is None
    assert coerce_amount(999_999_999.99) == Decimal("999999999.99")
