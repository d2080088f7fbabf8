"""Fixed-precision money helpers shared by every receipt component.

Amounts are ``Decimal`` values with two decimal places. Floats coming from
JSON are converted through their shortest ``repr`` so that binary
representation error does not leak into rounding: ``round2(1.005)`` is
``Decimal("1.01")`` and ``round2(0.1 + 0.2)`` is ``Decimal("0.30")``.
"""

import re
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest magnitude accepted from untrusted input; anything bigger is a misread.
MAX_AMOUNT = Decimal("1000000000")

MoneyLike = Decimal | int | float | str

_CURRENCY_SYMBOLS = {
    "USD": "$",
    "AUD": "A$",
    "CAD": "CA$",
    "NZD": "NZ$",
    "HKD": "HK$",
    "SGD": "SGD ",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}
_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def to_decimal(value: MoneyLike) -> Decimal:
    """Convert a numeric value to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a money amount")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"unsupported money type: {type(value).__name__}")


def round2(value: MoneyLike) -> Decimal:
    """Round to two decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def add_money(total: MoneyLike, amount: MoneyLike) -> Decimal:
    """Add and round immediately; running sums are rounded after every addition."""
    return round2(to_decimal(total) + to_decimal(amount))


def sum_money(values: Iterable[MoneyLike]) -> Decimal:
    total = ZERO
    for value in values:
        total = add_money(total, value)
    return total


def is_sane_amount(amount: Decimal) -> bool:
    return amount.is_finite() and abs(amount) < MAX_AMOUNT


def coerce_amount(value: object) -> Decimal | None:
    """
    Coerce an untrusted number or string to a finite Decimal.

    Strings keep only digits, dots and minus signs ("$4.50" -> 4.50).
    Returns None for anything that does not parse to a finite value below
    ``MAX_AMOUNT`` in magnitude.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (Decimal, int, float)):
        amount = to_decimal(value)
    elif isinstance(value, str):
        cleaned = re.sub(r"[^0-9.\-]", "", value)
        if not cleaned:
            return None
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not is_sane_amount(amount):
        return None
    return amount


def coerce_number(text: str, fallback: MoneyLike = 0) -> Decimal:
    """Parse a hand-typed price, keeping digits and dots only."""
    cleaned = re.sub(r"[^0-9.]", "", text or "")
    match = re.match(r"\d+(?:\.\d*)?|\.\d+", cleaned)
    if not match:
        return to_decimal(fallback)
    value = Decimal(match.group(0))
    return value if value < MAX_AMOUNT else to_decimal(fallback)


def format_currency(amount: MoneyLike | None, currency: str = "USD") -> str:
    """
    Format an amount as a currency string, e.g. ``$1,234.50``.

    Unknown or malformed currency codes fall back to a plain ``$X.XX`` string.
    """
    try:
        value = to_decimal(amount) if amount is not None else ZERO
    except (TypeError, InvalidOperation):
        value = ZERO
    if not value.is_finite():
        value = ZERO
    value = round2(value)

    code = (currency or "").strip().upper()
    symbol = _CURRENCY_SYMBOLS.get(code) if _CURRENCY_CODE.match(code) else None
    if symbol is None:
        return f"${value:.2f}"

    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
