"""Validate untrusted structured extraction output and build a canonical Receipt.

Nothing in the extraction response is trusted: every field may be missing,
null, a string, or a number. Rows that cannot be made sense of are dropped;
suspicious totals become warnings on a still-returned receipt.
"""

import re
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from receiptsplit.domain.receipt import ITEM_CATEGORIES, RawLineItem, Receipt

from .line_items import new_line_item_id, normalize_line_items
from .money import ZERO, coerce_amount, format_currency, round2, sum_money

MIN_EXPLICIT_QUANTITY = 2
MAX_EXPLICIT_QUANTITY = 99

# Item sum / expected subtotal ratio bands
SEVERE_RATIO_BAND = (Decimal("0.4"), Decimal("2.5"))
MINOR_RATIO_BAND = (Decimal("0.75"), Decimal("1.25"))

OVERPRICED_ITEM_FACTOR = Decimal("1.05")
HIGH_TOTAL_CEILING = Decimal("10000")

ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
CLOCK_TIME = re.compile(r"(\d{1,2}):(\d{2})")
TRAILING_LEADERS = re.compile(r"[.\-_]{3,}$")


def clean_item_name(raw: object) -> str:
    """Trim, drop trailing dot leaders and collapse whitespace runs."""
    if not isinstance(raw, str):
        return ""
    name = TRAILING_LEADERS.sub("", raw.strip())
    name = re.sub(r"\s{2,}", " ", name)
    return name.strip()


def sanitize_quantity(raw: object) -> int | None:
    """Return an explicit multi-unit quantity, or None when not clearly one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        cleaned = re.sub(r"[^0-9.]", "", raw)
        if not cleaned:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return None
    elif isinstance(raw, int):
        return raw if MIN_EXPLICIT_QUANTITY <= raw <= MAX_EXPLICIT_QUANTITY else None
    elif isinstance(raw, (float, Decimal)):
        try:
            value = float(raw)
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if not value.is_integer():
        return None
    quantity = int(value)
    if quantity < MIN_EXPLICIT_QUANTITY or quantity > MAX_EXPLICIT_QUANTITY:
        return None
    return quantity


def sanitize_category(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    category = raw.strip().lower()
    return category if category in ITEM_CATEGORIES else None


def normalize_time(raw: object) -> str | None:
    """Accept H:MM or HH:MM within a 24-hour day and zero-pad it."""
    if not isinstance(raw, str):
        return None
    match = CLOCK_TIME.fullmatch(raw.strip())
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def clean_line_items(raw_items: object) -> list[RawLineItem]:
    """Coerce raw rows, dropping any without a usable name and a positive price."""
    if not isinstance(raw_items, list):
        return []

    items: list[RawLineItem] = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            continue
        price = coerce_amount(raw.get("price"))
        if price is None:
            continue
        price = round2(price)
        if price <= 0:
            continue
        name = clean_item_name(raw.get("name"))
        if not name:
            continue
        items.append(
            RawLineItem(
                name=name,
                price=price,
                quantity=sanitize_quantity(raw.get("quantity")),
                category=sanitize_category(raw.get("category")),
            )
        )
    return items


def _positive_amount(raw: object) -> Decimal | None:
    amount = coerce_amount(raw)
    if amount is None or amount <= 0:
        return None
    return round2(amount)


def collect_warnings(
    items: list[RawLineItem],
    computed_total: Decimal,
    reported_total: Decimal,
    expected_subtotal: Decimal,
    merchant: object,
    date: object,
) -> list[str]:
    """Return non-fatal data-quality warnings, most severe ratio check only."""
    warnings: list[str] = []

    if expected_subtotal > 0 and computed_total > 0:
        ratio = computed_total / expected_subtotal
        if ratio < SEVERE_RATIO_BAND[0] or ratio > SEVERE_RATIO_BAND[1]:
            warnings.append(
                f"Item sum ({format_currency(computed_total)}) differs significantly from receipt total "
                f"({format_currency(expected_subtotal)}); some items may be missing or mispriced"
            )
        elif ratio < MINOR_RATIO_BAND[0] or ratio > MINOR_RATIO_BAND[1]:
            warnings.append("Minor discrepancy between item sum and total; worth double-checking")

    overpriced = [item for item in items if item.price > reported_total * OVERPRICED_ITEM_FACTOR]
    if overpriced:
        warnings.append(f"{len(overpriced)} item(s) priced larger than the bill total; please review")

    if not merchant or len(str(merchant).strip()) < 2:
        warnings.append("Merchant name unclear; check the receipt")

    if not date:
        warnings.append("Date not detected")
    elif not ISO_DATE.fullmatch(str(date)):
        warnings.append("Date format may be incorrect")

    if reported_total > HIGH_TOTAL_CEILING:
        warnings.append("Unusually high total; please verify")

    return warnings


def build_receipt(
    raw: Mapping[str, Any],
    raw_text: str = "",
    *,
    id_factory: Callable[[], str] = new_line_item_id,
) -> Receipt | None:
    """
    Build a canonical Receipt from an untrusted extraction response.

    Returns None when no line item survives validation, which tells the
    caller to try the next extraction path.

    The receipt's ``total`` is the sum of its expanded line items plus any
    surcharge; the total printed by the merchant is kept in ``printed_total``.
    ``method`` and ``confidence`` are left for the caller to stamp.
    """
    if not isinstance(raw, Mapping):
        return None

    raw_items = clean_line_items(raw.get("lineItems"))
    if not raw_items:
        return None

    computed_total = sum_money(item.price for item in raw_items)
    reported_total = _positive_amount(raw.get("total")) or computed_total
    surcharge = _positive_amount(raw.get("surcharge"))
    subtotal = _positive_amount(raw.get("subtotal"))

    if subtotal is not None:
        expected_subtotal = subtotal
    elif surcharge is not None:
        expected_subtotal = round2(reported_total - surcharge)
    else:
        expected_subtotal = reported_total

    merchant = raw.get("merchant")
    date = raw.get("date")
    warnings = collect_warnings(raw_items, computed_total, reported_total, expected_subtotal, merchant, date)

    line_items = normalize_line_items(raw_items, id_factory=id_factory)
    items_total = sum_money(item.price for item in line_items)

    return Receipt(
        merchant=str(merchant or "Receipt").strip(),
        date=str(date) if date else "",
        total=round2(items_total + (surcharge or ZERO)),
        time=normalize_time(raw.get("time")),
        subtotal=subtotal,
        surcharge=surcharge,
        printed_total=reported_total,
        line_items=line_items,
        validation_warnings=warnings,
        raw_text=raw_text,
    )
