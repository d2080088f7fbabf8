"""Heuristic text-line receipt parser used when structured extraction fails.

This is regex-based and will often need manual correction; results carry a
fixed, low confidence so the caller can flag them.
"""

import re
from collections.abc import Callable
from decimal import Decimal, InvalidOperation

from receiptsplit.domain.receipt import RawLineItem, Receipt

from .line_items import new_line_item_id, normalize_line_items
from .money import is_sane_amount, round2, sum_money

FALLBACK_METHOD = "regex-fallback"
FALLBACK_CONFIDENCE = 0.5
DEFAULT_MERCHANT = "Receipt"

TOTAL_KEYWORDS = ("total", "amount due", "balance due", "grand total", "amount paid")
SUBTOTAL_KEYWORDS = ("subtotal", "sub total", "sub-total")
SURCHARGE_KEYWORDS = (
    "surcharge",
    "holiday surcharge",
    "weekend surcharge",
    "service charge",
    "service fee",
    "credit card fee",
)

# Lines containing any of these are payment, card, loyalty, contact or wifi noise.
SKIP_KEYWORDS = (
    # Payment
    "visa",
    "mastercard",
    "eftpos",
    "paywave",
    "payid",
    "cash",
    "change",
    "card",
    "payment",
    "refund",
    "contactless",
    "tap &",
    "tap and",
    # Card/terminal metadata
    "approved",
    "approval",
    "authorisation",
    "reference",
    "transaction",
    "receipt #",
    "rrn:",
    "account:",
    "signature",
    # Store metadata
    "abn",
    "phone",
    "tel",
    "fax",
    "table",
    "order",
    "server",
    "cashier",
    "operator",
    "thank",
    "welcome",
    # Loyalty and GST lines
    "loyalty",
    "points",
    "member",
    "incl. gst",
    "gst component",
    "gst $",
    "you saved",
    "savings",
    "special price",
    "member price",
    # Web/wifi
    "www.",
    "http",
    ".com",
    ".au",
    "wifi",
    "password",
    "network",
)

PRICE_PATTERN = re.compile(r"\$?\s*(-?\d{1,4}(?:[.,]\d{3})*(?:[.,]\d{2}))\s*(?:[A-Z*])?\s*$", re.IGNORECASE)
PRICE_ONLY_PATTERN = re.compile(r"^\s*\$?\s*-?\d{1,4}(?:[.,]\d{3})*(?:[.,]\d{2})\s*(?:[A-Z*])?\s*$", re.IGNORECASE)
QUANTITY_PREFIX = re.compile(r"^(\d+)\s*[xX×]\s*")
# Leading barcodes, EAN-8 to EAN-13
PRODUCT_CODE_PREFIX = re.compile(r"^\d{4,13}\s+")
TRAILING_LEADERS = re.compile(r"[.\-_]{3,}$")

ISO_DATE = re.compile(r"\b(\d{4})[-/.](0?[1-9]|1[0-2])[-/.](0?[1-9]|[12]\d|3[01])\b")
DAY_FIRST_DATE = re.compile(r"\b(0?[1-9]|[12]\d|3[01])[-/.](0?[1-9]|1[0-2])[-/.](\d{2,4})\b")
CLOCK_TIME = re.compile(r"\b(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([ap]m?)?\b", re.IGNORECASE)

STREET_ADDRESS = re.compile(
    r"^\d+\s+(st|rd|nd|th|ave|blvd|street|road|drive|lane|court|crt|pl|place)",
    re.IGNORECASE,
)
METADATA_HEADER = re.compile(r"^(abn|phone|tel|fax|tax invoice|receipt|duplicate|void)", re.IGNORECASE)
SYMBOL_CHARS = re.compile(r"[^A-Za-z0-9\s&'.\-–]")


def _has_keyword(line: str, keywords: tuple[str, ...]) -> bool:
    lowered = line.lower()
    return any(keyword in lowered for keyword in keywords)


def normalize_price(value: str) -> Decimal:
    """Parse a printed price, handling comma decimals and thousands separators."""
    cleaned = re.sub(r"[$\s]", "", value)
    cleaned = re.sub(r"[^0-9,.\-]", "", cleaned)
    if "." in cleaned and "," in cleaned:
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        parts = cleaned.split(",")
        if len(parts) == 2 and len(parts[-1]) == 2:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    return parsed if is_sane_amount(parsed) else Decimal("0")


def join_split_price_lines(raw_lines: list[str]) -> list[str]:
    """Join an item name line with a following line that holds only its price."""
    lines: list[str] = []
    i = 0
    while i < len(raw_lines):
        current = raw_lines[i]
        following = raw_lines[i + 1] if i + 1 < len(raw_lines) else None
        if (
            following is not None
            and not PRICE_ONLY_PATTERN.match(current)
            and re.search(r"[A-Za-z0-9]", current)
            and PRICE_ONLY_PATTERN.match(following)
        ):
            lines.append(f"{current} {following}")
            i += 2
            continue
        lines.append(current)
        i += 1
    return lines


def _looks_like_merchant(line: str) -> bool:
    if len(line) < 3 or line.isdigit():
        return False
    if STREET_ADDRESS.match(line):
        return False
    if METADATA_HEADER.match(line):
        return False
    # Single-token lines made of symbols are decoration, not a name.
    if SYMBOL_CHARS.search(line) and " " not in line:
        return False
    return re.search(r"[A-Za-z]{3,}", line) is not None


def extract_merchant(lines: list[str]) -> str:
    for line in lines:
        if _looks_like_merchant(line):
            return line
    return DEFAULT_MERCHANT


def parse_date(text: str) -> str:
    """Return an ISO date from ISO or day-first text, or "" when none is found."""
    match = ISO_DATE.search(text)
    if match:
        return f"{match.group(1)}-{match.group(2).zfill(2)}-{match.group(3).zfill(2)}"
    match = DAY_FIRST_DATE.search(text)
    if match:
        year = match.group(3)
        if len(year) == 2:
            year = f"20{year}"
        return f"{year}-{match.group(2).zfill(2)}-{match.group(1).zfill(2)}"
    return ""


def parse_time(text: str) -> str:
    """Return a 24-hour HH:MM time, or "" when none is found."""
    match = CLOCK_TIME.search(text)
    if not match:
        return ""
    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = (match.group(4) or "").lower()
    if meridiem in ("pm", "p"):
        if hour < 12:
            hour += 12
    elif meridiem in ("am", "a"):
        if hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return ""
    return f"{hour:02d}:{minute:02d}"


def _first_match(lines: list[str], parser: Callable[[str], str]) -> str:
    for line in lines:
        value = parser(line)
        if value:
            return value
    return ""


def _clean_item_label(label: str) -> tuple[str, int | None]:
    """Split a leading multiplier off the label and strip codes and leaders."""
    quantity = None
    qty_match = QUANTITY_PREFIX.match(label)
    if qty_match:
        count = int(qty_match.group(1))
        if 2 <= count <= 99:
            quantity = count
        label = QUANTITY_PREFIX.sub("", label, count=1).strip()

    label = PRODUCT_CODE_PREFIX.sub("", label, count=1).strip()
    label = TRAILING_LEADERS.sub("", label)
    label = re.sub(r"\s{2,}", " ", label).strip()
    return label, quantity


def parse_receipt_text(
    text: str,
    *,
    id_factory: Callable[[], str] = new_line_item_id,
) -> Receipt:
    """Parse raw OCR text line by line into a low-confidence Receipt."""
    raw_lines = [line.strip() for line in text.split("\n")]
    lines = join_split_price_lines([line for line in raw_lines if line])

    merchant = extract_merchant(lines)
    date = _first_match(lines, parse_date)
    time = _first_match(lines, parse_time) or None

    items: list[RawLineItem] = []
    subtotal: Decimal | None = None
    surcharge: Decimal | None = None
    total: Decimal | None = None

    for line in lines:
        if _has_keyword(line, SKIP_KEYWORDS):
            continue

        price_match = PRICE_PATTERN.search(line)
        if not price_match:
            continue
        price = round2(normalize_price(price_match.group(1)))
        if price <= 0:
            continue

        label = PRICE_PATTERN.sub("", line).strip()
        if len(label) < 2:
            continue

        if _has_keyword(line, TOTAL_KEYWORDS) and not _has_keyword(line, SUBTOTAL_KEYWORDS):
            # Some receipts print the total twice; keep the largest.
            if total is None or price > total:
                total = price
            continue
        if _has_keyword(line, SUBTOTAL_KEYWORDS):
            subtotal = price
            continue
        if _has_keyword(line, SURCHARGE_KEYWORDS):
            surcharge = price
            continue

        name, quantity = _clean_item_label(label)
        if len(name) >= 2:
            items.append(RawLineItem(name=name, price=price, quantity=quantity))

    computed_total = sum_money(item.price for item in items)
    if total is not None:
        final_total = total
    elif subtotal is not None:
        final_total = subtotal
    else:
        final_total = computed_total

    return Receipt(
        merchant=merchant,
        date=date,
        total=final_total,
        time=time,
        subtotal=subtotal,
        surcharge=surcharge,
        printed_total=total,
        line_items=normalize_line_items(items, id_factory=id_factory),
        confidence=FALLBACK_CONFIDENCE,
        method=FALLBACK_METHOD,
        raw_text=text,
    )
