"""Deduplicate extracted rows and expand multi-quantity rows into assignable items.

Vision models sometimes emit the same physical item twice ("Flat White 4.50"
on two rows) instead of one row with quantity 2. Rows that agree on name and
unit price are merged here; the merged quantity is then expanded so that every
unit becomes its own line item that can be assigned to a different person.
"""

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal

from receiptsplit.domain.receipt import LineItem, RawLineItem

from .money import add_money, round2


def new_line_item_id() -> str:
    """Return a fresh opaque line item identifier."""
    return f"li-{uuid.uuid4().hex[:12]}"


def dedup_key(item: RawLineItem) -> str:
    """Key used to detect duplicate rows: ``lowercased name|unit price``."""
    if item.quantity:
        unit_price = round2(item.price / item.quantity)
    else:
        unit_price = round2(item.price)
    # Render without trailing zeros so 4.00 keys as "4" and 4.50 as "4.5".
    price_text = format(unit_price.normalize(), "f")
    return f"{item.name.strip().lower()}|{price_text}"


@dataclass
class _Entry:
    name: str
    price: Decimal
    quantity: int
    category: str | None


def dedupe_line_items(items: Iterable[RawLineItem]) -> list[RawLineItem]:
    """
    Merge duplicate rows, preserving the order of first occurrence.

    Only rows without an explicit quantity are merged. Two rows that both say
    "2x" are more likely two separate multi-unit orders, so they stay distinct.
    """
    entries: list[_Entry] = []
    mergeable: dict[str, _Entry] = {}

    for item in items:
        key = dedup_key(item)
        if item.quantity is None:
            existing = mergeable.get(key)
            if existing is not None:
                existing.quantity += 1
                existing.price = add_money(existing.price, item.price)
                continue
            entry = _Entry(item.name, round2(item.price), 1, item.category)
            mergeable[key] = entry
        else:
            entry = _Entry(item.name, round2(item.price), item.quantity, item.category)
        entries.append(entry)

    return [
        RawLineItem(
            name=entry.name,
            price=entry.price,
            quantity=entry.quantity if entry.quantity > 1 else None,
            category=entry.category,
        )
        for entry in entries
    ]


def expand_line_items(
    items: Iterable[RawLineItem],
    id_factory: Callable[[], str] = new_line_item_id,
) -> list[LineItem]:
    """Turn each row into assignable items, one per unit for quantities above 1."""
    expanded: list[LineItem] = []
    for item in items:
        quantity = item.quantity if item.quantity and item.quantity > 1 else 1
        if quantity == 1:
            expanded.append(LineItem(id=id_factory(), name=item.name, price=item.price, category=item.category))
            continue
        price_each = round2(item.price / quantity)
        for _ in range(quantity):
            expanded.append(LineItem(id=id_factory(), name=item.name, price=price_each, category=item.category))
    return expanded


def normalize_line_items(
    items: Iterable[RawLineItem],
    id_factory: Callable[[], str] = new_line_item_id,
) -> list[LineItem]:
    """Dedup then expand."""
    return expand_line_items(dedupe_line_items(items), id_factory=id_factory)
