from decimal import Decimal

from receiptsplit.domain.receipt import RawLineItem
from receiptsplit.receipt.line_items import (
    dedup_key,
    dedupe_line_items,
    expand_line_items,
    new_line_item_id,
    normalize_line_items,
)


def _raw(name: str, price: str, quantity: int | None = None) -> RawLineItem:
    return RawLineItem(name=name, price=Decimal(price), quantity=quantity)


def test_dedup_key_uses_lowercased_name_and_unit_price() -> None:
    assert dedup_key(_raw("Flat White", "4.00")) == "flat white|4"
    assert dedup_key(_raw(" Flat White ", "9.00", 2)) == "flat white|4.5"


def test_dedupe_merges_repeated_rows_into_quantity() -> None:
    rows = [_raw("Flat White", "4.50"), _raw("Croissant", "5.00"), _raw("flat white", "4.50")]

    deduped = dedupe_line_items(rows)

    assert [(item.name, item.price, item.quantity) for item in deduped] == [
        ("Flat White", Decimal("9.00"), 2),
        ("Croissant", Decimal("5.00"), None),
    ]


def test_dedupe_keeps_rows_with_different_unit_prices() -> None:
    deduped = dedupe_line_items([_raw("Latte", "4.50"), _raw("Latte", "5.00")])
    assert len(deduped) == 2


def test_dedupe_never_merges_explicit_quantities() -> None:
    rows = [_raw("Beer", "16.00", 2), _raw("Beer", "16.00", 2)]
    deduped = dedupe_line_items(rows)
    assert [(item.price, item.quantity) for item in deduped] == [
        (Decimal("16.00"), 2),
        (Decimal("16.00"), 2),
    ]


def test_expand_splits_quantity_into_unit_items(id_factory) -> None:
    expanded = expand_line_items([_raw("Beer", "16.00", 2), _raw("Chips", "6.00")], id_factory=id_factory)

    assert [(item.id, item.name, item.price) for item in expanded] == [
        ("li-1", "Beer", Decimal("8.00")),
        ("li-2", "Beer", Decimal("8.00")),
        ("li-3", "Chips", Decimal("6.00")),
    ]
    assert all(not item.allocated_to for item in expanded)


def test_expand_rounds_each_unit_independently(id_factory) -> None:
    expanded = expand_line_items([_raw("Slider", "10.00", 3)], id_factory=id_factory)
    # 3 x 3.33 loses a cent against the printed 10.00 line total.
    assert [item.price for item in expanded] == [Decimal("3.33")] * 3


def test_normalize_dedupes_then_expands(id_factory) -> None:
    items = normalize_line_items(
        [_raw("Flat White", "4.50"), _raw("Flat White", "4.50"), _raw("Muffin", "5.00")],
        id_factory=id_factory,
    )
    assert [(item.name, item.price) for item in items] == [
        ("Flat White", Decimal("4.50")),
        ("Flat White", Decimal("4.50")),
        ("Muffin", Decimal("5.00")),
    ]
    assert len({item.id for item in items}) == 3


def test_new_line_item_ids_are_unique() -> None:
    ids = {new_line_item_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(item_id.startswith("li-") for item_id in ids)


def test_expanded_unit_prices_stay_within_a_cent_of_the_line_total(id_factory) -> None:
    for price, quantity in [("10.00", 3), ("16.00", 2), ("7.00", 4), ("0.05", 2)]:
        expanded = expand_line_items([_raw("Dish", price, quantity)], id_factory=id_factory)

        assert len(expanded) == quantity
        assert abs(sum(item.price for item in expanded) - Decimal(price)) <= Decimal("0.01")
