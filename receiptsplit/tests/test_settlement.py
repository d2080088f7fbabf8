from decimal import Decimal

from receiptsplit.domain.receipt import LineItem, Person
from receiptsplit.domain.settlement import compute_allocation_summary, compute_settlements

ALICE = Person(id="alice", name="Alice")
BOB = Person(id="bob", name="Bob")
CAROL = Person(id="carol", name="carol")


def _item(item_id: str, name: str, price: str, *people: str) -> LineItem:
    return LineItem(id=item_id, name=name, price=Decimal(price), allocated_to=frozenset(people))


def test_allocation_summary_splits_evenly_and_tracks_unassigned() -> None:
    items = [
        _item("1", "Burger", "18.50", "alice"),
        _item("2", "Fries", "7.00", "alice", "bob"),
        _item("3", "Salad", "14.00", "bob"),
        _item("4", "Water", "3.00"),
    ]

    summary = compute_allocation_summary(items, [ALICE, BOB, CAROL])

    assert summary.owed_by_person == {
        "alice": Decimal("22.00"),
        "bob": Decimal("17.50"),
        "carol": Decimal("0.00"),
    }
    assert summary.unassigned_total == Decimal("3.00")
    assert summary.subtotal == Decimal("42.50")


def test_allocation_summary_rounds_each_share() -> None:
    summary = compute_allocation_summary([_item("1", "Platter", "10.00", "alice", "bob", "carol")], [ALICE, BOB, CAROL])

    assert set(summary.owed_by_person.values()) == {Decimal("3.33")}
    assert summary.unassigned_total == Decimal("0.00")


def test_allocation_summary_keeps_unknown_person_ids() -> None:
    summary = compute_allocation_summary([_item("1", "Wine", "30.00", "alice", "ghost")], [ALICE])

    assert summary.owed_by_person == {"alice": Decimal("15.00"), "ghost": Decimal("15.00")}


def test_allocation_summary_for_empty_receipt() -> None:
    summary = compute_allocation_summary([], [ALICE])

    assert summary.owed_by_person == {"alice": Decimal("0.00")}
    assert summary.subtotal == Decimal("0.00")


def test_settlements_share_surcharge_proportionally() -> None:
    items = [_item("1", "Pasta", "10.00", "alice"), _item("2", "Pizza", "30.00", "bob")]

    entries = compute_settlements(items, [ALICE, BOB], Decimal("2.00"), payer_id="bob")

    assert [(e.person.id, e.subtotal, e.surcharge_share, e.total_owed, e.is_payer) for e in entries] == [
        ("bob", Decimal("30.00"), Decimal("1.50"), Decimal("31.50"), True),
        ("alice", Decimal("10.00"), Decimal("0.50"), Decimal("10.50"), False),
    ]


def test_settlement_surcharge_shares_are_not_remainder_corrected() -> None:
    items = [_item(str(i), "Main", "10.00", person.id) for i, person in enumerate([ALICE, BOB, CAROL])]

    entries = compute_settlements(items, [ALICE, BOB, CAROL], Decimal("1.00"), payer_id="alice")

    assert [entry.surcharge_share for entry in entries] == [Decimal("0.33")] * 3
    assert sum(entry.total_owed for entry in entries) == Decimal("30.99")


def test_settlements_without_surcharge() -> None:
    entries = compute_settlements([_item("1", "Pasta", "12.00", "alice")], [ALICE], None, payer_id="alice")

    assert entries[0].surcharge_share == Decimal("0.00")
    assert entries[0].total_owed == Decimal("12.00")


def test_settlements_drop_people_who_owe_nothing() -> None:
    entries = compute_settlements([_item("1", "Pasta", "12.00", "alice")], [ALICE, BOB], None, payer_id="bob")

    assert [entry.person.id for entry in entries] == ["alice"]


def test_settlements_order_payer_first_then_name_case_insensitive() -> None:
    zoe = Person(id="zoe", name="Zoe")
    people = [zoe, BOB, CAROL, ALICE]
    items = [_item(p.id, "Dish", "5.00", p.id) for p in people]

    entries = compute_settlements(items, people, None, payer_id="zoe")

    assert [entry.person.name for entry in entries] == ["Zoe", "Alice", "Bob", "carol"]


def test_settlement_item_breakdown_records_split_count() -> None:
    items = [_item("1", "Fries", "7.00", "alice", "bob"), _item("2", "Burger", "18.50", "alice")]

    entries = compute_settlements(items, [ALICE, BOB], None, payer_id="alice")

    alice = entries[0]
    assert [(i.name, i.price, i.split_count) for i in alice.items] == [
        ("Fries", Decimal("3.50"), 2),
        ("Burger", Decimal("18.50"), 1),
    ]
    assert alice.total_owed == Decimal("22.00")


def test_settlements_round_accumulated_fractions_once() -> None:
    # Three thirds of 10.00 are accumulated unrounded before rounding.
    items = [_item(str(i), "Platter", "10.00", "alice", "bob", "carol") for i in range(3)]

    entries = compute_settlements(items, [ALICE, BOB, CAROL], None, payer_id="alice")

    assert [entry.subtotal for entry in entries] == [Decimal("10.00")] * 3


def test_settlements_ignore_unknown_person_ids() -> None:
    entries = compute_settlements([_item("1", "Wine", "30.00", "alice", "ghost")], [ALICE], None, payer_id="alice")

    assert [(entry.person.id, entry.total_owed) for entry in entries] == [("alice", Decimal("15.00"))]


def test_dinner_shared_by_two_comes_to_equal_halves() -> None:
    items = [
        _item("1", "Burger", "18.50", "alice", "bob"),
        _item("2", "Fries", "7.00", "alice", "bob"),
        _item("3", "Salad", "14.00", "alice", "bob"),
    ]

    summary = compute_allocation_summary(items, [ALICE, BOB])
    entries = compute_settlements(items, [ALICE, BOB], None, payer_id="alice")

    assert summary.owed_by_person == {"alice": Decimal("19.75"), "bob": Decimal("19.75")}
    assert summary.unassigned_total == Decimal("0.00")
    assert [(entry.person.id, entry.total_owed) for entry in entries] == [
        ("alice", Decimal("19.75")),
        ("bob", Decimal("19.75")),
    ]


def test_surcharge_follows_subtotal_proportions() -> None:
    items = [_item("1", "Pasta", "10.00", "alice"), _item("2", "Steak", "20.00", "bob")]

    entries = compute_settlements(items, [ALICE, BOB], Decimal("1.50"), payer_id="alice")

    assert [(entry.person.id, entry.surcharge_share, entry.total_owed) for entry in entries] == [
        ("alice", Decimal("0.50"), Decimal("10.50")),
        ("bob", Decimal("1.00"), Decimal("21.00")),
    ]


ASSIGNMENTS = [
    [_item("1", "Burger", "18.50", "alice"), _item("2", "Fries", "7.00", "alice", "bob"), _item("3", "Salad", "14.00")],
    [
        _item("1", "Platter", "10.00", "alice", "bob", "carol"),
        _item("2", "Fries", "7.00", "alice", "bob"),
        _item("3", "Water", "3.00"),
    ],
    [_item("1", "Wine", "45.99", "alice", "bob", "carol"), _item("2", "Bread", "4.25", "carol")],
    [_item("1", "Tea", "3.00"), _item("2", "Cake", "6.50")],
]


def test_allocation_summary_conserves_subtotal() -> None:
    for items in ASSIGNMENTS:
        summary = compute_allocation_summary(items, [ALICE, BOB, CAROL])

        owed = sum(summary.owed_by_person.values())
        assert abs(owed + summary.unassigned_total - summary.subtotal) <= Decimal("0.01")


def test_settlement_subtotals_conserve_assigned_total() -> None:
    for items in ASSIGNMENTS:
        entries = compute_settlements(items, [ALICE, BOB, CAROL], None, payer_id="alice")

        assigned = sum((item.price for item in items if item.allocated_to), Decimal("0"))
        assert abs(sum((entry.subtotal for entry in entries), Decimal("0")) - assigned) <= Decimal("0.01")


def test_settlements_list_payer_then_others_alphabetically() -> None:
    a = Person(id="a", name="A")
    b = Person(id="b", name="B")
    c = Person(id="c", name="C")
    items = [_item("1", "Dish", "5.00", "c"), _item("2", "Dish", "5.00", "a"), _item("3", "Dish", "5.00", "b")]

    entries = compute_settlements(items, [c, b, a], None, payer_id="a")

    assert [(entry.person.name, entry.is_payer) for entry in entries] == [("A", True), ("B", False), ("C", False)]
