from decimal import Decimal

import pytest

from receiptsplit.domain.receipt import LineItem, PaymentMethod, Receipt
from receiptsplit.domain.settlement import compute_allocation_summary
from receiptsplit.receipt.records import (
    allocation_summary_to_record,
    person_from_record,
    person_to_record,
    receipt_from_record,
    receipt_to_record,
    split_from_record,
)


def _receipt() -> Receipt:
    return Receipt(
        merchant="Bella Cucina",
        date="2025-03-15",
        total=Decimal("42.00"),
        time="19:30",
        surcharge=Decimal("2.00"),
        line_items=[
            LineItem(id="li-1", name="Pasta", price=Decimal("10.00"), allocated_to=frozenset({"bob", "alice"})),
            LineItem(id="li-2", name="Pizza", price=Decimal("30.00"), category="food"),
        ],
        confidence=0.95,
        method="gemini-vision",
    )


def test_receipt_to_record_uses_camel_case_and_omits_unset_fields() -> None:
    record = receipt_to_record(_receipt())

    assert record == {
        "merchant": "Bella Cucina",
        "date": "2025-03-15",
        "total": 42.0,
        "lineItems": [
            {"id": "li-1", "name": "Pasta", "price": 10.0, "allocatedTo": ["alice", "bob"]},
            {"id": "li-2", "name": "Pizza", "price": 30.0, "allocatedTo": [], "category": "food"},
        ],
        "method": "gemini-vision",
        "time": "19:30",
        "surcharge": 2.0,
        "confidence": 0.95,
    }


def test_receipt_record_loads_back() -> None:
    original = _receipt()

    loaded = receipt_from_record(receipt_to_record(original))

    assert loaded == original


def test_receipt_from_record_tolerates_sparse_input() -> None:
    receipt = receipt_from_record({"lineItems": [{"name": "Toast", "price": "6.5"}]})

    assert receipt.merchant == ""
    assert receipt.total == Decimal("0.00")
    assert receipt.line_items[0].price == Decimal("6.50")
    assert receipt.line_items[0].id.startswith("li-")
    assert receipt.method == "none"


def test_person_records() -> None:
    person = person_from_record(
        {"id": "bob", "name": "Bob", "paymentPrefs": {"method": "venmo", "handle": "@bob"}}
    )

    assert person.payment_prefs is not None
    assert person.payment_prefs.method is PaymentMethod.VENMO
    assert person_to_record(person) == {
        "id": "bob",
        "name": "Bob",
        "paymentPrefs": {"method": "VENMO", "handle": "@bob"},
    }


def test_unknown_payment_method_is_dropped() -> None:
    person = person_from_record({"id": "x", "name": "X", "paymentPrefs": {"method": "carrier pigeon"}})

    assert person.payment_prefs is None


def test_split_from_record_resolves_payer() -> None:
    split = split_from_record(
        {
            "groupName": "Friday Dinner",
            "people": [{"id": "alice", "name": "Alice"}, {"id": "bob", "name": "Bob"}],
            "payerId": "bob",
            "receipt": receipt_to_record(_receipt()),
        }
    )

    assert split.group_name == "Friday Dinner"
    assert split.payer is not None and split.payer.name == "Bob"
    assert len(split.receipt.line_items) == 2


def test_allocation_summary_record() -> None:
    summary = compute_allocation_summary(_receipt().line_items, [person_from_record({"id": "alice", "name": "A"})])

    assert allocation_summary_to_record(summary) == {
        "owedByPerson": {"alice": 5.0, "bob": 5.0},
        "unassignedTotal": 30.0,
        "subtotal": 40.0,
    }


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"people": [{"name": "Alice"}]}, "Each person needs an id"),
        ({"people": ["alice"]}, "Each person must be a JSON object"),
        ({"people": "alice"}, "people must be a list"),
        ({"receipt": ["Pasta"]}, "receipt must be a JSON object"),
        ({"receipt": {"lineItems": [1, 2]}}, "receipt.lineItems must be a list of objects"),
    ],
)
def test_split_from_record_rejects_malformed_payloads(payload: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        split_from_record(payload)


def test_receipt_from_record_ignores_non_list_fields() -> None:
    receipt = receipt_from_record(
        {"lineItems": [{"name": "Pasta", "price": 10, "allocatedTo": 7}], "validationWarnings": 3}
    )

    assert receipt.line_items[0].allocated_to == frozenset()
    assert receipt.validation_warnings == []
