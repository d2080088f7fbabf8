"""Convert receipts, people and settlements to and from flat JSON records.

Records use the camelCase keys of the extraction contract so the same payload
can travel between the extraction service, the allocation UI and storage.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from receiptsplit.domain.receipt import (
    AllocationSummary,
    LineItem,
    PaymentMethod,
    PaymentPrefs,
    Person,
    Receipt,
    SettlementEntry,
)

from .line_items import new_line_item_id
from .money import ZERO, coerce_amount, round2


@dataclass(frozen=True)
class SplitRecord:
    """A shared split: who was there, who paid, and the allocated receipt."""

    group_name: str
    people: list[Person]
    payer_id: str
    receipt: Receipt

    @property
    def payer(self) -> Person | None:
        for person in self.people:
            if person.id == self.payer_id:
                return person
        return None


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _record_amount(raw: object) -> Decimal | None:
    amount = coerce_amount(raw)
    return round2(amount) if amount is not None else None


def line_item_to_record(item: LineItem) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": item.id,
        "name": item.name,
        "price": float(item.price),
        "allocatedTo": sorted(item.allocated_to),
    }
    if item.category:
        record["category"] = item.category
    return record


def line_item_from_record(raw: Mapping[str, Any]) -> LineItem:
    allocated = raw.get("allocatedTo")
    if not isinstance(allocated, list):
        allocated = []
    return LineItem(
        id=str(raw.get("id") or new_line_item_id()),
        name=str(raw.get("name", "")),
        price=_record_amount(raw.get("price")) or ZERO,
        allocated_to=frozenset(str(person_id) for person_id in allocated),
        category=raw.get("category") or None,
    )


def receipt_to_record(receipt: Receipt) -> dict[str, Any]:
    """Serialize a receipt; optional fields are omitted when unset."""
    record: dict[str, Any] = {
        "merchant": receipt.merchant,
        "date": receipt.date,
        "total": float(receipt.total),
        "lineItems": [line_item_to_record(item) for item in receipt.line_items],
        "method": receipt.method,
    }
    optional = {
        "time": receipt.time,
        "subtotal": _money(receipt.subtotal),
        "surcharge": _money(receipt.surcharge),
        "printedTotal": _money(receipt.printed_total),
        "confidence": receipt.confidence,
        "rawOcrText": receipt.raw_text or None,
        "validationWarnings": list(receipt.validation_warnings) or None,
    }
    for key, value in optional.items():
        if value is not None:
            record[key] = value
    return record


def receipt_from_record(raw: Mapping[str, Any]) -> Receipt:
    """Load a receipt record previously produced by ``receipt_to_record``."""
    confidence = raw.get("confidence")
    warnings = raw.get("validationWarnings")
    return Receipt(
        merchant=str(raw.get("merchant") or ""),
        date=str(raw.get("date") or ""),
        total=_record_amount(raw.get("total")) or ZERO,
        time=raw.get("time") or None,
        subtotal=_record_amount(raw.get("subtotal")),
        surcharge=_record_amount(raw.get("surcharge")),
        printed_total=_record_amount(raw.get("printedTotal")),
        line_items=[line_item_from_record(item) for item in raw.get("lineItems") or []],
        confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
        method=str(raw.get("method") or "none"),
        validation_warnings=[str(w) for w in warnings] if isinstance(warnings, list) else [],
        raw_text=str(raw.get("rawOcrText") or ""),
    )


def person_to_record(person: Person) -> dict[str, Any]:
    record: dict[str, Any] = {"id": person.id, "name": person.name}
    if person.phone:
        record["phone"] = person.phone
    if person.payment_prefs is not None:
        prefs: dict[str, Any] = {"method": person.payment_prefs.method.value}
        if person.payment_prefs.handle:
            prefs["handle"] = person.payment_prefs.handle
        if person.payment_prefs.note:
            prefs["note"] = person.payment_prefs.note
        record["paymentPrefs"] = prefs
    return record


def payment_prefs_from_record(raw: object) -> PaymentPrefs | None:
    """Parse payment preferences; unknown methods are treated as absent."""
    if not isinstance(raw, Mapping):
        return None
    try:
        method = PaymentMethod(str(raw.get("method", "")).upper())
    except ValueError:
        return None
    return PaymentPrefs(method=method, handle=raw.get("handle") or None, note=raw.get("note") or None)


def person_from_record(raw: Mapping[str, Any]) -> Person:
    """Parse a person; raises ValueError when the record has no id."""
    if not isinstance(raw, Mapping):
        raise ValueError("Each person must be a JSON object")
    person_id = raw.get("id")
    if person_id is None or not str(person_id).strip():
        raise ValueError("Each person needs an id")
    return Person(
        id=str(person_id),
        name=str(raw.get("name", "")),
        phone=raw.get("phone") or None,
        payment_prefs=payment_prefs_from_record(raw.get("paymentPrefs")),
    )


def split_from_record(raw: Mapping[str, Any]) -> SplitRecord:
    """
    Parse a shared split payload ``{groupName, people, payerId, receipt}``.

    Raises ValueError when the payload is not shaped like a split.
    """
    people = raw.get("people") or []
    if not isinstance(people, list):
        raise ValueError("people must be a list")
    receipt = raw.get("receipt") or {}
    if not isinstance(receipt, Mapping):
        raise ValueError("receipt must be a JSON object")
    line_items = receipt.get("lineItems") or []
    if not isinstance(line_items, list) or not all(isinstance(item, Mapping) for item in line_items):
        raise ValueError("receipt.lineItems must be a list of objects")
    return SplitRecord(
        group_name=str(raw.get("groupName") or ""),
        people=[person_from_record(person) for person in people],
        payer_id=str(raw.get("payerId") or ""),
        receipt=receipt_from_record(receipt),
    )


def settlement_to_record(entry: SettlementEntry) -> dict[str, Any]:
    return {
        "person": person_to_record(entry.person),
        "subtotal": float(entry.subtotal),
        "surchargeShare": float(entry.surcharge_share),
        "totalOwed": float(entry.total_owed),
        "isPayer": entry.is_payer,
        "items": [
            {"name": item.name, "price": float(item.price), "splitCount": item.split_count} for item in entry.items
        ],
    }


def allocation_summary_to_record(summary: AllocationSummary) -> dict[str, Any]:
    return {
        "owedByPerson": {person_id: float(amount) for person_id, amount in summary.owed_by_person.items()},
        "unassignedTotal": float(summary.unassigned_total),
        "subtotal": float(summary.subtotal),
    }
