"""Pure allocation and settlement math for splitting a receipt between people."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from receiptsplit.domain.receipt import AllocationSummary, LineItem, Person, SettlementEntry, SettlementItem
from receiptsplit.receipt.money import ZERO, add_money, round2


def compute_allocation_summary(line_items: Iterable[LineItem], people: Sequence[Person]) -> AllocationSummary:
    """
    Compute running per-person totals for the current assignments.

    Each assigned item is split evenly between the people it is allocated to.
    Unassigned items accumulate into ``unassigned_total``. Every person appears
    in the result, with zero when nothing is assigned to them.
    """
    owed: dict[str, Decimal] = {person.id: ZERO for person in people}
    unassigned_total = ZERO
    subtotal = ZERO

    for item in line_items:
        subtotal = add_money(subtotal, item.price)
        if not item.allocated_to:
            unassigned_total = add_money(unassigned_total, item.price)
            continue

        split = item.price / len(item.allocated_to)
        for person_id in item.allocated_to:
            owed[person_id] = add_money(owed.get(person_id, ZERO), split)

    return AllocationSummary(owed_by_person=owed, unassigned_total=unassigned_total, subtotal=subtotal)


def compute_settlements(
    line_items: Iterable[LineItem],
    people: Sequence[Person],
    surcharge: Decimal | None,
    payer_id: str,
) -> list[SettlementEntry]:
    """
    Compute what each person owes, payer first and then by name.

    The surcharge is shared in proportion to each person's subtotal. Shares are
    rounded independently, so they need not add up to the surcharge exactly.
    People who owe nothing are left out.
    """
    person_ids = {person.id for person in people}
    subtotals: dict[str, Decimal] = {person.id: Decimal(0) for person in people}
    breakdowns: dict[str, list[SettlementItem]] = {person.id: [] for person in people}
    assigned_total = ZERO

    for item in line_items:
        if not item.allocated_to:
            continue
        assigned_total = add_money(assigned_total, item.price)
        split_count = len(item.allocated_to)
        per_person = item.price / split_count
        # Sorted so the breakdown does not depend on set iteration order.
        for person_id in sorted(item.allocated_to):
            if person_id not in person_ids:
                continue
            subtotals[person_id] += per_person
            breakdowns[person_id].append(
                SettlementItem(name=item.name, price=round2(per_person), split_count=split_count)
            )

    entries: list[SettlementEntry] = []
    for person in people:
        subtotal = round2(subtotals[person.id])
        share = ZERO
        if surcharge and surcharge > 0 and assigned_total > 0:
            share = round2(subtotal / assigned_total * surcharge)
        total_owed = round2(subtotal + share)
        if total_owed <= 0:
            continue
        entries.append(
            SettlementEntry(
                person=person,
                subtotal=subtotal,
                surcharge_share=share,
                total_owed=total_owed,
                is_payer=person.id == payer_id,
                items=tuple(breakdowns[person.id]),
            )
        )

    entries.sort(key=lambda entry: (not entry.is_payer, entry.person.name.casefold()))
    return entries
