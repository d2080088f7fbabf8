"""Settlement workflow: allocated receipt -> per-person totals and share text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from receiptsplit.domain.receipt import AllocationSummary, SettlementEntry
from receiptsplit.domain.settlement import compute_allocation_summary, compute_settlements
from receiptsplit.receipt.records import (
    SplitRecord,
    allocation_summary_to_record,
    settlement_to_record,
)
from receiptsplit.receipt.share import build_share_message
from receiptsplit.runtime import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SettleResult:
    """Outcome from settlement workflow."""

    summary: AllocationSummary
    settlements: list[SettlementEntry]
    message: str

    def to_record(self) -> dict[str, Any]:
        return {
            "summary": allocation_summary_to_record(self.summary),
            "settlements": [settlement_to_record(entry) for entry in self.settlements],
            "message": self.message,
        }


def run_settle(split: SplitRecord, *, currency: str = "USD") -> SettleResult:
    """Compute the allocation summary, settlements and shareable message for a split."""
    receipt = split.receipt
    payer = split.payer
    if payer is None:
        logger.warning("Payer %r is not one of the %d people on the split", split.payer_id, len(split.people))

    summary = compute_allocation_summary(receipt.line_items, split.people)
    if summary.unassigned_total > 0:
        logger.info("Unassigned items remain: %s", summary.unassigned_total)

    settlements = compute_settlements(receipt.line_items, split.people, receipt.surcharge, split.payer_id)
    message = build_share_message(
        split.group_name,
        receipt.merchant,
        receipt.date,
        receipt.total,
        payer,
        settlements,
        time=receipt.time,
        payment_prefs=payer.payment_prefs if payer is not None else None,
        currency=currency,
    )
    return SettleResult(summary=summary, settlements=settlements, message=message)
