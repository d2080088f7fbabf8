"""Core domain models for receiptsplit.

This module provides the core data models used throughout the project:
- Receipt, LineItem: canonical scanned receipt
- Person, PaymentPrefs: people sharing a bill
- AllocationSummary, SettlementEntry: who owes what

Usage:
    from receiptsplit.domain import Receipt, LineItem, Person
"""

from receiptsplit.domain.receipt import (
    AllocationSummary,
    LineItem,
    PaymentMethod,
    PaymentPrefs,
    Person,
    RawLineItem,
    Receipt,
    SettlementEntry,
    SettlementItem,
)
from receiptsplit.domain.settlement import compute_allocation_summary, compute_settlements

__all__ = [
    "Receipt",
    "LineItem",
    "RawLineItem",
    "Person",
    "PaymentMethod",
    "PaymentPrefs",
    "AllocationSummary",
    "SettlementEntry",
    "SettlementItem",
    "compute_allocation_summary",
    "compute_settlements",
]
