"""Data models for receipt scanning and bill splitting."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

# Closed set of item category tags accepted from the extraction service.
ITEM_CATEGORIES = frozenset({"coffee", "alcohol", "drink", "food", "dessert", "grocery", "fuel", "other"})


@dataclass
class RawLineItem:
    """A cleaned extraction row, before dedup and quantity expansion."""

    name: str
    price: Decimal  # Line total as printed, not the unit price
    quantity: int | None = None  # Explicit multiplier in [2, 99], None when not printed
    category: str | None = None


@dataclass(frozen=True)
class LineItem:
    """A single assignable line item on a receipt."""

    id: str
    name: str
    price: Decimal
    allocated_to: frozenset[str] = field(default_factory=frozenset)
    category: str | None = None


@dataclass
class Receipt:
    """Canonical receipt record produced by one scan."""

    merchant: str
    date: str  # ISO YYYY-MM-DD, or "" when unknown
    total: Decimal
    time: str | None = None  # 24-hour HH:MM
    subtotal: Decimal | None = None
    surcharge: Decimal | None = None  # Only set when > 0
    printed_total: Decimal | None = None  # Merchant-printed total, kept for comparison
    line_items: list[LineItem] = field(default_factory=list)
    confidence: float | None = None
    method: str = "none"
    validation_warnings: list[str] = field(default_factory=list)
    raw_text: str = ""  # Extraction text kept for provenance


class PaymentMethod(str, Enum):
    VENMO = "VENMO"
    PAYPAL = "PAYPAL"
    ZELLE = "ZELLE"
    CASHAPP = "CASHAPP"
    PAYID = "PAYID"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    OTHER = "OTHER"


@dataclass(frozen=True)
class PaymentPrefs:
    """How a person wants to be paid back."""

    method: PaymentMethod
    handle: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class Person:
    id: str
    name: str
    phone: str | None = None
    payment_prefs: PaymentPrefs | None = None


@dataclass
class AllocationSummary:
    """Per-person running totals for the current allocation state."""

    owed_by_person: dict[str, Decimal]
    unassigned_total: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class SettlementItem:
    name: str
    price: Decimal  # This person's share of the item
    split_count: int


@dataclass(frozen=True)
class SettlementEntry:
    """Final amount one person owes for a receipt."""

    person: Person
    subtotal: Decimal
    surcharge_share: Decimal
    total_owed: Decimal
    is_payer: bool
    items: tuple[SettlementItem, ...] = ()
