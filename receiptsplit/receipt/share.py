"""Format settlements as plain-text messages for sharing with the group."""

from collections.abc import Sequence
from typing import NamedTuple

from receiptsplit.domain.receipt import PaymentMethod, PaymentPrefs, Person, SettlementEntry

from .money import MoneyLike, format_currency, to_decimal


class PaymentMethodConfig(NamedTuple):
    label: str
    emoji: str


PAYMENT_METHOD_CONFIG: dict[PaymentMethod, PaymentMethodConfig] = {
    PaymentMethod.VENMO: PaymentMethodConfig("Venmo", "💸"),
    PaymentMethod.PAYPAL: PaymentMethodConfig("PayPal", "🅿️"),
    PaymentMethod.ZELLE: PaymentMethodConfig("Zelle", "💲"),
    PaymentMethod.CASHAPP: PaymentMethodConfig("Cash App", "💵"),
    PaymentMethod.PAYID: PaymentMethodConfig("PayID", "🏦"),
    PaymentMethod.BANK_TRANSFER: PaymentMethodConfig("Bank", "🏧"),
    PaymentMethod.CASH: PaymentMethodConfig("Cash", "💰"),
    PaymentMethod.OTHER: PaymentMethodConfig("Other", "📝"),
}


def format_payment_line(prefs: PaymentPrefs) -> str | None:
    """Describe how to pay, e.g. ``Venmo: @sam``; None when there is nothing to say."""
    config = PAYMENT_METHOD_CONFIG.get(prefs.method)
    if config is None:
        return None
    if prefs.method is PaymentMethod.CASH:
        return f"{config.emoji} {config.label}"
    if prefs.handle:
        return f"{config.label}: {prefs.handle}"
    if prefs.note:
        return prefs.note
    return None


def _item_lines(entry: SettlementEntry, currency: str) -> list[str]:
    return [f"  • {item.name} ({format_currency(item.price, currency)})" for item in entry.items]


def build_share_message(
    group_name: str,
    merchant: str,
    date: str,
    total: MoneyLike | None,
    payer: Person | None,
    settlements: Sequence[SettlementEntry],
    *,
    time: str | None = None,
    payment_prefs: PaymentPrefs | None = None,
    currency: str = "USD",
) -> str:
    """
    Build the shareable summary of who owes what.

    Layout::

        <group> · <merchant>
        Date: <date> at <time>
        Total: <total>

        Pay to: <payer>
        <payment line>

        <payer> (paid): <amount>
          • <item> (<share>)

        Others owe:
        <name>: <amount>
          • <item> (<share>)
    """
    lines: list[str] = []

    lines.append(f"{group_name or 'Group'} · {merchant or 'Receipt'}")
    if date:
        lines.append(f"Date: {date}{f' at {time}' if time else ''}")
    if total is not None and _is_positive(total):
        lines.append(f"Total: {format_currency(total, currency)}")

    lines.append("")

    if payer is not None:
        lines.append(f"Pay to: {payer.name}")

    if payment_prefs is not None:
        pay_line = format_payment_line(payment_prefs)
        if pay_line:
            lines.append(pay_line)

    if settlements:
        lines.append("")

        payer_entry = next((entry for entry in settlements if entry.is_payer), None)
        if payer_entry is not None:
            lines.append(f"{payer_entry.person.name} (paid): {format_currency(payer_entry.total_owed, currency)}")
            lines.extend(_item_lines(payer_entry, currency))
            lines.append("")

        others = [entry for entry in settlements if not entry.is_payer]
        if others:
            lines.append("Others owe:")
            for entry in others:
                lines.append(f"{entry.person.name}: {format_currency(entry.total_owed, currency)}")
                lines.extend(_item_lines(entry, currency))
                lines.append("")

    return "\n".join(lines)


def build_owe_message(
    amount: MoneyLike,
    payer: Person | None = None,
    payment_prefs: PaymentPrefs | None = None,
    currency: str = "USD",
) -> str:
    """One-line reminder for a single person, e.g. ``You owe $12.00 to Sam. Venmo: @sam.``"""
    to_payer = f" to {payer.name}" if payer is not None and payer.name else ""
    parts = [f"You owe {format_currency(amount, currency)}{to_payer}."]

    if payment_prefs is not None:
        pay_line = format_payment_line(payment_prefs)
        if pay_line:
            parts.append(f"{pay_line}.")

    return " ".join(parts)


def _is_positive(value: MoneyLike) -> bool:
    try:
        amount = to_decimal(value)
    except (ArithmeticError, TypeError):
        return False
    return amount.is_finite() and amount > 0
