"""Default categorization for line items the extraction service left untagged.

Rules are ordered; the first matching rule wins. Anything unmatched is food.
"""

import re

from receiptsplit.domain.receipt import ITEM_CATEGORIES, LineItem

DEFAULT_CATEGORY = "food"

CATEGORY_EMOJI: dict[str, str] = {
    "coffee": "☕",
    "alcohol": "🍺",
    "drink": "🥤",
    "food": "🍽️",
    "dessert": "🍰",
    "grocery": "🛒",
    "fuel": "⛽",
    "other": "📦",
}

CATEGORY_RULES: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "coffee",
        re.compile(r"coffee|latte|flat white|cappuccino|espresso|macchiato|mocha|long black|piccolo|cold brew|affogato"),
    ),
    (
        "alcohol",
        re.compile(
            r"beer|wine|spirits?|vodka|gin|rum|whisky|whiskey|cider|ale|lager|cocktail|margarita|champagne|"
            r"prosecco|sake|mead"
        ),
    ),
    (
        "dessert",
        re.compile(
            r"cake|dessert|ice cream|gelato|cheesecake|brownie|pudding|tart|donut|doughnut|muffin|cookie|biscuit|"
            r"pastry|waffle|crepe|churro"
        ),
    ),
    ("drink", re.compile(r"juice|water|soda|cola|lemonade|smoothie|tea|hot choc|milkshake|frappe|kombucha|sparkling")),
    ("fuel", re.compile(r"fuel|petrol|diesel|unleaded|e10|98ron|lpg")),
)

_CONTAINER_WORDS = re.compile(r"\b(bag|pack|tin|jar|box|bottle|can)\b")
_CONTAINER_EXCLUSIONS = re.compile(r"beer|wine|water")


def guess_category(name: str) -> str:
    """Guess a category tag from an item name."""
    lowered = name.lower()
    for category, pattern in CATEGORY_RULES:
        if pattern.search(lowered):
            return category
    if _CONTAINER_WORDS.search(lowered) and not _CONTAINER_EXCLUSIONS.search(lowered):
        return "grocery"
    return DEFAULT_CATEGORY


def category_for(item: LineItem) -> str:
    """Return the item's explicit category, falling back to a guess."""
    if item.category is not None and item.category in ITEM_CATEGORIES:
        return item.category
    return guess_category(item.name)


def category_emoji(item: LineItem) -> str:
    return CATEGORY_EMOJI.get(category_for(item), CATEGORY_EMOJI[DEFAULT_CATEGORY])
