from decimal import Decimal

from receiptsplit.domain.receipt import LineItem
from receiptsplit.receipt.categories import category_emoji, category_for, guess_category


def test_guess_category_rules() -> None:
    assert guess_category("Flat White") == "coffee"
    assert guess_category("Pale Ale") == "alcohol"
    assert guess_category("Blueberry Muffin") == "dessert"
    assert guess_category("Orange Juice") == "drink"
    assert guess_category("Unleaded 30.5L") == "fuel"
    assert guess_category("Rice bag 5kg") == "grocery"
    assert guess_category("Margherita Pizza") == "food"


def test_category_for_prefers_explicit_category() -> None:
    item = LineItem(id="1", name="Flat White", price=Decimal("4.50"), category="drink")

    assert category_for(item) == "drink"
    assert category_emoji(item) == "🥤"


def test_category_emoji_defaults_to_guess() -> None:
    item = LineItem(id="1", name="Espresso", price=Decimal("3.50"))

    assert category_emoji(item) == "☕"
