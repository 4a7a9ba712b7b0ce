"""
Price and discount helpers shared by the catalog and its callers.

All helpers are pure and tolerate junk input (None, NaN, non-numeric strings)
by treating it as zero.
"""
import math
import re
from typing import Any

CURRENCY_SYMBOLS = {
    "USD": "$",
    "CAD": "CA$",
    "AUD": "A$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

# Currencies printed without minor units
ZERO_DECIMAL_CURRENCIES = {"JPY"}

_PRICE_JUNK = re.compile(r"[$,\s]")


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return float(value)


def format_price_with_commas(price: float) -> str:
    """1234.5 -> '1,234.50'"""
    return f"{_as_number(price):,.2f}"


def format_price(price: float, currency: str = "USD") -> str:
    """
    Format a price for display.

    >>> format_price(1234.5)
    '$1,234.50'
    >>> format_price(-3)
    '-$3.00'
    """
    amount = _as_number(price)
    code = (currency or "USD").upper()
    decimals = 0 if code in ZERO_DECIMAL_CURRENCIES else 2
    body = f"{abs(amount):,.{decimals}f}"
    sign = "-" if amount < 0 else ""

    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {body}"
    return f"{sign}{symbol}{body}"


def format_price_range(min_price: float, max_price: float, currency: str = "USD") -> str:
    return f"{format_price(min_price, currency)} - {format_price(max_price, currency)}"


def calculate_discount_percentage(original_price: Any, sale_price: Any) -> int:
    """
    Whole-number discount of sale_price against original_price.

    Returns 0 when there is no valid discount (original <= 0, negative sale
    price, or sale price above the original).
    """
    original = _as_number(original_price)
    sale = _as_number(sale_price)
    if original <= 0 or sale < 0 or sale > original:
        return 0
    # Round half up, matching how storefronts print "25% OFF"
    return int(math.floor((original - sale) / original * 100 + 0.5))


def format_discount_percentage(original_price: Any, sale_price: Any) -> str:
    discount = calculate_discount_percentage(original_price, sale_price)
    return f"{discount}% OFF" if discount > 0 else ""


def calculate_savings(original_price: Any, sale_price: Any, currency: str = "USD") -> str:
    savings = _as_number(original_price) - _as_number(sale_price)
    return format_price(savings if savings > 0 else 0, currency)


def parse_price(price_string: Any) -> float:
    """'$1,299.99' -> 1299.99; anything unparsable -> 0.0"""
    if isinstance(price_string, (int, float)) and not isinstance(price_string, bool):
        return _as_number(price_string)
    if not isinstance(price_string, str):
        return 0.0
    try:
        value = float(_PRICE_JUNK.sub("", price_string))
    except ValueError:
        return 0.0
    return _as_number(value)


def format_price_compact(price: float) -> str:
    amount = _as_number(price)
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return format_price(amount)
