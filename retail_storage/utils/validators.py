import re
from decimal import Decimal, InvalidOperation

# Invariant price format: digits, optional '.' followed by digits.
# No group separators and no locale-specific decimal comma.
PRICE_PATTERN = re.compile(r"^\d+(\.\d+)?$")
CURRENCY_SYMBOL = "$"


def parse_price(value) -> Decimal:
    """
    Parse a price into a Decimal using the single invariant format.

    Accepted inputs:
    - Decimal or int
    - float (converted through its shortest repr, so 19.99 stays 19.99)
    - str such as "19.99", " $19.99 " or "20"

    Rejected inputs:
    - Locale formats such as "19,99" or "1,234.50"
    - Negative, NaN or infinite values
    - bool and anything else

    Raises:
        ValueError: When the value is not a valid price
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid price: {value!r}")

    if isinstance(value, Decimal):
        price = value
    elif isinstance(value, int):
        price = Decimal(value)
    elif isinstance(value, float):
        try:
            price = Decimal(repr(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid price: {value!r}") from e
    elif isinstance(value, str):
        normalized = value.strip()
        if normalized.startswith(CURRENCY_SYMBOL):
            normalized = normalized[len(CURRENCY_SYMBOL):].strip()
        if not PRICE_PATTERN.match(normalized):
            raise ValueError(
                f"Invalid price {value!r}: enter a number such as 29.99 "
                "('.' as decimal separator, no thousands separators)"
            )
        price = Decimal(normalized)
    else:
        raise ValueError(f"Invalid price: {value!r}")

    if not price.is_finite():
        raise ValueError(f"Price must be a finite number, got {value!r}")
    if price < 0:
        raise ValueError(f"Price must not be negative, got {value!r}")

    return price


def format_price(price: Decimal) -> str:
    """Render a price in the invariant format (never scientific notation)."""
    return format(price, "f")
