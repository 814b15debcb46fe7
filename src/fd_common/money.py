"""Integer money utilities.

All prices, totals, and balances are int kobo (1/100 naira). No float, no Decimal.
Display strings are produced only at the API boundary and never stored.
"""

CURRENCY_SYMBOLS = {"NGN": "₦"}


def validate_amount(amount: int) -> None:
    """Reject non-integer and non-positive amounts (bool is not an amount)."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of kobo, got {amount!r}")
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")


def kobo_to_display(kobo: int, currency: str = "NGN") -> str:
    """Convert kobo to display string: 150000 -> '₦1,500.00', -1200 -> '-₦12.00'."""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if kobo < 0 else ""
    abs_kobo = abs(kobo)
    return f"{sign}{symbol}{abs_kobo // 100:,}.{abs_kobo % 100:02d}"


def line_total(unit_price: int, quantity: int) -> int:
    return unit_price * quantity
