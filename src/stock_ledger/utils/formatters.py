"""Formatting utilities for display values."""

from datetime import datetime


def format_currency(value: float, symbol: str = "Rp") -> str:
    """Format an amount with thousands separators, e.g. ``Rp 1,250,000``.

    Whole amounts drop the decimals; fractional ones keep two places.
    """
    if float(value).is_integer():
        return f"{symbol} {value:,.0f}"
    return f"{symbol} {value:,.2f}"


def format_quantity(value: int, low_stock_threshold: int = 0) -> str:
    """Format quantity, flagging low stock."""
    if low_stock_threshold > 0 and value < low_stock_threshold:
        return f"{value} (LOW)"
    return str(value)


def format_invoice_number(order_id: int) -> str:
    return f"SO-{order_id:05d}"


def format_date(value: str | None) -> str:
    """Render a stored ``YYYY-MM-DD HH:MM:SS`` timestamp as ``DD Mon YYYY``."""
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value).strftime("%d %b %Y")
    except ValueError:
        return value
