"""
Display formatting for counts and percentages in cells and metric cards.
"""

from __future__ import annotations

from typing import Any, Optional


def format_number(value: Optional[float], decimals: int = 0, thousands: bool = True) -> str:
    if value is None:
        return "–"
    try:
        if thousands:
            return f"{float(value):,.{decimals}f}"
        return f"{float(value):.{decimals}f}"
    except (TypeError, ValueError):
        return "–"


def format_percent(value: Optional[float], decimals: int = 1, signed: bool = False) -> str:
    if value is None:
        return "–"
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return "–"
    sign = "+" if signed and numeric > 0 else ""
    return f"{sign}{numeric:.{decimals}f}%"


def format_metric_value(value: Any) -> str:
    """Card display: integers with separators, other numbers to two places."""
    if value is None:
        return "–"
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int) or (isinstance(value, float) and value.is_integer()):
        return format_number(value, 0)
    if isinstance(value, float):
        return format_number(value, 2)
    return str(value)
