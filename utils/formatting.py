"""
Formatting utilities.
"""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up."""
    return int(math.floor(value + 0.5))


def format_number(value: float) -> str:
    """
    Format a number for display without a trailing ``.0``.

    Args:
        value: Integer or float value.

    Returns:
        ``52`` for 52.0, ``41.6`` for 41.6, at most two decimals.
    """
    if isinstance(value, int):
        return str(value)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_man(amount: float) -> str:
    """
    Format a price held in man (10,000 yen) units.

    Args:
        amount: Price in man.

    Returns:
        Formatted string such as ``2,300万円``.
    """
    if float(amount).is_integer():
        return f"{int(amount):,}万円"
    return f"{amount:,.1f}万円"


def format_tsubo(area: float) -> str:
    """Format a land area in tsubo, e.g. ``52.5坪``."""
    return f"{format_number(area)}坪"

