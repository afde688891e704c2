"""
Utility functions for formatting durations, money and dates.

This module provides consistent formatting for the CLI tables.
"""

from datetime import datetime, timedelta, tzinfo
from decimal import Decimal
from typing import Mapping, Optional

from ..core.money import minutes_to_hours, round_money
from .config import get_config_manager

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "C$",
    "AUD": "A$",
    "MXN": "MX$",
}


def format_minutes(minutes: int) -> str:
    """
    Format whole minutes as a compact duration.

    Args:
        minutes: Number of minutes

    Returns:
        Formatted string (e.g., "2h 30m", "45m", "3h")
    """
    if minutes <= 0:
        return "0m"
    hours, rest = divmod(minutes, 60)
    if hours == 0:
        return f"{rest}m"
    if rest == 0:
        return f"{hours}h"
    return f"{hours}h {rest}m"


def format_elapsed(elapsed: timedelta) -> str:
    """Format a running timer's elapsed time, including seconds."""
    total_seconds = max(int(elapsed.total_seconds()), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:d}:{minutes:02d}:{seconds:02d}"


def format_hours(minutes: int, decimals: Optional[int] = None) -> str:
    """Format minutes as decimal hours, e.g. "1.5h". Decimals default to display.hours_decimals."""
    if decimals is None:
        decimals = get_config_manager().get_hours_decimals()
    return f"{minutes_to_hours(minutes, decimals)}h"


def format_money(amount: Decimal, currency: str) -> str:
    """
    Format an amount with its currency symbol.

    Unknown currencies are shown with their code as prefix.
    """
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    return f"{symbol}{round_money(amount):,.2f}"


def format_amounts(amounts: Mapping[str, Decimal]) -> str:
    """Format per-currency subtotals side by side, e.g. "$50.00 + €20.00"."""
    if not amounts:
        return "-"
    return " + ".join(format_money(amounts[c], c) for c in sorted(amounts))


def format_datetime(
    dt: datetime,
    tz: Optional[tzinfo] = None,
    include_date: bool = True,
    include_time: bool = True,
) -> str:
    """
    Format an aware datetime for display in the given timezone.

    Args:
        dt: The datetime to format
        tz: Display timezone (uses the configured one if None)
        include_date: Whether to include the date
        include_time: Whether to include the time

    Returns:
        Formatted datetime string
    """
    config = get_config_manager()
    local_dt = dt.astimezone(tz or config.get_timezone())

    parts = []
    if include_date:
        parts.append(local_dt.strftime(config.get_date_format()))
    if include_time:
        parts.append(local_dt.strftime(config.get_time_format()))

    return " ".join(parts)


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """Return singular or plural form based on count."""
    if plural is None:
        plural = singular + "s"
    return singular if count == 1 else plural
