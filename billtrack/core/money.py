"""Decimal helpers for durations, hours and money."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Mapping, Optional, Union

CENTS = Decimal("0.01")
SIXTY = Decimal(60)

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without inheriting float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(amount: Number) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def duration_minutes(start_time: datetime, end_time: datetime) -> int:
    """Whole minutes between two instants, half a minute rounds up."""
    seconds = to_decimal((end_time - start_time).total_seconds())
    return int((seconds / SIXTY).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def minutes_to_hours(minutes: int, places: int = 1) -> Decimal:
    """Hours for display, one decimal place unless told otherwise."""
    exponent = Decimal(1).scaleb(-max(places, 0))
    return (Decimal(minutes) / SIXTY).quantize(exponent, rounding=ROUND_HALF_UP)


def billable_amount(minutes: int, hourly_rate: Optional[Number]) -> Decimal:
    """Unrounded amount earned for the given minutes. No rate means zero."""
    if hourly_rate is None:
        return Decimal(0)
    return Decimal(minutes) / SIXTY * to_decimal(hourly_rate)


def add_to_totals(totals: Dict[str, Decimal], currency: str, amount: Decimal) -> None:
    """Accumulate an amount into a per-currency mapping."""
    totals[currency] = totals.get(currency, Decimal(0)) + amount


def round_totals(totals: Mapping[str, Decimal]) -> Dict[str, Decimal]:
    """Round every currency subtotal to cents, keyed in currency order."""
    return {currency: round_money(totals[currency]) for currency in sorted(totals)}
