"""
Tests for display formatting helpers (billtrack.utils.formatting).
"""

from datetime import timedelta, timezone
from decimal import Decimal

import pytest

from billtrack.utils.config import ConfigManager
from billtrack.utils.formatting import (
    format_amounts,
    format_datetime,
    format_elapsed,
    format_hours,
    format_minutes,
    format_money,
    pluralize,
)

from .conftest import utc


@pytest.mark.parametrize(
    "minutes, expected",
    [(0, "0m"), (-3, "0m"), (45, "45m"), (60, "1h"), (150, "2h 30m"), (601, "10h 1m")],
)
def test_format_minutes(minutes: int, expected: str) -> None:
    assert format_minutes(minutes) == expected


def test_format_elapsed() -> None:
    assert format_elapsed(timedelta(hours=1, minutes=2, seconds=3)) == "1:02:03"
    assert format_elapsed(timedelta(seconds=-10)) == "0:00:00"


def test_format_hours() -> None:
    assert format_hours(90) == "1.5h"
    assert format_hours(95) == "1.6h"
    assert format_hours(20, decimals=2) == "0.33h"
    assert format_hours(95, decimals=0) == "2h"


def test_format_hours_follows_configured_decimals(isolated_config: ConfigManager) -> None:
    isolated_config.set("display.hours_decimals", 2)

    assert format_hours(95) == "1.58h"


class TestMoney:
    def test_known_symbol(self) -> None:
        assert format_money(Decimal("1234.5"), "USD") == "$1,234.50"
        assert format_money(Decimal("20"), "eur") == "€20.00"

    def test_unknown_currency_uses_code(self) -> None:
        assert format_money(Decimal("7.125"), "CHF") == "CHF 7.13"

    def test_amounts_side_by_side(self) -> None:
        amounts = {"USD": Decimal("50"), "EUR": Decimal("20")}

        assert format_amounts(amounts) == "€20.00 + $50.00"
        assert format_amounts({}) == "-"


class TestFormatDatetime:
    def test_uses_configured_formats(self, isolated_config: ConfigManager) -> None:
        moment = utc(2026, 2, 25, 9, 5)

        assert format_datetime(moment) == "2026-02-25 09:05"
        assert format_datetime(moment, include_time=False) == "2026-02-25"
        assert format_datetime(moment, include_date=False) == "09:05"

    def test_explicit_timezone(self) -> None:
        moment = utc(2026, 2, 25, 23, 30)

        assert format_datetime(moment, tz=timezone(timedelta(hours=2))) == "2026-02-26 01:30"


def test_pluralize() -> None:
    assert pluralize(1, "entry", "entries") == "entry"
    assert pluralize(2, "entry", "entries") == "entries"
    assert pluralize(0, "project") == "projects"
