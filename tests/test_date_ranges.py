"""Unit tests for report date ranges (noon-anchored days, Sunday-start weeks)."""

from datetime import datetime

import pytest

from ledger.bet_stats import date_range_from_args, resolve_date_range
from ledger.exceptions import InvalidInputError

# Wednesday morning, before the noon day boundary
NOW = datetime(2026, 10, 14, 9, 30)


def noon(year, month, day):
    return datetime(year, month, day, 12, 0, 0)


class TestQuickFilters:

    @pytest.mark.parametrize("quick_filter, expected", [
        ("today", (noon(2026, 10, 14), noon(2026, 10, 15))),
        ("yesterday", (noon(2026, 10, 13), noon(2026, 10, 14))),
        ("thisWeek", (noon(2026, 10, 11), noon(2026, 10, 15))),
        ("lastWeek", (noon(2026, 10, 4), noon(2026, 10, 11))),
        ("thisMonth", (noon(2026, 10, 1), noon(2026, 10, 15))),
        ("lastMonth", (noon(2026, 9, 1), noon(2026, 10, 1))),
    ])
    def test_filters(self, quick_filter, expected):
        assert resolve_date_range(quick_filter, NOW) == expected

    def test_unknown_filter_falls_back_to_today(self):
        assert resolve_date_range("nextDecade", NOW) == resolve_date_range("today", NOW)

    def test_week_starts_on_sunday(self):
        sunday = datetime(2026, 10, 11, 18, 0)

        start, _ = resolve_date_range("thisWeek", sunday)

        assert start == noon(2026, 10, 11)

    def test_last_month_crosses_year(self):
        start, end = resolve_date_range("lastMonth", datetime(2026, 1, 20, 8, 0))

        assert start == noon(2025, 12, 1)
        assert end == noon(2026, 1, 1)


class TestExplicitRange:

    def test_explicit_dates_override_quick_filter(self):
        args = {
            "quickFilter": "lastMonth",
            "startDate": "2026-01-15T00:00:00",
            "endDate": "2026-01-16T00:00:00",
        }

        start, end = date_range_from_args(args, NOW)

        assert start == datetime(2026, 1, 15)
        assert end == datetime(2026, 1, 16)

    def test_default_is_today(self):
        assert date_range_from_args({}, NOW) == resolve_date_range("today", NOW)

    @pytest.mark.parametrize("args", [
        {"startDate": "2026-01-16T00:00:00", "endDate": "2026-01-15T00:00:00"},
        {"startDate": "2026-01-15T00:00:00", "endDate": "2026-01-15T00:00:00"},
        {"startDate": "2026-01-15T00:00:00"},
        {"endDate": "2026-01-15T00:00:00"},
        {"startDate": "yesterday-ish", "endDate": "2026-01-15T00:00:00"},
    ])
    def test_bad_ranges_are_rejected(self, args):
        with pytest.raises(InvalidInputError):
            date_range_from_args(args, NOW)
