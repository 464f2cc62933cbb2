"""Unit tests for leaderboard week derivation."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from indexer.utils.week import current_week_number, week_id_for


class TestCurrentWeekNumber:
    """Tests for current_week_number."""

    def test_january_first_is_week_one(self):
        """January 1 always falls in week 1."""
        assert current_week_number(datetime(2026, 1, 1, tzinfo=UTC)) == 1

    @pytest.mark.parametrize(
        "moment,expected",
        [
            # 2026-01-01 is a Thursday (Sunday-based offset 4)
            (datetime(2026, 1, 3, 23, 59, tzinfo=UTC), 1),
            (datetime(2026, 1, 4, tzinfo=UTC), 2),
            (datetime(2026, 2, 1, tzinfo=UTC), 6),
            (datetime(2026, 12, 31, tzinfo=UTC), 53),
            # 2023-01-01 is a Sunday (offset 0)
            (datetime(2023, 1, 7, tzinfo=UTC), 1),
            (datetime(2023, 1, 8, tzinfo=UTC), 2),
        ],
    )
    def test_week_boundaries(self, moment, expected):
        """Weeks start on Sunday and count from January 1."""
        assert current_week_number(moment) == expected

    def test_naive_datetime_treated_as_utc(self):
        """Naive datetimes are interpreted as UTC."""
        naive = datetime(2026, 2, 1, 12, 0)
        aware = datetime(2026, 2, 1, 12, 0, tzinfo=UTC)
        assert current_week_number(naive) == current_week_number(aware)

    def test_other_timezone_converted_to_utc(self):
        """Aware datetimes in other zones are converted to UTC first."""
        # 2026-01-04 01:00 at UTC+3 is still 2026-01-03 in UTC
        moment = datetime(2026, 1, 4, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert current_week_number(moment) == 1

    def test_numbering_resets_every_year(self):
        """Week numbering restarts on January 1."""
        assert current_week_number(datetime(2025, 12, 31, tzinfo=UTC)) == 53
        assert current_week_number(datetime(2026, 1, 1, tzinfo=UTC)) == 1


class TestWeekId:
    """Tests for week_id_for."""

    def test_zero_padded(self):
        """Week numbers are zero padded to two digits."""
        assert week_id_for(5, datetime(2026, 2, 1, tzinfo=UTC)) == "2026-W05"

    def test_two_digit_week(self):
        assert week_id_for(42, datetime(2026, 10, 19, tzinfo=UTC)) == "2026-W42"

    def test_year_comes_from_clock(self):
        """The year is taken from the supplied time, not the week number."""
        assert week_id_for(1, datetime(2027, 1, 2, tzinfo=UTC)) == "2027-W01"
