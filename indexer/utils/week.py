"""
Leaderboard week helpers.

Week numbers restart every January 1 and count Sunday-started weeks, so the
last days of December and the first days of January can disagree with
ISO-8601 week numbering.
"""

import math
from datetime import UTC, datetime

SECONDS_PER_DAY = 24 * 60 * 60


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now.astimezone(UTC)


def current_week_number(now: datetime) -> int:
    """
    Compute the leaderboard week number for a moment in time.

    Args:
        now: Current time (naive values are treated as UTC)

    Returns:
        1-based week number within the calendar year
    """
    now = _as_utc(now)
    start_of_year = datetime(now.year, 1, 1, tzinfo=UTC)
    days = math.floor((now - start_of_year).total_seconds() / SECONDS_PER_DAY)
    # Sunday = 0 offset of January 1
    jan1_weekday = (start_of_year.weekday() + 1) % 7
    return math.ceil((days + jan1_weekday + 1) / 7)


def week_id_for(week_number: int, now: datetime) -> str:
    """
    Build the leaderboard week document id.

    The year always comes from ``now``, not from the week number.

    Args:
        week_number: Week number reported by the contract
        now: Current time

    Returns:
        Week id such as ``2026-W05``
    """
    return f"{_as_utc(now).year}-W{int(week_number):02d}"
