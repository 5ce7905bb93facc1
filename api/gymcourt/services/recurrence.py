"""Expansion of a weekly recurrence into concrete reservation dates."""

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from gymcourt.services.timeutil import DAY_KEYS, ValidationError, day_index, parse_date

logger = logging.getLogger(__name__)

MAX_DAYS = 1000  # ~2.7 years


def normalize_days(days_of_week: Iterable) -> set[int]:
    """Accept day keys ("mon") or ints (0=Sunday) and return ints."""
    result: set[int] = set()
    for day in days_of_week:
        if isinstance(day, str):
            key = day.strip().lower()[:3]
            if key not in DAY_KEYS:
                raise ValidationError("days_of_week", f"unknown day {day!r}")
            result.add(DAY_KEYS.index(key))
        elif isinstance(day, int) and 0 <= day <= 6:
            result.add(day)
        else:
            raise ValidationError("days_of_week", f"unknown day {day!r}")
    return result


def generate_dates(
    start_date: str | date | None,
    end_date: str | date | None,
    days_of_week: Iterable,
    max_days: int = MAX_DAYS,
) -> list[date]:
    """Every date from start to end (both inclusive) whose weekday is requested.

    Iteration stops after ``max_days`` days; a longer range is truncated
    with a warning rather than rejected.
    """
    targets = normalize_days(days_of_week)
    if not targets or not start_date or not end_date:
        return []

    # Walk at local noon so a DST shift can never move a step onto another day
    current = datetime.combine(parse_date(start_date, "start_date"), time(12, 0))
    end = datetime.combine(parse_date(end_date, "end_date"), time(12, 0))

    dates: list[date] = []
    steps = 0
    while current <= end and steps < max_days:
        steps += 1
        if day_index(current.date()) in targets:
            dates.append(current.date())
        current += timedelta(days=1)

    if current <= end:
        logger.warning("Recurrence %s..%s truncated after %d days", start_date, end_date, max_days)

    return dates


def recurrence_rule(start_date: date, end_date: date, days_of_week: Iterable) -> dict:
    """The JSON stored on each row of a series, using day keys."""
    days = sorted(normalize_days(days_of_week))
    return {
        "daysOfWeek": [DAY_KEYS[d] for d in days],
        "startDate": start_date.isoformat(),
        "endDate": end_date.isoformat(),
    }
