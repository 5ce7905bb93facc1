"""Time-of-day arithmetic shared by pricing, conflicts and the schedule grid.

Pure calculation module: no database, no async, no FastAPI dependencies.
All ranges are compared in minutes since midnight.
"""

from datetime import date, time

MINUTES_PER_DAY = 24 * 60

# 0=Sunday .. 6=Saturday, the convention used by rules, packages and recurrences
DAY_KEYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


class ValidationError(ValueError):
    """Raised when a time or date field is malformed."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def time_to_minutes(value: str | time, field: str = "time") -> int:
    """Convert "HH:MM" or "HH:MM:SS" to minutes from midnight. Seconds are ignored.

    "24:00" is accepted and maps to 1440 (end of day).
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    parts = value.split(":") if isinstance(value, str) else []
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValidationError(field, f"expected HH:MM, got {value!r}")

    h, m = int(parts[0]), int(parts[1])
    if m > 59 or h > 24 or (h == 24 and m != 0):
        raise ValidationError(field, f"out of range: {value!r}")
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """Format minutes as "H:MM" (hour not zero-padded)."""
    return f"{minutes // 60}:{minutes % 60:02d}"


def minutes_to_hhmm(minutes: int) -> str:
    """Format minutes as zero-padded "HH:MM", wrapping past midnight (1500 -> "01:00")."""
    if minutes != MINUTES_PER_DAY:
        minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: str, field: str = "time") -> str:
    """Validate a time string and return it as "HH:MM"."""
    return minutes_to_hhmm(time_to_minutes(value, field))


def normalize_start_time(value: str, field: str = "start_time") -> str:
    """Like normalize_time, but "24:00" only closes a day and cannot start a booking."""
    minutes = time_to_minutes(value, field)
    if minutes == MINUTES_PER_DAY:
        raise ValidationError(field, "24:00 is only valid as an end time")
    return minutes_to_hhmm(minutes)


def day_index(d: date) -> int:
    """Weekday with 0=Sunday..6=Saturday (date.weekday() is 0=Monday)."""
    return (d.weekday() + 1) % 7


def parse_date(value: str | date, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(field, f"expected YYYY-MM-DD, got {value!r}") from None


def span_minutes(start_time: str | time, end_time: str | time) -> tuple[int, int]:
    """Return (start, end) in minutes, adding a day to the end when the range crosses midnight."""
    start = time_to_minutes(start_time, "start_time")
    end = time_to_minutes(end_time, "end_time")
    if end < start:
        end += MINUTES_PER_DAY
    return start, end
