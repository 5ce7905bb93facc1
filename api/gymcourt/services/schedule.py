"""Weekly schedule board projection.

Pure calculation module: maps a week of reservations onto a fixed grid of
rows (30 or 60 minutes) x 7 days x courts. The first cell of a booking gets
the label and a ``row_span``; the cells it covers get ``row_span = 0`` so the
renderer skips them.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import inspect

from gymcourt.models.reservation import ACTIVE_STATUSES, ReservationStatus
from gymcourt.services.timeutil import minutes_to_hhmm, span_minutes

logger = logging.getLogger(__name__)

# Column order of the board (Monday first)
WEEK_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

PLACEHOLDER_TEXT = "Reserved"
PENDING_PREFIX = "(Pending) "


@dataclass
class CellData:
    text: str = ""
    row_span: int = 1
    color: str | None = None
    reservation_id: int | None = None


@dataclass
class TimeSlot:
    time: str
    courts: dict[str, dict[str, CellData]] = field(default_factory=dict)


def _profile_unloaded(booking) -> bool:
    state = inspect(booking, raiseerr=False)
    return state is not None and "profile" in state.unloaded


def display_text(booking) -> str:
    """Team name > registered user's name > guest name > placeholder."""
    profile = None if _profile_unloaded(booking) else getattr(booking, "profile", None)
    text = (
        booking.team_name
        or (profile.name if profile is not None else None)
        or booking.guest_name
        or PLACEHOLDER_TEXT
    )
    if booking.status == ReservationStatus.PENDING:
        return PENDING_PREFIX + text
    return text


def empty_grid(court_keys: Sequence[str], slot_minutes: int, start_hour: int, end_hour: int) -> list[TimeSlot]:
    rows = []
    for minute in range(start_hour * 60, end_hour * 60, slot_minutes):
        rows.append(
            TimeSlot(
                time=minutes_to_hhmm(minute),
                courts={day: {key: CellData() for key in court_keys} for day in WEEK_KEYS},
            )
        )
    return rows


def project(
    bookings: Sequence,
    week_start: date,
    courts: Sequence,
    slot_minutes: int = 30,
    start_hour: int = 6,
    end_hour: int = 24,
) -> list[TimeSlot]:
    """Project ``bookings`` onto the board for the 7 days from ``week_start``.

    ``courts`` supply ``id``, ``slug`` and ``color``. Bookings that are
    rejected/canceled, outside the week, on an unknown court, or starting
    outside the grid hours are left out. A booking that would land on a cell
    already owned by another one is dropped; spans stop short of foreign
    cells.
    """
    if slot_minutes not in (30, 60):
        raise ValueError("slot_minutes must be 30 or 60")

    by_id = {c.id: c for c in courts}
    grid = empty_grid([c.slug for c in courts], slot_minutes, start_hour, end_hour)
    grid_start = start_hour * 60
    week_end = week_start + timedelta(days=7)

    ordered = sorted(bookings, key=lambda b: (b.date, b.start_time, b.id))
    for booking in ordered:
        if booking.status not in ACTIVE_STATUSES:
            continue
        if not (week_start <= booking.date < week_end):
            continue
        court = by_id.get(booking.court_id)
        if court is None:
            continue

        start, end = span_minutes(booking.start_time, booking.end_time)
        if start < grid_start:
            continue
        # A start between rows (10:30 on an hourly board) lands in the row above
        row = (start - grid_start) // slot_minutes
        if row >= len(grid):
            continue

        day_key = WEEK_KEYS[booking.date.weekday()]
        first = grid[row].courts[day_key][court.slug]
        if first.reservation_id is not None:
            logger.warning("Reservation %s overlaps %s on the board; not shown", booking.id, first.reservation_id)
            continue

        row_start = grid_start + row * slot_minutes
        span = max(1, math.ceil((end - row_start) / slot_minutes))
        span = min(span, len(grid) - row)

        # Shorten the span at the first cell owned by another booking
        for i in range(1, span):
            if grid[row + i].courts[day_key][court.slug].reservation_id is not None:
                span = i
                break

        first.text = display_text(booking)
        first.row_span = span
        first.color = booking.color or court.color
        first.reservation_id = booking.id

        for i in range(1, span):
            merged = grid[row + i].courts[day_key][court.slug]
            merged.row_span = 0
            merged.reservation_id = booking.id

    return grid
