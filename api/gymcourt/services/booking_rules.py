"""Booking rules enforcement.

All reservation validation lives here, separate from the route handlers.
Each pure check returns a BookingViolation (or raises one) with a clear
message; ``find_conflicts`` returns the clashing reservations themselves so
the caller can show them.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.models.court import Court
from gymcourt.models.reservation import ACTIVE_STATUSES, Reservation, ReservationStatus
from gymcourt.services.timeutil import MINUTES_PER_DAY, minutes_to_hhmm, span_minutes, time_to_minutes

logger = logging.getLogger(__name__)

SELECTION_STEP_MINUTES = 30

# Allowed status changes; anything not yet canceled may be canceled
STATUS_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.REJECTED, ReservationStatus.CANCELED},
    ReservationStatus.CONFIRMED: {ReservationStatus.PENDING, ReservationStatus.CANCELED},
    ReservationStatus.REJECTED: {ReservationStatus.CANCELED},
    ReservationStatus.CANCELED: set(),
}


class BookingViolation(Exception):
    """Raised when a booking rule is violated."""

    def __init__(self, rule: str, message: str):
        self.rule = rule
        self.message = message
        super().__init__(message)


class ReservationConflict(BookingViolation):
    """The requested window overlaps existing reservations."""

    def __init__(self, conflicts: list):
        self.conflicts = conflicts
        first = conflicts[0]
        super().__init__(
            "court_conflict",
            f"{len(conflicts)} conflicting reservation(s), first on {first.date} "
            f"from {first.start_time} to {first.end_time}.",
        )


def _segments(day: date, start_time: str, end_time: str) -> list[tuple[date, int, int]]:
    """Split a window into per-date [start, end) minute segments.

    A window crossing midnight yields a second segment on the following date.
    """
    start, end = span_minutes(start_time, end_time)
    if end <= MINUTES_PER_DAY:
        return [(day, start, end)]
    return [(day, start, MINUTES_PER_DAY), (day + timedelta(days=1), 0, end - MINUTES_PER_DAY)]


def _overlaps(a: tuple[date, int, int], b: tuple[date, int, int]) -> bool:
    return a[0] == b[0] and a[1] < b[2] and a[2] > b[1]


def find_conflicts(
    candidate_dates: Iterable[date],
    court_id,
    start_time: str,
    end_time: str,
    existing: Sequence,
    exclude_group_id: str | None = None,
    exclude_id=None,
) -> list:
    """Existing reservations that overlap the candidate window on any candidate date.

    Overlap is strict half-open (``s1 < e2 and e1 > s2``): a booking ending at
    12:00 does not clash with one starting at 12:00. Rejected and canceled
    reservations never conflict, and rows matching ``exclude_group_id`` or
    ``exclude_id`` are skipped so an edit never clashes with itself.
    """
    candidate_segments = [seg for d in candidate_dates for seg in _segments(d, start_time, end_time)]
    if not candidate_segments:
        return []

    conflicts = []
    for booking in existing:
        if booking.court_id != court_id:
            continue
        if booking.status not in ACTIVE_STATUSES:
            continue
        if exclude_group_id and booking.group_id == exclude_group_id:
            continue
        if exclude_id is not None and booking.id == exclude_id:
            continue

        booked = _segments(booking.date, booking.start_time, booking.end_time)
        if any(_overlaps(c, b) for c in candidate_segments for b in booked):
            conflicts.append(booking)

    return conflicts


def check_contiguous_slots(slots: Sequence[str]) -> BookingViolation | None:
    """A multi-slot selection must be an unbroken run of 30-minute slots."""
    minutes = sorted(time_to_minutes(s, "slots") for s in slots)
    for prev, cur in zip(minutes, minutes[1:]):
        if cur - prev != SELECTION_STEP_MINUTES:
            return BookingViolation(
                "non_contiguous",
                f"Selected slots must be consecutive; gap between {minutes_to_hhmm(prev)} and {minutes_to_hhmm(cur)}.",
            )
    return None


def selection_window(slots: Sequence[str]) -> tuple[str, str]:
    """(start_time, end_time) covered by a contiguous slot selection."""
    violation = check_contiguous_slots(slots)
    if violation:
        raise violation
    if not slots:
        raise BookingViolation("empty_selection", "Select at least one slot.")
    minutes = sorted(time_to_minutes(s, "slots") for s in slots)
    return minutes_to_hhmm(minutes[0]), minutes_to_hhmm(minutes[-1] + SELECTION_STEP_MINUTES)


def check_status_transition(current: ReservationStatus, new: ReservationStatus) -> BookingViolation | None:
    if current == new:
        return None
    if new not in STATUS_TRANSITIONS[current]:
        return BookingViolation(
            "status_transition",
            f"Cannot change a {current.value} reservation to {new.value}.",
        )
    return None


async def lock_court(db: AsyncSession, court_id: int) -> Court | None:
    """Lock the court row for the rest of the transaction.

    Every writer of a court's reservations takes this lock first, so two
    concurrent check-then-insert sequences on one court run one after another.
    """
    result = await db.execute(
        select(Court).where(Court.id == court_id, Court.is_active.is_(True)).with_for_update()
    )
    return result.scalar_one_or_none()


async def check_court_conflicts(
    db: AsyncSession,
    court_id: int,
    dates: Sequence[date],
    start_time: str,
    end_time: str,
    exclude_group_id: str | None = None,
    exclude_id: int | None = None,
) -> list[Reservation]:
    """Load the court's active reservations around ``dates`` and return the clashes."""
    if not dates:
        return []

    # One day either side catches windows spilling over midnight
    result = await db.execute(
        select(Reservation).where(
            Reservation.court_id == court_id,
            Reservation.date >= min(dates) - timedelta(days=1),
            Reservation.date <= max(dates) + timedelta(days=1),
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    existing = result.scalars().all()

    conflicts = find_conflicts(dates, court_id, start_time, end_time, existing, exclude_group_id, exclude_id)
    if conflicts:
        logger.info("Court %s: %d conflict(s) for %s-%s", court_id, len(conflicts), start_time, end_time)
    return conflicts
