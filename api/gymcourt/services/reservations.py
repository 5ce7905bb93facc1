"""Reservation workflows: create, edit, re-plan a series, delete.

Every workflow runs inside the caller's session transaction and takes the
court row lock before checking conflicts, so check-then-write is serialised
per court and a failure part-way leaves nothing behind.
"""

import logging
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.config import settings
from gymcourt.models.court import Court
from gymcourt.models.pricing import Package, PriceRule
from gymcourt.models.reservation import Reservation, ReservationStatus
from gymcourt.services.booking_rules import (
    BookingViolation,
    ReservationConflict,
    check_court_conflicts,
    check_status_transition,
    lock_court,
)
from gymcourt.services.packages import apply_package, package_applies
from gymcourt.services.pricing import quote
from gymcourt.services.timeutil import day_index, normalize_start_time, normalize_time

logger = logging.getLogger(__name__)

SCOPE_SINGLE = "single"
SCOPE_FOLLOWING = "following"
SCOPE_SERIES = "series"

# PostgreSQL names the index; SQLite names its columns
DOUBLE_BOOKING_MARKERS = (
    "ix_reservations_no_double",
    "reservations.court_id, reservations.date, reservations.start_time",
)


@dataclass
class ReservationRequest:
    """Everything needed to place one reservation per date."""

    court_id: int
    dates: list[date]
    start_time: str
    end_time: str
    user_id: str | None = None
    guest_name: str | None = None
    guest_phone: str | None = None
    team_name: str | None = None
    purpose: str | None = None
    people_count: int = 1
    subscription_type: str = "daily"
    package_id: int | None = None
    color: str | None = None
    recurrence_rule: dict | None = None


async def load_rules(db: AsyncSession) -> list[PriceRule]:
    """Active rules in id order (priority ties go to the lowest id)."""
    result = await db.execute(select(PriceRule).where(PriceRule.is_active.is_(True)).order_by(PriceRule.id))
    return list(result.scalars().all())


async def load_packages(db: AsyncSession, court_id: int | None = None) -> list[Package]:
    query = select(Package).where(Package.is_active.is_(True))
    if court_id is not None:
        query = query.where(Package.court_id == court_id)
    result = await db.execute(query.order_by(Package.id))
    return list(result.scalars().all())


async def _locked_court(db: AsyncSession, court_id: int) -> Court:
    court = await lock_court(db, court_id)
    if court is None:
        raise BookingViolation("not_found", "Court not found or not bookable.")
    return court


async def _resolve_package(db: AsyncSession, req: ReservationRequest) -> Package | None:
    if req.package_id is None:
        return None
    result = await db.execute(
        select(Package).where(Package.id == req.package_id, Package.is_active.is_(True))
    )
    pkg = result.scalar_one_or_none()
    if pkg is None:
        raise BookingViolation("not_found", "Package not found.")

    _, start, end = apply_package(pkg)
    for d in req.dates:
        if not package_applies(pkg, req.court_id, day_index(d), start, end):
            raise BookingViolation("package_unavailable", f"Package '{pkg.name}' is not offered on {d}.")
    return pkg


async def _price(
    db: AsyncSession,
    court: Court,
    req: ReservationRequest,
    dates: Sequence[date],
    pkg: Package | None,
) -> dict[date, int]:
    if pkg is not None:
        return {d: pkg.total_price for d in dates}

    rules = await load_rules(db)
    return {
        d: quote(
            d,
            req.start_time,
            req.end_time,
            court,
            rules,
            people_count=req.people_count,
            subscription_type=req.subscription_type,
            fallback_rate=settings.pricing_fallback_rate,
        ).total
        for d in dates
    }


def is_double_booking(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in DOUBLE_BOOKING_MARKERS)


async def _flush(db: AsyncSession) -> None:
    """Flush, reporting a double-booking index hit (a concurrent booking) as a conflict.

    Any other integrity error is a storage fault and propagates.
    """
    try:
        await db.flush()
    except IntegrityError as exc:
        if not is_double_booking(exc):
            raise
        raise BookingViolation(
            "court_conflict", "The court was booked by someone else at the same time. Please refresh."
        ) from None


async def create_reservations(
    db: AsyncSession,
    req: ReservationRequest,
    status: ReservationStatus = ReservationStatus.PENDING,
) -> list[Reservation]:
    """Validate, price and insert one row per requested date.

    More than one date (or a recurrence rule) makes a series sharing a new
    group id. Raises ReservationConflict if any date clashes.
    """
    if not req.dates:
        raise BookingViolation("no_dates", "No dates fall within the selected period.")

    court = await _locked_court(db, req.court_id)
    pkg = await _resolve_package(db, req)
    if pkg is not None:
        _, req.start_time, req.end_time = apply_package(pkg)
    else:
        req.start_time = normalize_start_time(req.start_time)
        req.end_time = normalize_time(req.end_time, "end_time")

    if req.start_time == req.end_time:
        raise BookingViolation("empty_window", "End time must differ from start time.")

    conflicts = await check_court_conflicts(db, court.id, req.dates, req.start_time, req.end_time)
    if conflicts:
        raise ReservationConflict(conflicts)

    prices = await _price(db, court, req, req.dates, pkg)
    group_id = str(uuid.uuid4()) if (len(req.dates) > 1 or req.recurrence_rule) else None

    rows = [
        Reservation(
            court_id=court.id,
            date=d,
            start_time=req.start_time,
            end_time=req.end_time,
            status=status,
            user_id=req.user_id,
            guest_name=req.guest_name if req.user_id is None else None,
            guest_phone=req.guest_phone if req.user_id is None else None,
            team_name=req.team_name,
            purpose=req.purpose,
            people_count=req.people_count,
            subscription_type=req.subscription_type,
            package_id=req.package_id,
            color=req.color,
            total_price=prices[d],
            group_id=group_id,
            recurrence_rule=req.recurrence_rule,
        )
        for d in sorted(req.dates)
    ]
    db.add_all(rows)
    await _flush(db)

    logger.info("Created %d reservation(s) on court %s (group=%s)", len(rows), court.slug, group_id)
    return rows


async def update_reservation(
    db: AsyncSession,
    reservation: Reservation,
    *,
    status: ReservationStatus | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
    **fields,
) -> Reservation:
    """Apply an admin edit to a single row.

    Status changes follow STATUS_TRANSITIONS. A time change is conflict
    checked against everything except this row and re-priced.
    """
    if status is not None:
        violation = check_status_transition(reservation.status, status)
        if violation:
            raise violation
        if status != reservation.status:
            logger.info("Reservation %s: %s -> %s", reservation.id, reservation.status.value, status.value)
            reservation.status = status

    new_start = normalize_start_time(start_time) if start_time else reservation.start_time
    new_end = normalize_time(end_time, "end_time") if end_time else reservation.end_time
    if (new_start, new_end) != (reservation.start_time, reservation.end_time):
        if new_start == new_end:
            raise BookingViolation("empty_window", "End time must differ from start time.")
        court = await _locked_court(db, reservation.court_id)
        conflicts = await check_court_conflicts(
            db, court.id, [reservation.date], new_start, new_end, exclude_id=reservation.id
        )
        if conflicts:
            raise ReservationConflict(conflicts)

        reservation.start_time = new_start
        reservation.end_time = new_end
        if reservation.package_id is None:
            req = ReservationRequest(
                court_id=court.id,
                dates=[reservation.date],
                start_time=new_start,
                end_time=new_end,
                people_count=reservation.people_count,
                subscription_type=reservation.subscription_type,
            )
            reservation.total_price = (await _price(db, court, req, req.dates, None))[reservation.date]

    for name, value in fields.items():
        setattr(reservation, name, value)

    await _flush(db)
    return reservation


async def replan_series(
    db: AsyncSession,
    group_id: str,
    req: ReservationRequest,
) -> list[Reservation]:
    """Redefine a recurring series and apply the difference in one transaction.

    Dates kept by the new definition are updated in place (ids, status and
    payment survive), dropped dates are deleted, new dates are inserted as
    confirmed rows of the same group.
    """
    result = await db.execute(select(Reservation).where(Reservation.group_id == group_id))
    existing = {r.date: r for r in result.scalars().all()}
    if not existing:
        raise BookingViolation("not_found", "Series not found.")
    if not req.dates:
        raise BookingViolation("no_dates", "No dates fall within the selected period.")

    # Lock every court touched, in id order
    locked = {}
    for court_id in sorted({req.court_id, *(r.court_id for r in existing.values())}):
        locked[court_id] = await _locked_court(db, court_id)
    court = locked[req.court_id]

    # New rows inherit the series owner unless the edit names one
    if req.user_id is None and req.guest_name is None:
        template = next(iter(existing.values()))
        req.user_id, req.guest_name, req.guest_phone = template.user_id, template.guest_name, template.guest_phone

    req.start_time = normalize_start_time(req.start_time)
    req.end_time = normalize_time(req.end_time, "end_time")
    if req.start_time == req.end_time:
        raise BookingViolation("empty_window", "End time must differ from start time.")

    conflicts = await check_court_conflicts(
        db, court.id, req.dates, req.start_time, req.end_time, exclude_group_id=group_id
    )
    if conflicts:
        raise ReservationConflict(conflicts)

    prices = await _price(db, court, req, req.dates, None)
    new_dates = set(req.dates)

    removed = [r for d, r in existing.items() if d not in new_dates]
    for row in removed:
        await db.delete(row)

    rows = []
    for d in sorted(new_dates):
        row = existing.get(d)
        if row is None:
            row = Reservation(
                date=d,
                group_id=group_id,
                status=ReservationStatus.CONFIRMED,
                user_id=req.user_id,
                guest_name=req.guest_name if req.user_id is None else None,
                guest_phone=req.guest_phone if req.user_id is None else None,
            )
            db.add(row)
        row.court_id = court.id
        row.start_time = req.start_time
        row.end_time = req.end_time
        row.team_name = req.team_name
        row.purpose = req.purpose
        row.people_count = req.people_count
        row.subscription_type = req.subscription_type
        row.color = req.color
        row.total_price = prices[d]
        row.recurrence_rule = req.recurrence_rule
        rows.append(row)

    await _flush(db)
    logger.info(
        "Series %s re-planned: %d kept, %d added, %d removed",
        group_id,
        len(new_dates & existing.keys()),
        len(new_dates - existing.keys()),
        len(removed),
    )
    return rows


async def delete_reservations(db: AsyncSession, reservation: Reservation, scope: str = SCOPE_SINGLE) -> int:
    """Delete one row, this and later rows of its series, or the whole series.

    Returns the number of rows deleted. Rows without a group only support
    deleting themselves, whatever the scope.
    """
    if scope not in (SCOPE_SINGLE, SCOPE_FOLLOWING, SCOPE_SERIES):
        raise BookingViolation("invalid_scope", f"Unknown delete scope: {scope}")

    if scope == SCOPE_SINGLE or reservation.group_id is None:
        await db.delete(reservation)
        await db.flush()
        return 1

    query = delete(Reservation).where(Reservation.group_id == reservation.group_id)
    if scope == SCOPE_FOLLOWING:
        query = query.where(Reservation.date >= reservation.date)
    result = await db.execute(query.execution_options(synchronize_session="fetch"))
    logger.info("Deleted %d row(s) of series %s (scope=%s)", result.rowcount, reservation.group_id, scope)
    return result.rowcount
