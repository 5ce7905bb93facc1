"""Reservation routes for members and guests: book, preview, list, cancel."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.database import get_db
from gymcourt.core.dependencies import get_current_user, get_optional_user
from gymcourt.models.profile import Profile
from gymcourt.models.reservation import Reservation, ReservationStatus
from gymcourt.schemas import (
    ConflictCheckOut,
    ConflictCheckRequest,
    ConflictOut,
    ReservationCreate,
    ReservationOut,
    SlotSelectionIn,
)
from gymcourt.services.booking_rules import check_court_conflicts
from gymcourt.services.reservations import ReservationRequest, create_reservations, update_reservation
from gymcourt.services.selection import replay_selection

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    body: ReservationCreate,
    user: Profile | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Request a one-time booking. It stays pending until an admin approves it."""
    if user is None and not (body.guest_name and body.guest_phone):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Guests must give a name and phone number",
        )

    req = ReservationRequest(
        court_id=body.court_id,
        dates=[body.date],
        start_time=body.start_time,
        end_time=body.end_time,
        user_id=user.id if user else None,
        guest_name=body.guest_name,
        guest_phone=body.guest_phone,
        team_name=body.team_name,
        purpose=body.purpose,
        people_count=body.people_count,
        subscription_type=body.subscription_type,
        package_id=body.package_id,
    )
    rows = await create_reservations(db, req, status=ReservationStatus.PENDING)
    return rows[0]


@router.post("/selection", response_model=ConflictCheckOut)
async def check_selection(body: SlotSelectionIn, db: AsyncSession = Depends(get_db)):
    """Turn a set of board cells into a window and report what it clashes with.

    Non-contiguous selections are rejected before any conflict lookup.
    """
    start_time, end_time = replay_selection(body.court_id, body.date, body.slots)
    conflicts = await check_court_conflicts(db, body.court_id, [body.date], start_time, end_time)
    return ConflictCheckOut(dates=[body.date], conflicts=[ConflictOut.model_validate(c) for c in conflicts])


@router.post("/check", response_model=ConflictCheckOut)
async def check_conflicts(body: ConflictCheckRequest, db: AsyncSession = Depends(get_db)):
    conflicts = await check_court_conflicts(
        db,
        body.court_id,
        body.dates,
        body.start_time,
        body.end_time,
        exclude_group_id=body.exclude_group_id,
        exclude_id=body.exclude_id,
    )
    return ConflictCheckOut(dates=body.dates, conflicts=[ConflictOut.model_validate(c) for c in conflicts])


@router.get("/me", response_model=list[ReservationOut])
async def list_my_reservations(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Reservation)
        .where(Reservation.user_id == user.id)
        .order_by(Reservation.date.desc(), Reservation.start_time.desc())
        .limit(50)
    )
    return result.scalars().all()


@router.post("/{reservation_id}/cancel", response_model=ReservationOut)
async def cancel_reservation(
    reservation_id: int,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Reservation).where(Reservation.id == reservation_id, Reservation.user_id == user.id)
    )
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")

    return await update_reservation(db, reservation, status=ReservationStatus.CANCELED)
