"""Back-office routes: reservation management, series editing and member management."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.config import settings
from gymcourt.core.database import get_db
from gymcourt.core.dependencies import require_admin
from gymcourt.models.profile import DeletedProfile, Profile, UserRole
from gymcourt.models.reservation import Reservation, ReservationStatus
from gymcourt.schemas import (
    AdminReservationCreate,
    DeletedProfileOut,
    DeleteResult,
    ProfileOut,
    RecurrenceIn,
    ReservationOut,
    ReservationUpdate,
    RoleUpdate,
    SeriesUpdate,
)
from gymcourt.services.members import withdraw_member
from gymcourt.services.recurrence import generate_dates, normalize_days, recurrence_rule
from gymcourt.services.reservations import (
    SCOPE_SINGLE,
    ReservationRequest,
    create_reservations,
    delete_reservations,
    replan_series,
    update_reservation,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _expand(recurrence: RecurrenceIn) -> tuple[list[date], dict]:
    days = normalize_days(recurrence.days_of_week)
    dates = generate_dates(recurrence.start_date, recurrence.end_date, days, max_days=settings.recurrence_max_days)
    return dates, recurrence_rule(recurrence.start_date, recurrence.end_date, days)


async def _get_reservation(db: AsyncSession, reservation_id: int) -> Reservation:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    reservation = result.scalar_one_or_none()
    if not reservation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found")
    return reservation


async def _get_profile(db: AsyncSession, user_id: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return profile


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@router.get("/reservations", response_model=list[ReservationOut])
async def list_reservations(
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    status_filter: ReservationStatus | None = Query(None, alias="status"),
    court_id: int | None = Query(None),
    user_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    query = select(Reservation)
    if date_from:
        query = query.where(Reservation.date >= date_from)
    if date_to:
        query = query.where(Reservation.date <= date_to)
    if status_filter:
        query = query.where(Reservation.status == status_filter)
    if court_id:
        query = query.where(Reservation.court_id == court_id)
    if user_id:
        query = query.where(Reservation.user_id == user_id)

    result = await db.execute(query.order_by(Reservation.date, Reservation.start_time, Reservation.id).limit(500))
    return result.scalars().all()


@router.post("/reservations", response_model=list[ReservationOut], status_code=status.HTTP_201_CREATED)
async def create_admin_reservation(body: AdminReservationCreate, db: AsyncSession = Depends(get_db)):
    """Book on behalf of a user or guest. Admin bookings are confirmed at once.

    With ``recurrence`` every matching date is booked as one series; a clash
    on any date rejects the whole request.
    """
    if body.recurrence is not None:
        dates, rule = _expand(body.recurrence)
    else:
        dates, rule = [body.date], None

    req = ReservationRequest(
        court_id=body.court_id,
        dates=dates,
        start_time=body.start_time,
        end_time=body.end_time,
        user_id=body.user_id,
        guest_name=body.guest_name,
        guest_phone=body.guest_phone,
        team_name=body.team_name,
        purpose=body.purpose,
        people_count=body.people_count,
        subscription_type=body.subscription_type,
        color=body.color,
        recurrence_rule=rule,
    )
    return await create_reservations(db, req, status=ReservationStatus.CONFIRMED)


@router.patch("/reservations/{reservation_id}", response_model=ReservationOut)
async def edit_reservation(reservation_id: int, body: ReservationUpdate, db: AsyncSession = Depends(get_db)):
    reservation = await _get_reservation(db, reservation_id)
    fields = body.model_dump(exclude_unset=True)
    return await update_reservation(
        db,
        reservation,
        status=fields.pop("status", None),
        start_time=fields.pop("start_time", None),
        end_time=fields.pop("end_time", None),
        **fields,
    )


@router.put("/series/{group_id}", response_model=list[ReservationOut])
async def edit_series(group_id: str, body: SeriesUpdate, db: AsyncSession = Depends(get_db)):
    """Redefine a recurring series; only the differences are written."""
    dates, rule = _expand(body.recurrence)
    req = ReservationRequest(
        court_id=body.court_id,
        dates=dates,
        start_time=body.start_time,
        end_time=body.end_time,
        team_name=body.team_name,
        purpose=body.purpose,
        people_count=body.people_count,
        subscription_type=body.subscription_type,
        color=body.color,
        recurrence_rule=rule,
    )
    return await replan_series(db, group_id, req)


@router.delete("/reservations/{reservation_id}", response_model=DeleteResult)
async def remove_reservation(
    reservation_id: int,
    scope: str = Query(SCOPE_SINGLE, description="single, following or series"),
    db: AsyncSession = Depends(get_db),
):
    reservation = await _get_reservation(db, reservation_id)
    deleted = await delete_reservations(db, reservation, scope)
    return DeleteResult(deleted=deleted)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[ProfileOut])
async def search_users(
    q: str | None = Query(None, min_length=1),
    role: UserRole | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Find profiles by name, email or phone (for booking on someone's behalf).

    ``role=admin`` lists the admin roster.
    """
    query = select(Profile)
    if q:
        pattern = f"%{q}%"
        query = query.where(
            or_(Profile.name.ilike(pattern), Profile.email.ilike(pattern), Profile.phone.ilike(pattern))
        )
    if role:
        query = query.where(Profile.role == role)
    result = await db.execute(query.order_by(Profile.name).limit(20))
    return result.scalars().all()


@router.patch("/users/{user_id}/role", response_model=ProfileOut)
async def change_role(
    user_id: str,
    body: RoleUpdate,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id and body.role != admin.role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")

    profile = await _get_profile(db, user_id)
    profile.role = body.role
    await db.flush()
    return profile


@router.get("/users/withdrawn", response_model=list[DeletedProfileOut])
async def list_withdrawn_users(q: str | None = Query(None, min_length=1), db: AsyncSession = Depends(get_db)):
    """Archived profiles of withdrawn members, most recent first."""
    query = select(DeletedProfile)
    if q:
        pattern = f"%{q}%"
        query = query.where(
            or_(
                DeletedProfile.name.ilike(pattern),
                DeletedProfile.email.ilike(pattern),
                DeletedProfile.phone.ilike(pattern),
            )
        )
    result = await db.execute(query.order_by(DeletedProfile.deleted_at.desc(), DeletedProfile.id.desc()).limit(100))
    return result.scalars().all()


@router.get("/users/{user_id}/reservations", response_model=list[ReservationOut])
async def list_user_reservations(user_id: str, db: AsyncSession = Depends(get_db)):
    """A member's ten most recent reservations."""
    await _get_profile(db, user_id)
    result = await db.execute(
        select(Reservation)
        .where(Reservation.user_id == user_id)
        .order_by(Reservation.date.desc(), Reservation.start_time.desc())
        .limit(10)
    )
    return result.scalars().all()


@router.delete("/users/{user_id}", response_model=DeletedProfileOut)
async def withdraw_user(
    user_id: str,
    reason: str | None = Query(None, max_length=200),
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Force-withdraw a member. The profile is archived, its bookings become guest bookings."""
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot withdraw yourself")

    profile = await _get_profile(db, user_id)
    return await withdraw_member(db, profile, reason)
