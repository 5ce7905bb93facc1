"""Public schedule board: courts and the projected weekly grid."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from gymcourt.core.config import settings
from gymcourt.core.database import get_db
from gymcourt.models.court import Court
from gymcourt.models.reservation import ACTIVE_STATUSES, Reservation
from gymcourt.schemas import CourtOut, ScheduleOut, TimeSlotOut
from gymcourt.services.schedule import project

router = APIRouter(tags=["schedule"])


async def _active_courts(db: AsyncSession) -> list[Court]:
    result = await db.execute(select(Court).where(Court.is_active.is_(True)).order_by(Court.sort_order, Court.id))
    return list(result.scalars().all())


def _monday_of(d: date) -> date:
    return d - timedelta(days=d.weekday())


@router.get("/courts", response_model=list[CourtOut])
async def list_courts(db: AsyncSession = Depends(get_db)):
    return await _active_courts(db)


@router.get("/schedule", response_model=ScheduleOut)
async def get_schedule(
    week_start: date | None = Query(None, description="Any date in the week, YYYY-MM-DD (defaults to this week)"),
    resolution: int = Query(30, description="Row length in minutes: 30 or 60"),
    db: AsyncSession = Depends(get_db),
):
    """Return the board for one week (Monday to Sunday).

    Cells with ``row_span`` 0 are covered by the cell above and must not be
    rendered on their own.
    """
    if resolution not in (30, 60):
        resolution = 30
    today = datetime.now(ZoneInfo(settings.timezone)).date()
    monday = _monday_of(week_start or today)

    courts = await _active_courts(db)
    result = await db.execute(
        select(Reservation)
        .options(selectinload(Reservation.profile))
        .where(
            Reservation.date >= monday,
            Reservation.date < monday + timedelta(days=7),
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    bookings = result.scalars().all()

    grid = project(
        bookings,
        monday,
        courts,
        slot_minutes=resolution,
        start_hour=settings.schedule_start_hour,
        end_hour=settings.schedule_end_hour,
    )
    return ScheduleOut(
        week_start=monday,
        resolution=resolution,
        courts=[CourtOut.model_validate(c) for c in courts],
        slots=[TimeSlotOut.model_validate(row) for row in grid],
    )
