"""Pricing catalog and quotes (public)."""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.config import settings
from gymcourt.core.database import get_db
from gymcourt.models.court import Court
from gymcourt.schemas import PackageOut, PriceRuleOut, QuoteOut, QuoteRequest
from gymcourt.services.packages import find_applicable_packages
from gymcourt.services.pricing import quote
from gymcourt.services.reservations import load_packages, load_rules
from gymcourt.services.timeutil import day_index, normalize_start_time

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.get("/rules", response_model=list[PriceRuleOut])
async def list_rules(db: AsyncSession = Depends(get_db)):
    return await load_rules(db)


@router.get("/packages", response_model=list[PackageOut])
async def list_packages(
    court_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await load_packages(db, court_id)


@router.post("/quote", response_model=QuoteOut)
async def get_quote(body: QuoteRequest, db: AsyncSession = Depends(get_db)):
    """Price a prospective reservation and list the packages that would cover it."""
    result = await db.execute(select(Court).where(Court.id == body.court_id, Court.is_active.is_(True)))
    court = result.scalar_one_or_none()
    if court is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Court not found")

    normalize_start_time(body.start_time)
    rules = await load_rules(db)
    q = quote(
        body.date,
        body.start_time,
        body.end_time,
        court,
        rules,
        people_count=body.people_count,
        subscription_type=body.subscription_type,
        fallback_rate=settings.pricing_fallback_rate,
    )
    packages = find_applicable_packages(
        court.id, day_index(body.date), body.start_time, body.end_time, await load_packages(db, court.id)
    )

    return QuoteOut(
        court_id=court.id,
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        mode=q.mode,
        base_total=q.base_total,
        discount_percent=q.discount_percent,
        total=q.total,
        breakdown=q.breakdown,
        packages=[PackageOut.model_validate(p) for p in packages],
    )
