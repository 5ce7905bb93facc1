"""The signed-in member's own profile."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.database import get_db
from gymcourt.core.dependencies import get_current_user
from gymcourt.models.profile import Profile
from gymcourt.schemas import ProfileOut, ProfileUpdate

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileOut)
async def get_profile(user: Profile = Depends(get_current_user)):
    return user


@router.patch("", response_model=ProfileOut)
async def complete_profile(
    body: ProfileUpdate,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Fill in name and phone after signup. Omitted fields are left alone."""
    for name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, name, value)
    await db.flush()
    return user
