"""FastAPI dependencies for injection into route handlers."""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.core.auth import subject_from_token
from gymcourt.core.database import get_db
from gymcourt.models.profile import Profile, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


async def _load_profile(token: str, db: AsyncSession) -> Profile:
    try:
        user_id = subject_from_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return profile


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Extract and validate the current user from the bearer token."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return await _load_profile(credentials.credentials, db)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Profile | None:
    """Like get_current_user, but anonymous (guest) requests yield None.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None
    return await _load_profile(credentials.credentials, db)


async def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    """Require the current user to hold the admin role."""
    if user.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
