"""Member lifecycle: withdrawal with an archive row."""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from gymcourt.models.profile import DeletedProfile, Profile
from gymcourt.models.reservation import Reservation

logger = logging.getLogger(__name__)


async def withdraw_member(db: AsyncSession, profile: Profile, reason: str | None = None) -> DeletedProfile:
    """Remove a profile, keeping a copy in ``deleted_profiles``.

    The member's reservations stay on the books as guest bookings under the
    member's name and phone, so the board and payment history do not change.
    """
    archived = DeletedProfile(
        profile_id=profile.id,
        email=profile.email,
        name=profile.name,
        phone=profile.phone,
        reason=reason,
    )
    db.add(archived)

    result = await db.execute(
        update(Reservation)
        .where(Reservation.user_id == profile.id)
        .values(user_id=None, guest_name=profile.name, guest_phone=profile.phone)
        .execution_options(synchronize_session="fetch")
    )
    await db.delete(profile)
    await db.flush()

    logger.info("Member %s withdrawn (%d reservation(s) kept as guest bookings)", profile.id, result.rowcount)
    return archived
