"""All models imported here so Base.metadata knows every table."""

from gymcourt.models.base import Base
from gymcourt.models.court import Court
from gymcourt.models.pricing import Package, PriceRule, PriceTier
from gymcourt.models.profile import DeletedProfile, Profile, UserRole
from gymcourt.models.reservation import (
    ACTIVE_STATUSES,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    SubscriptionType,
)

__all__ = [
    "Base",
    "Court",
    "PriceRule",
    "PriceTier",
    "Package",
    "Profile",
    "DeletedProfile",
    "UserRole",
    "Reservation",
    "ReservationStatus",
    "ACTIVE_STATUSES",
    "PaymentStatus",
    "SubscriptionType",
]
