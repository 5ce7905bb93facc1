"""Reservation model.

A reservation holds one court for one date between ``start_time`` and
``end_time`` ("HH:MM"; an end before the start means the booking runs past
midnight). Recurring bookings are N rows sharing a ``group_id``.
"""

import datetime as dt
import enum
from typing import TYPE_CHECKING

from sqlalchemy import Date, Enum, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gymcourt.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from gymcourt.models.court import Court
    from gymcourt.models.profile import Profile


class ReservationStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"
    REJECTED = "rejected"


# Statuses that hold the court
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


class PaymentStatus(enum.StrEnum):
    UNPAID = "unpaid"
    PAID = "paid"
    ADJUSTMENT_REQUESTED = "adjustment_requested"


class SubscriptionType(enum.StrEnum):
    DAILY = "daily"
    MONTHLY = "monthly"
    QUARTERLY = "3month"


_ACTIVE_SQL = text("status IN ('pending', 'confirmed')")


class Reservation(TimestampMixin, Base):
    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)

    # When
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)

    # Status
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status", values_callable=lambda e: [x.value for x in e]),
        default=ReservationStatus.PENDING,
        nullable=False,
    )

    # Owner: a registered user OR a guest, never both
    user_id: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"))
    guest_name: Mapped[str | None] = mapped_column(String(100))
    guest_phone: Mapped[str | None] = mapped_column(String(50))

    # What
    team_name: Mapped[str | None] = mapped_column(String(100))
    purpose: Mapped[str | None] = mapped_column(Text)
    people_count: Mapped[int] = mapped_column(default=1, nullable=False)
    color: Mapped[str | None] = mapped_column(String(20))

    # Money
    total_price: Mapped[int] = mapped_column(default=0, nullable=False)
    final_fee: Mapped[int | None] = mapped_column()
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.UNPAID,
        nullable=False,
    )
    adjustment_reason: Mapped[str | None] = mapped_column(Text)
    subscription_type: Mapped[SubscriptionType] = mapped_column(
        Enum(SubscriptionType, name="subscription_type", values_callable=lambda e: [x.value for x in e]),
        default=SubscriptionType.DAILY,
        nullable=False,
    )
    package_id: Mapped[int | None] = mapped_column(ForeignKey("packages.id"))

    # Recurrence
    group_id: Mapped[str | None] = mapped_column(String(36), index=True)
    recurrence_rule: Mapped[dict | None] = mapped_column(JSONType)

    # Relationships
    court: Mapped["Court"] = relationship(lazy="raise")
    profile: Mapped["Profile | None"] = relationship(lazy="raise")

    __table_args__ = (
        # Backstop against concurrent double-booking of the same start slot.
        # Overlaps with different starts are caught under the court row lock.
        Index(
            "ix_reservations_no_double",
            "court_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=_ACTIVE_SQL,
            sqlite_where=_ACTIVE_SQL,
        ),
        # Weekly board lookups
        Index("ix_reservations_date_court", "date", "court_id"),
        Index("ix_reservations_user", "user_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.date} {self.start_time}-{self.end_time} court={self.court_id}>"
