"""Pricing catalog models: time/day-scoped hourly rules and fixed-price packages."""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gymcourt.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from gymcourt.models.court import Court


class PriceTier(enum.StrEnum):
    """Display grouping of rules. Never consulted when matching a slot."""

    SS = "ss"
    S = "s"
    A = "a"
    B = "b"
    WEEKEND = "weekend"
    NIGHT = "night"
    BASE = "base"


class PriceRule(TimestampMixin, Base):
    """An hourly rate active on some weekdays within a half-open window.

    Windows never cross midnight: 23:00-08:00 is stored as 23:00-24:00 and
    00:00-08:00. ``court_id`` NULL means the rule applies to every court.
    """

    __tablename__ = "price_rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    court_id: Mapped[int | None] = mapped_column(ForeignKey("courts.id"))
    tier: Mapped[PriceTier] = mapped_column(
        Enum(PriceTier, name="price_tier", values_callable=lambda e: [x.value for x in e]),
        default=PriceTier.BASE,
        nullable=False,
    )
    days_of_week: Mapped[list] = mapped_column(JSONType, nullable=False)  # 0=Sun..6=Sat
    start_time: Mapped[str] = mapped_column(String(8), nullable=False)  # HH:MM:SS
    end_time: Mapped[str] = mapped_column(String(8), nullable=False)  # HH:MM:SS, up to 24:00:00
    price_per_hour: Mapped[int] = mapped_column(nullable=False)
    priority: Mapped[int] = mapped_column(default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    court: Mapped["Court | None"] = relationship(lazy="raise")

    __table_args__ = (Index("ix_price_rules_active", "is_active", "court_id"),)

    def __repr__(self) -> str:
        return f"<PriceRule {self.name} {self.start_time}-{self.end_time} p={self.priority}>"


class Package(TimestampMixin, Base):
    """A flat-price bundle for a fixed window (e.g. 18:00-22:00 evening block)."""

    __tablename__ = "packages"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    days_of_week: Mapped[list | None] = mapped_column(JSONType)  # NULL = every day
    start_time: Mapped[str] = mapped_column(String(8), nullable=False)
    end_time: Mapped[str] = mapped_column(String(8), nullable=False)
    total_price: Mapped[int] = mapped_column(nullable=False)
    badge_text: Mapped[str | None] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    court: Mapped["Court"] = relationship(lazy="raise")

    def __repr__(self) -> str:
        return f"<Package {self.name} {self.start_time}-{self.end_time}>"
