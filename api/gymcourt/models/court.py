"""Court model.

A court is a bookable half of the gym floor. ``slug`` is the stable key
("pink", "mint") used by the schedule grid; the display name is free text.
"""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from gymcourt.models.base import Base, TimestampMixin


class Court(TimestampMixin, Base):
    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(String(20), default="#4b5563", nullable=False)
    # Flat hourly rate for 50-99 person events on this court
    event_rate_per_hour: Mapped[int] = mapped_column(default=200000, nullable=False)
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Court {self.slug}>"
