"""
Trip model.
"""
from typing import Optional, TYPE_CHECKING
from datetime import date
from sqlalchemy import String, ForeignKey, Date, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum
from tripboard.models.base import BaseModel, SoftDeleteMixin

if TYPE_CHECKING:
    from tripboard.models.group import Group
    from tripboard.models.activity import Activity
    from tripboard.models.poll import Poll


class TripStatus(str, enum.Enum):
    """Trip lifecycle."""
    PLANNING = "planning"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Trip(BaseModel, SoftDeleteMixin):
    """
    A trip planned by a group.

    The planning range is the envelope the group is considering; the
    confirmed start/end dates are written when a trip-level date poll is
    finalized and always sit strictly inside the planning range.
    """
    __tablename__ = "trips"

    group_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[TripStatus] = mapped_column(
        Enum(TripStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=TripStatus.PLANNING
    )

    # Planning envelope
    planning_range_start: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    planning_range_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Confirmed dates
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="trips"
    )
    activities: Mapped[list["Activity"]] = relationship(
        "Activity",
        back_populates="trip"
    )
    polls: Mapped[list["Poll"]] = relationship(
        "Poll",
        back_populates="trip"
    )

    def __repr__(self) -> str:
        return f"<Trip {self.title}>"
