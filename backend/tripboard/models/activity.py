"""
Activity model.

Activities are the items of a trip's daily schedule. A dated activity holds
one of ten day slots (``schedule_day_index``) on its date; the unique
constraint on (trip, date, day index) backs the allocator's checks.
"""
from typing import Optional, TYPE_CHECKING
from enum import Enum
import datetime as dt
from sqlalchemy import String, Text, ForeignKey, Date, Time, Integer, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tripboard.models.base import BaseModel, SoftDeleteMixin

if TYPE_CHECKING:
    from tripboard.models.trip import Trip
    from tripboard.models.user import User


class ActivityStatus(str, Enum):
    """Activity lifecycle."""
    IDEA = "idea"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ActivityCategory(str, Enum):
    """What kind of activity this is."""
    FLIGHT = "flight"
    HOTEL = "hotel"
    FOOD = "food"
    ATTRACTION = "attraction"
    TRANSPORT = "transport"
    OTHER = "other"


class TimeSlot(str, Enum):
    """Time-of-day bucket."""
    MORNING = "morning"
    LUNCH = "lunch"
    AFTERNOON = "afternoon"
    DINNER = "dinner"
    EVENING = "evening"
    LATE_NIGHT = "late_night"


# Shared by activities.schedule_slot and poll_options.time_of_day
time_slot_type = SQLEnum(
    TimeSlot,
    name="timeslot",
    values_callable=lambda x: [e.value for e in x]
)


class Activity(BaseModel, SoftDeleteMixin):
    """A scheduled (or candidate) item of a trip."""
    __tablename__ = "activities"
    __table_args__ = (
        UniqueConstraint(
            "trip_id", "date", "schedule_day_index",
            name="uq_activities_trip_date_day_index"
        ),
    )

    trip_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[ActivityStatus] = mapped_column(
        SQLEnum(
            ActivityStatus,
            name="activitystatus",
            values_callable=lambda x: [e.value for e in x]
        ),
        default=ActivityStatus.IDEA,
        nullable=False,
        index=True
    )
    category: Mapped[Optional[ActivityCategory]] = mapped_column(
        SQLEnum(
            ActivityCategory,
            name="activitycategory",
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=True
    )

    # Scheduling (null while the activity is only an idea)
    date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True, index=True)
    start_time: Mapped[Optional[dt.time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[dt.time]] = mapped_column(Time, nullable=True)
    schedule_day_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    schedule_slot: Mapped[Optional[TimeSlot]] = mapped_column(time_slot_type, nullable=True)

    location_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    link_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    trip: Mapped["Trip"] = relationship(
        "Trip",
        back_populates="activities"
    )
    created_by: Mapped["User"] = relationship(
        "User",
        foreign_keys=[created_by_id]
    )

    def __repr__(self) -> str:
        return f"<Activity {self.title} ({self.status.value})>"
