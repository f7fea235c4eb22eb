"""
Poll and poll option models.
"""
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy import String, Text, Integer, ForeignKey, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum
from tripboard.models.base import BaseModel, SoftDeleteMixin
from tripboard.models.activity import TimeSlot, time_slot_type

if TYPE_CHECKING:
    from tripboard.models.trip import Trip
    from tripboard.models.activity import Activity
    from tripboard.models.user import User
    from tripboard.models.vote import Vote


class PollType(str, enum.Enum):
    """Poll type."""
    ORDINARY = "ordinary"
    DATE = "date"


class PollStatus(str, enum.Enum):
    """Poll status."""
    OPEN = "open"
    CLOSED = "closed"
    FINALIZED = "finalized"


class PollScope(str, enum.Enum):
    """Which polls of a trip to list."""
    ALL = "all"
    TRIP = "trip"
    ACTIVITY = "activity"


# Valid status transitions (from -> to allowed statuses)
VALID_STATUS_TRANSITIONS = {
    PollStatus.OPEN: [
        PollStatus.CLOSED,
        PollStatus.FINALIZED
    ],
    PollStatus.CLOSED: [
        PollStatus.FINALIZED
    ],
    PollStatus.FINALIZED: [],  # Terminal state
}


class Poll(BaseModel, SoftDeleteMixin):
    """A decision proposal scoped to a trip, or to one activity of the trip."""
    __tablename__ = "polls"

    trip_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Null: the poll decides trip-level dates. Set: it decides this activity.
    activity_id: Mapped[Optional[str]] = mapped_column(
        String(15),
        ForeignKey("activities.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    poll_type: Mapped[PollType] = mapped_column(
        Enum(PollType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PollType.ORDINARY
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[PollStatus] = mapped_column(
        Enum(PollStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=PollStatus.OPEN,
        index=True
    )

    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_option_id: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)

    created_by_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    updated_by_id: Mapped[Optional[str]] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    trip: Mapped["Trip"] = relationship(
        "Trip",
        back_populates="polls"
    )
    activity: Mapped[Optional["Activity"]] = relationship(
        "Activity",
        foreign_keys=[activity_id]
    )
    created_by: Mapped["User"] = relationship(
        "User",
        foreign_keys=[created_by_id]
    )
    options: Mapped[list["PollOption"]] = relationship(
        "PollOption",
        back_populates="poll",
        cascade="all, delete-orphan",
        order_by="PollOption.created"
    )

    def can_transition_to(self, new_status: PollStatus) -> bool:
        """Check if transition to new_status is valid."""
        allowed = VALID_STATUS_TRANSITIONS.get(self.status, [])
        return new_status in allowed

    @property
    def is_open(self) -> bool:
        return self.status == PollStatus.OPEN

    def __repr__(self) -> str:
        return f"<Poll {self.title} ({self.status.value})>"


class PollOption(BaseModel, SoftDeleteMixin):
    """One candidate answer of a poll."""
    __tablename__ = "poll_options"

    poll_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("polls.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    text_value: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    media_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # Raw JSON text; validated on write, never interpreted.
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)

    # Date voting details
    date_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    date_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_of_day: Mapped[Optional[TimeSlot]] = mapped_column(time_slot_type, nullable=True)

    created_by_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    poll: Mapped["Poll"] = relationship(
        "Poll",
        back_populates="options"
    )
    votes: Mapped[list["Vote"]] = relationship(
        "Vote",
        back_populates="poll_option",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<PollOption {self.id} of poll {self.poll_id}>"
