"""
Poll schemas.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from tripboard.models.activity import TimeSlot
from tripboard.models.poll import PollType, PollStatus
from tripboard.schemas.common import PaginatedResponse
from tripboard.schemas.activity import ActivityResponse
from tripboard.schemas.trip import TripResponse


class PollOptionCreate(BaseModel):
    """
    Poll option payload.

    Ordinary polls use ``text_value``, ``media_url`` and/or ``metadata``
    (a JSON document). Date polls use ``date_start`` with optional
    ``date_end`` and ``time_of_day``.
    """
    index: Optional[int] = None
    text_value: Optional[str] = Field(None, max_length=500)
    media_url: Optional[str] = Field(None, max_length=500)
    metadata: Optional[str] = None
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    time_of_day: Optional[TimeSlot] = None


class PollCreate(BaseModel):
    """Create poll request."""
    trip_id: str
    activity_id: Optional[str] = None
    poll_type: PollType = PollType.ORDINARY
    title: str = Field(..., min_length=1, max_length=300)
    options: list[PollOptionCreate] = Field(default_factory=list)


class PollUpdate(BaseModel):
    """Update poll request."""
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    status: Optional[PollStatus] = None


class FinalizePollRequest(BaseModel):
    """Leader's choice of the winning option."""
    selected_option_id: str


class PollOptionResponse(BaseModel):
    """Poll option with its vote count."""
    id: str
    poll_id: str
    index: Optional[int] = None
    text_value: Optional[str] = None
    media_url: Optional[str] = None
    metadata: Optional[str] = None
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    time_of_day: Optional[str] = None
    vote_count: int = 0
    created_by_id: str
    created: datetime


class PollResponse(BaseModel):
    """Poll summary."""
    id: str
    trip_id: str
    trip_title: Optional[str] = None
    activity_id: Optional[str] = None
    poll_type: str
    title: str
    status: str
    created_by_id: str
    creator_name: Optional[str] = None
    updated_by_id: Optional[str] = None
    closed_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    finalized_option_id: Optional[str] = None
    option_count: int = 0
    total_votes: int = 0
    created: datetime
    updated: datetime


class PollDetailResponse(PollResponse):
    """Poll with its options."""
    options: list[PollOptionResponse] = Field(default_factory=list)


class FinalizePollResponse(BaseModel):
    """Finalized poll and the aggregate it was committed into."""
    poll: PollResponse
    activity: Optional[ActivityResponse] = None
    trip: Optional[TripResponse] = None


PollListResponse = PaginatedResponse[PollResponse]
