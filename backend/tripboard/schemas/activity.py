"""
Activity schemas.
"""
from typing import Optional
import datetime as dt
from pydantic import BaseModel, Field

from tripboard.models.activity import ActivityStatus, ActivityCategory, TimeSlot


class ActivityCreate(BaseModel):
    """Create activity request."""
    trip_id: str
    title: str = Field(..., min_length=1, max_length=200)
    status: ActivityStatus = ActivityStatus.IDEA
    category: Optional[ActivityCategory] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    # Omitted: the lowest free slot of the day is assigned.
    schedule_day_index: Optional[int] = None
    schedule_slot: Optional[TimeSlot] = None
    location_name: Optional[str] = Field(None, max_length=300)
    link_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class ActivityUpdate(BaseModel):
    """Update activity request."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[ActivityStatus] = None
    category: Optional[ActivityCategory] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    schedule_day_index: Optional[int] = None
    schedule_slot: Optional[TimeSlot] = None
    location_name: Optional[str] = Field(None, max_length=300)
    link_url: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None


class ActivityResponse(BaseModel):
    """Activity response."""
    id: str
    trip_id: str
    title: str
    status: str
    category: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    schedule_day_index: Optional[int] = None
    schedule_slot: Optional[str] = None
    location_name: Optional[str] = None
    link_url: Optional[str] = None
    notes: Optional[str] = None
    created_by_id: str
    created: dt.datetime
    updated: dt.datetime


class ActivitiesByDateResponse(BaseModel):
    """Activities of a trip grouped by day; undated ideas come last."""
    date: Optional[dt.date] = None
    activities: list[ActivityResponse]
    total_activities: int


class AvailableDayIndexesResponse(BaseModel):
    """Free day slots for a (trip, date)."""
    trip_id: str
    date: dt.date
    available: list[int]
    scheduled_count: int
    capacity: int
