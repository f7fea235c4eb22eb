"""
Trip schemas.
"""
from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel


class TripResponse(BaseModel):
    """Trip as seen by the scheduling endpoints."""
    id: str
    group_id: str
    title: str
    status: str
    planning_range_start: Optional[date] = None
    planning_range_end: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    updated: datetime

    class Config:
        from_attributes = True
