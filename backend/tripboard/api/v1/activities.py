"""
Activity endpoints.

Permissions:
- All operations require active membership in the trip's group
"""
import datetime as dt
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripboard.db.base import get_db
from tripboard.core.deps import get_current_user, get_membership_oracle
from tripboard.core.permissions import MembershipOracle
from tripboard.models.user import User
from tripboard.models.activity import Activity
from tripboard.schemas.activity import (
    ActivityCreate, ActivityUpdate, ActivityResponse,
    ActivitiesByDateResponse, AvailableDayIndexesResponse,
)
from tripboard.services import activities as activity_service
from tripboard.services.schedule import MAX_ACTIVITIES_PER_DAY

router = APIRouter()


def activity_to_response(activity: Activity) -> ActivityResponse:
    """Convert Activity model to response schema."""
    return ActivityResponse(
        id=activity.id,
        trip_id=activity.trip_id,
        title=activity.title,
        status=activity.status.value,
        category=activity.category.value if activity.category else None,
        date=activity.date,
        start_time=activity.start_time,
        end_time=activity.end_time,
        schedule_day_index=activity.schedule_day_index,
        schedule_slot=activity.schedule_slot.value if activity.schedule_slot else None,
        location_name=activity.location_name,
        link_url=activity.link_url,
        notes=activity.notes,
        created_by_id=activity.created_by_id,
        created=activity.created,
        updated=activity.updated,
    )


@router.get("", response_model=list[ActivitiesByDateResponse])
async def list_activities(
    trip_id: str = Query(..., description="Trip ID"),
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """List a trip's activities grouped by day."""
    groups = await activity_service.get_activities_by_date(db, oracle, current_user.id, trip_id)
    return [
        ActivitiesByDateResponse(
            date=day,
            activities=[activity_to_response(a) for a in activities],
            total_activities=len(activities),
        )
        for day, activities in groups
    ]


@router.get("/available-day-indexes", response_model=AvailableDayIndexesResponse)
async def get_available_day_indexes(
    trip_id: str = Query(..., description="Trip ID"),
    date: dt.date = Query(..., description="Trip day (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Free day slots for a trip date."""
    available = await activity_service.get_available_day_indexes(
        db, oracle, current_user.id, trip_id, date
    )
    return AvailableDayIndexesResponse(
        trip_id=trip_id,
        date=date,
        available=available,
        scheduled_count=MAX_ACTIVITIES_PER_DAY - len(available),
        capacity=MAX_ACTIVITIES_PER_DAY,
    )


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    data: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Create an activity.
    A dated activity gets the requested day slot, or the lowest free one.
    """
    activity = await activity_service.create_activity(db, oracle, current_user.id, data)
    return activity_to_response(activity)


@router.get("/{activity_id}", response_model=ActivityResponse)
async def get_activity(
    activity_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    activity = await activity_service.get_activity_for_member(db, oracle, current_user.id, activity_id)
    return activity_to_response(activity)


@router.patch("/{activity_id}", response_model=ActivityResponse)
async def update_activity(
    activity_id: str,
    data: ActivityUpdate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Update an activity. Moving it to another date re-allocates its day slot."""
    activity = await activity_service.update_activity(db, oracle, current_user.id, activity_id, data)
    return activity_to_response(activity)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Delete an activity and free its day slot."""
    await activity_service.delete_activity(db, oracle, current_user.id, activity_id)
    return None
