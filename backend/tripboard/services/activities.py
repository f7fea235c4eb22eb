"""
Activity scheduling.

Every write re-runs the slot allocator: a dated activity always holds a
day slot on its date, and its time-of-day bucket agrees with its start
time.
"""
import logging
from datetime import date
from itertools import groupby
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tripboard.core.permissions import MembershipOracle, require_member
from tripboard.db.base import unit_of_work
from tripboard.models.activity import Activity
from tripboard.schemas.activity import ActivityCreate, ActivityUpdate
from tripboard.services.lookups import get_activity, get_trip
from tripboard.services.schedule import (
    allocate_day_index, available_day_indexes, time_slot_from_clock, validate_time_logic,
)

logger = logging.getLogger(__name__)

SLOT_TAKEN = "That schedule day slot was just taken. Pick another one."


async def create_activity(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    data: ActivityCreate,
) -> Activity:
    trip = await get_trip(db, data.trip_id)
    await require_member(oracle, trip.group_id, user_id)

    validate_time_logic(data.start_time, data.end_time, data.schedule_slot)

    slot = data.schedule_slot
    if slot is None and data.start_time is not None:
        slot = time_slot_from_clock(data.start_time)

    day_index = None
    if data.date is not None:
        day_index = await allocate_day_index(
            db, trip.id, data.date, requested=data.schedule_day_index
        )

    activity = Activity(
        trip_id=trip.id,
        title=data.title,
        status=data.status,
        category=data.category,
        date=data.date,
        start_time=data.start_time,
        end_time=data.end_time,
        schedule_day_index=day_index,
        schedule_slot=slot,
        location_name=data.location_name,
        link_url=data.link_url,
        notes=data.notes,
        created_by_id=user_id,
    )
    async with unit_of_work(db, conflict_detail=SLOT_TAKEN):
        db.add(activity)

    logger.info(f"Activity {activity.id} created on trip {trip.id} by {user_id}")
    return activity


async def update_activity(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    activity_id: str,
    data: ActivityUpdate,
) -> Activity:
    """
    Apply a partial update.

    Moving the activity to another date picks a slot on that date (the
    requested one, else the lowest free one). Clearing the date frees the
    slot. Changing the start time without a bucket re-derives the bucket.
    """
    activity = await get_activity(db, activity_id)
    trip = await get_trip(db, activity.trip_id)
    await require_member(oracle, trip.group_id, user_id)

    changes = data.model_dump(exclude_unset=True)
    # Title and status cannot be cleared
    for field in ("title", "status"):
        if field in changes and changes[field] is None:
            del changes[field]

    new_date = changes.get("date", activity.date)
    start_time = changes.get("start_time", activity.start_time)
    end_time = changes.get("end_time", activity.end_time)

    if "schedule_slot" in changes:
        slot = changes["schedule_slot"]
    elif "start_time" in changes and start_time is not None:
        slot = time_slot_from_clock(start_time)
    else:
        slot = activity.schedule_slot

    validate_time_logic(start_time, end_time, slot)
    if slot is None and start_time is not None:
        slot = time_slot_from_clock(start_time)

    requested = changes.get("schedule_day_index")
    day_index = activity.schedule_day_index
    if new_date is None:
        day_index = None
    elif (
        new_date != activity.date
        or day_index is None
        or (requested is not None and requested != day_index)
    ):
        day_index = await allocate_day_index(
            db, trip.id, new_date, requested=requested, exclude_activity_id=activity.id
        )

    changes.update(
        date=new_date,
        start_time=start_time,
        end_time=end_time,
        schedule_slot=slot,
        schedule_day_index=day_index,
    )
    async with unit_of_work(db, conflict_detail=SLOT_TAKEN):
        for field, value in changes.items():
            setattr(activity, field, value)

    logger.info(f"Activity {activity.id} updated by {user_id}")
    return activity


async def delete_activity(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    activity_id: str,
) -> None:
    """Soft-delete an activity and free its day slot."""
    activity = await get_activity(db, activity_id)
    trip = await get_trip(db, activity.trip_id)
    await require_member(oracle, trip.group_id, user_id)

    async with unit_of_work(db):
        activity.soft_delete()
        activity.schedule_day_index = None

    logger.info(f"Activity {activity.id} deleted by {user_id}")


async def get_activity_for_member(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    activity_id: str,
) -> Activity:
    activity = await get_activity(db, activity_id)
    trip = await get_trip(db, activity.trip_id)
    await require_member(oracle, trip.group_id, user_id)
    return activity


async def get_activities_by_date(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    trip_id: str,
) -> list[tuple[Optional[date], list[Activity]]]:
    """Live activities of a trip grouped by date, in day-slot order; undated last."""
    trip = await get_trip(db, trip_id)
    await require_member(oracle, trip.group_id, user_id)

    result = await db.execute(
        select(Activity)
        .where(Activity.trip_id == trip.id, Activity.deleted_at.is_(None))
        .order_by(
            Activity.date.is_(None),
            Activity.date,
            Activity.schedule_day_index,
            Activity.start_time,
            Activity.created,
        )
    )
    activities = result.scalars().all()
    return [(day, list(items)) for day, items in groupby(activities, key=lambda a: a.date)]


async def get_available_day_indexes(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    trip_id: str,
    on_date: date,
) -> list[int]:
    trip = await get_trip(db, trip_id)
    await require_member(oracle, trip.group_id, user_id)
    return await available_day_indexes(db, trip.id, on_date)
