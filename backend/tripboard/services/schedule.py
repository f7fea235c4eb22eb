"""
Schedule-slot allocation for trip activities.

A trip day holds at most ``MAX_ACTIVITIES_PER_DAY`` scheduled activities,
each in its own day slot numbered 1..10. Clock times map onto six fixed
time-of-day buckets; an activity's bucket must agree with its start time.

These checks run on every activity write and when a date poll is
finalized into an activity.
"""
from datetime import date, time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tripboard.core.errors import BadRequestError
from tripboard.models.activity import Activity, TimeSlot

MAX_ACTIVITIES_PER_DAY = 10
DAY_INDEXES = range(1, MAX_ACTIVITIES_PER_DAY + 1)

# Lower bound (inclusive) of each bucket; anything before 06:00 or from
# 23:00 on is late night.
_SLOT_BOUNDARIES = [
    (time(6, 0), TimeSlot.MORNING),
    (time(11, 0), TimeSlot.LUNCH),
    (time(13, 0), TimeSlot.AFTERNOON),
    (time(17, 0), TimeSlot.DINNER),
    (time(19, 0), TimeSlot.EVENING),
    (time(23, 0), TimeSlot.LATE_NIGHT),
]


def time_slot_from_clock(clock: time) -> TimeSlot:
    """Map a clock time to its time-of-day bucket."""
    slot = TimeSlot.LATE_NIGHT
    for boundary, bucket in _SLOT_BOUNDARIES:
        if clock >= boundary:
            slot = bucket
    return slot


def validate_time_logic(
    start_time: Optional[time],
    end_time: Optional[time],
    slot: Optional[TimeSlot] = None,
) -> None:
    """
    Reject inconsistent scheduling input.

    Raises BadRequestError when the end is not after the start, or when a
    bucket is given together with a start time that falls in another bucket.
    """
    if start_time is not None and end_time is not None and end_time <= start_time:
        raise BadRequestError("EndTime must be after StartTime.")

    if slot is not None and start_time is not None:
        expected = time_slot_from_clock(start_time)
        if expected != slot:
            raise BadRequestError(
                f"Start time {start_time.strftime('%H:%M')} falls in the "
                f"'{expected.value}' slot, not '{slot.value}'."
            )


async def used_day_indexes(
    db: AsyncSession,
    trip_id: str,
    on_date: date,
    exclude_activity_id: Optional[str] = None,
) -> set[int]:
    """Day slots already taken on a trip date."""
    query = select(Activity.schedule_day_index).where(
        Activity.trip_id == trip_id,
        Activity.date == on_date,
        Activity.schedule_day_index.is_not(None),
        Activity.deleted_at.is_(None),
    )
    if exclude_activity_id is not None:
        query = query.where(Activity.id != exclude_activity_id)

    result = await db.execute(query)
    return set(result.scalars().all())


async def available_day_indexes(
    db: AsyncSession,
    trip_id: str,
    on_date: date,
    exclude_activity_id: Optional[str] = None,
) -> list[int]:
    """Free day slots (1..10) on a trip date, in ascending order."""
    used = await used_day_indexes(db, trip_id, on_date, exclude_activity_id)
    return [index for index in DAY_INDEXES if index not in used]


async def ensure_day_capacity(
    db: AsyncSession,
    trip_id: str,
    on_date: date,
    exclude_activity_id: Optional[str] = None,
) -> set[int]:
    """
    Raise BadRequestError if the date already holds the maximum number of activities.

    Returns the day slots already taken on the date.
    """
    used = await used_day_indexes(db, trip_id, on_date, exclude_activity_id)
    if len(used) >= MAX_ACTIVITIES_PER_DAY:
        raise BadRequestError(
            f"Maximum of {MAX_ACTIVITIES_PER_DAY} activities per day has been reached for {on_date.isoformat()}."
        )
    return used


async def allocate_day_index(
    db: AsyncSession,
    trip_id: str,
    on_date: date,
    requested: Optional[int] = None,
    exclude_activity_id: Optional[str] = None,
) -> int:
    """
    Pick the day slot for an activity on ``on_date``.

    An explicit ``requested`` index is validated (range and occupancy);
    otherwise the lowest free index is returned. ``exclude_activity_id``
    is the activity being moved, whose current slot does not count.
    """
    used = await ensure_day_capacity(db, trip_id, on_date, exclude_activity_id)

    if requested is not None:
        if requested not in DAY_INDEXES:
            raise BadRequestError(
                f"Schedule day index must be between 1 and {MAX_ACTIVITIES_PER_DAY}."
            )
        if requested in used:
            raise BadRequestError(
                f"Schedule day index {requested} is already taken on {on_date.isoformat()}."
            )
        return requested

    return next(index for index in DAY_INDEXES if index not in used)
