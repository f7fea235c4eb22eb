"""
Finalization of date polls.

A group leader picks the winning option of a date poll. Activity polls
move the activity onto the chosen date and clock time; trip polls set the
trip's dates and widen its planning range around them. The poll becomes
finalized in the same commit as the target write.
"""
import logging
from datetime import time, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tripboard.core.errors import BadRequestError, NotFoundError
from tripboard.core.permissions import MembershipOracle, require_leader
from tripboard.db.base import unit_of_work
from tripboard.models.activity import Activity, ActivityStatus
from tripboard.models.base import utcnow
from tripboard.models.poll import Poll, PollOption, PollType, PollStatus
from tripboard.models.trip import Trip
from tripboard.services.lookups import get_activity, get_poll_option, get_poll_with_trip
from tripboard.services.polls import as_utc, ensure_transition, write_poll_state
from tripboard.services.schedule import (
    allocate_day_index, time_slot_from_clock, validate_time_logic,
)

logger = logging.getLogger(__name__)


async def _selected_option(db: AsyncSession, poll: Poll, option_id: str) -> PollOption:
    try:
        option = await get_poll_option(db, option_id)
    except NotFoundError:
        option = None
    if option is None or option.poll_id != poll.id:
        raise BadRequestError("The selected option does not belong to this poll.")
    if option.date_start is None:
        raise BadRequestError("The selected option has no start date.")
    return option


async def _plan_activity(
    db: AsyncSession,
    trip: Trip,
    activity: Activity,
    option: PollOption,
) -> dict:
    """Compute the activity fields the option commits to, without writing them."""
    starts_at = as_utc(option.date_start)
    ends_at = as_utc(option.date_end)
    target_date = starts_at.date()

    # Midnight with no end means the whole day; no clock times are set.
    start_time = None
    end_time = None
    if starts_at.time() != time(0, 0) or ends_at is not None:
        start_time = starts_at.time()
    if ends_at is not None and ends_at.date() == target_date:
        end_time = ends_at.time()

    validate_time_logic(start_time, end_time, option.time_of_day)

    slot = option.time_of_day
    if slot is None and start_time is not None:
        slot = time_slot_from_clock(start_time)
    if slot is None:
        slot = activity.schedule_slot

    day_index = activity.schedule_day_index
    if activity.date != target_date or day_index is None:
        day_index = await allocate_day_index(
            db, trip.id, target_date, exclude_activity_id=activity.id
        )

    return {
        "date": target_date,
        "start_time": start_time,
        "end_time": end_time,
        "schedule_slot": slot,
        "schedule_day_index": day_index,
        "status": ActivityStatus.SCHEDULED,
    }


def _plan_trip(trip: Trip, option: PollOption) -> dict:
    """Compute the trip dates and the widened planning range."""
    starts_at = as_utc(option.date_start)
    ends_at = as_utc(option.date_end)
    if ends_at is None:
        raise BadRequestError("Trip date options need an end date to be finalized.")
    if ends_at <= starts_at:
        raise BadRequestError("The trip end date must be after the start date.")

    start_date = starts_at.date()
    end_date = ends_at.date()
    range_start = start_date - timedelta(days=1)
    range_end = end_date + timedelta(days=1)
    if trip.planning_range_start is not None:
        range_start = min(trip.planning_range_start, range_start)
    if trip.planning_range_end is not None:
        range_end = max(trip.planning_range_end, range_end)

    return {
        "start_date": start_date,
        "end_date": end_date,
        "planning_range_start": range_start,
        "planning_range_end": range_end,
    }


async def finalize_date_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
    selected_option_id: str,
) -> tuple[Poll, Optional[Activity], Optional[Trip]]:
    """
    Commit the selected option of a date poll into its activity or trip.

    Returns the finalized poll with the updated activity (activity polls)
    or trip (trip polls). Every check runs before anything is written, so
    a rejected request leaves the poll and its target untouched.
    """
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_leader(
        oracle, trip.group_id, user_id, "Only group leaders can finalize polls."
    )

    if poll.poll_type != PollType.DATE:
        raise BadRequestError("Only date polls can be finalized.")
    if poll.status == PollStatus.FINALIZED:
        raise BadRequestError("This poll has already been finalized.")
    ensure_transition(poll, PollStatus.FINALIZED)

    option = await _selected_option(db, poll, selected_option_id)

    activity = None
    if poll.activity_id is not None:
        activity = await get_activity(db, poll.activity_id)
        changes = await _plan_activity(db, trip, activity, option)
        target = activity
    else:
        changes = _plan_trip(trip, option)
        target = trip

    async with unit_of_work(
        db, conflict_detail="The selected day was changed concurrently. Try again."
    ):
        now = utcnow()
        await write_poll_state(
            db, poll, poll.status,
            status=PollStatus.FINALIZED,
            finalized_option_id=option.id,
            finalized_at=now,
            updated_by_id=user_id,
            updated=now,
        )
        for field, value in changes.items():
            setattr(target, field, value)

    if activity is not None:
        logger.info(
            f"Poll {poll.id} finalized by {user_id}: activity {activity.id} "
            f"scheduled on {activity.date} (slot {activity.schedule_day_index})"
        )
        return poll, activity, None

    logger.info(
        f"Poll {poll.id} finalized by {user_id}: trip {trip.id} set to "
        f"{trip.start_date}..{trip.end_date}"
    )
    return poll, None, trip
