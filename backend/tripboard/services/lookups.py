"""
Loaders for trip-scoped rows.

Soft-deleted rows are treated as missing; every loader raises
NotFoundError with a user-facing message.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tripboard.core.errors import NotFoundError
from tripboard.models.trip import Trip
from tripboard.models.activity import Activity
from tripboard.models.poll import Poll, PollOption
from tripboard.models.vote import Vote


async def get_trip(db: AsyncSession, trip_id: str) -> Trip:
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id, Trip.deleted_at.is_(None))
    )
    trip = result.scalar_one_or_none()
    if trip is None:
        raise NotFoundError("The trip does not exist.")
    return trip


async def get_activity(db: AsyncSession, activity_id: str) -> Activity:
    result = await db.execute(
        select(Activity).where(Activity.id == activity_id, Activity.deleted_at.is_(None))
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        raise NotFoundError("The activity does not exist.")
    return activity


async def get_poll(db: AsyncSession, poll_id: str) -> Poll:
    result = await db.execute(
        select(Poll).where(Poll.id == poll_id, Poll.deleted_at.is_(None))
    )
    poll = result.scalar_one_or_none()
    if poll is None:
        raise NotFoundError("The poll does not exist.")
    return poll


async def get_poll_option(db: AsyncSession, option_id: str) -> PollOption:
    result = await db.execute(
        select(PollOption).where(PollOption.id == option_id, PollOption.deleted_at.is_(None))
    )
    option = result.scalar_one_or_none()
    if option is None:
        raise NotFoundError("The poll option does not exist.")
    return option


async def get_vote(db: AsyncSession, vote_id: str) -> Vote:
    result = await db.execute(select(Vote).where(Vote.id == vote_id))
    vote = result.scalar_one_or_none()
    if vote is None:
        raise NotFoundError("The vote does not exist.")
    return vote


async def get_poll_with_trip(db: AsyncSession, poll_id: str) -> tuple[Poll, Trip]:
    """Load a live poll and the live trip it belongs to."""
    poll = await get_poll(db, poll_id)
    trip = await get_trip(db, poll.trip_id)
    return poll, trip


async def list_poll_options(db: AsyncSession, poll_id: str) -> list[PollOption]:
    """Live options of a poll in display order."""
    result = await db.execute(
        select(PollOption)
        .where(PollOption.poll_id == poll_id, PollOption.deleted_at.is_(None))
        .order_by(
            PollOption.index.is_(None), PollOption.index, PollOption.created
        )
    )
    return list(result.scalars().all())
