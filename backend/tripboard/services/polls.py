"""
Poll lifecycle: creation, option management, status changes and reads.

Every operation checks existence, membership and poll state before it
stages any write; writes are committed through ``unit_of_work``.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete, update
from sqlalchemy.orm.attributes import set_committed_value

from tripboard.core.errors import BadRequestError, ConflictError, NotFoundError
from tripboard.core.permissions import (
    MembershipOracle, require_member, require_owner_or_leader,
)
from tripboard.db.base import unit_of_work
from tripboard.models.base import utcnow
from tripboard.models.poll import Poll, PollOption, PollType, PollStatus, PollScope
from tripboard.models.trip import Trip
from tripboard.models.user import User
from tripboard.models.vote import Vote
from tripboard.schemas.poll import PollCreate, PollUpdate, PollOptionCreate
from tripboard.services.lookups import (
    get_trip, get_activity, get_poll_with_trip, get_poll_option, list_poll_options,
)

logger = logging.getLogger(__name__)

FINALIZED_IMMUTABLE = "Finalized polls cannot be modified."
POLL_CHANGED = "The poll was changed by another request. Reload it and try again."


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_open(poll: Poll, detail: str) -> None:
    """Raise BadRequestError unless the poll accepts options and votes."""
    if not poll.is_open:
        raise BadRequestError(detail)


def ensure_transition(poll: Poll, new_status: PollStatus) -> None:
    if not poll.can_transition_to(new_status):
        raise BadRequestError(
            f"Cannot change poll status from '{poll.status.value}' to '{new_status.value}'."
        )


async def write_poll_state(
    db: AsyncSession,
    poll: Poll,
    expected: PollStatus,
    **values,
) -> None:
    """
    Write ``values`` to the poll row only while its stored status is ``expected``.

    The status check is part of the UPDATE statement, so it also holds
    against requests that committed after ``poll`` was read. With no values
    the row's ``updated`` stamp is still written, which locks the row for
    the rest of the unit of work. Raises ConflictError when the row no
    longer matches. Written values are mirrored onto ``poll``.
    """
    values.setdefault("updated", utcnow())
    result = await db.execute(
        update(Poll)
        .where(
            Poll.id == poll.id,
            Poll.status == expected,
            Poll.deleted_at.is_(None),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"Poll {poll.id} is no longer {expected.value}; write rejected")
        raise ConflictError(POLL_CHANGED)

    for field, value in values.items():
        set_committed_value(poll, field, value)


def build_option(
    poll_type: PollType,
    data: PollOptionCreate,
    user_id: str,
    now: Optional[datetime] = None,
) -> PollOption:
    """
    Validate an option payload against the poll type and build the row.

    The row is returned unattached; the caller links it to its poll.
    """
    has_text_fields = any(
        value is not None for value in (data.text_value, data.media_url, data.metadata)
    )
    if not has_text_fields and data.date_start is None:
        raise BadRequestError(
            "A poll option needs a text value, media, metadata or a start date."
        )

    if data.metadata is not None:
        try:
            json.loads(data.metadata)
        except ValueError:
            raise BadRequestError("Poll option metadata must be valid JSON.")

    date_start = as_utc(data.date_start)
    date_end = as_utc(data.date_end)

    if poll_type == PollType.DATE:
        if has_text_fields:
            raise BadRequestError(
                "Date poll options cannot have a text value, media or metadata."
            )
        if date_start is None:
            raise BadRequestError("Date poll options require a start date.")
        now = now or datetime.now(timezone.utc)
        if date_start <= now:
            raise BadRequestError("Poll option start date must be in the future.")
        if date_end is not None and date_end < date_start:
            raise BadRequestError(
                "Poll option end date must be on or after the start date."
            )
    else:
        if date_start is not None or date_end is not None or data.time_of_day is not None:
            raise BadRequestError(
                "Ordinary poll options cannot have dates or a time of day."
            )

    return PollOption(
        index=data.index,
        text_value=data.text_value,
        media_url=data.media_url,
        metadata_json=data.metadata,
        date_start=date_start,
        date_end=date_end,
        time_of_day=data.time_of_day,
        created_by_id=user_id,
    )


async def _ensure_no_active_poll(
    db: AsyncSession,
    trip_id: str,
    activity_id: Optional[str],
    poll_type: PollType,
) -> None:
    query = select(func.count(Poll.id)).where(
        Poll.trip_id == trip_id,
        Poll.poll_type == poll_type,
        Poll.status != PollStatus.FINALIZED,
        Poll.deleted_at.is_(None),
    )
    if activity_id is None:
        query = query.where(Poll.activity_id.is_(None))
    else:
        query = query.where(Poll.activity_id == activity_id)

    existing = (await db.execute(query)).scalar() or 0
    if existing:
        target = "activity" if activity_id else "trip"
        raise ConflictError(
            f"An unfinalized {poll_type.value} poll already exists for this {target}."
        )


async def create_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    data: PollCreate,
) -> Poll:
    """Create an open poll with its initial options."""
    trip = await get_trip(db, data.trip_id)
    await require_member(oracle, trip.group_id, user_id)

    if data.activity_id is not None:
        try:
            activity = await get_activity(db, data.activity_id)
        except NotFoundError:
            raise BadRequestError("The activity does not belong to this trip.")
        if activity.trip_id != trip.id:
            raise BadRequestError("The activity does not belong to this trip.")

    await _ensure_no_active_poll(db, trip.id, data.activity_id, data.poll_type)

    now = datetime.now(timezone.utc)
    options = [build_option(data.poll_type, option, user_id, now) for option in data.options]

    poll = Poll(
        trip_id=trip.id,
        activity_id=data.activity_id,
        poll_type=data.poll_type,
        title=data.title,
        status=PollStatus.OPEN,
        created_by_id=user_id,
        options=options,
    )
    async with unit_of_work(db, conflict_detail="The poll could not be created."):
        db.add(poll)

    logger.info(f"Poll {poll.id} ({poll.poll_type.value}) created on trip {trip.id} by {user_id}")
    return poll


async def update_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
    data: PollUpdate,
) -> Poll:
    """Change a poll's title and/or status. Finalization has its own operation."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_owner_or_leader(
        oracle, trip.group_id, user_id, poll.created_by_id,
        "Only the poll creator or a group leader can update this poll.",
    )
    if poll.status == PollStatus.FINALIZED:
        raise BadRequestError(FINALIZED_IMMUTABLE)

    new_status = data.status
    if new_status is not None and new_status != poll.status:
        if new_status == PollStatus.FINALIZED:
            raise BadRequestError("Use the finalize action to finalize a poll.")
        ensure_transition(poll, new_status)
    else:
        new_status = None

    values = {"updated_by_id": user_id}
    if data.title is not None:
        values["title"] = data.title
    if new_status is not None:
        values["status"] = new_status
        if new_status == PollStatus.CLOSED:
            values["closed_at"] = utcnow()

    async with unit_of_work(db):
        await write_poll_state(db, poll, poll.status, **values)

    logger.info(f"Poll {poll.id} updated by {user_id}")
    return poll


async def close_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
) -> Poll:
    """Stop accepting votes and option changes."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_owner_or_leader(
        oracle, trip.group_id, user_id, poll.created_by_id,
        "Only the poll creator or a group leader can close this poll.",
    )
    ensure_transition(poll, PollStatus.CLOSED)

    async with unit_of_work(db):
        await write_poll_state(
            db, poll, poll.status,
            status=PollStatus.CLOSED,
            closed_at=utcnow(),
            updated_by_id=user_id,
        )

    logger.info(f"Poll {poll.id} closed by {user_id}")
    return poll


async def delete_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
) -> None:
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_owner_or_leader(
        oracle, trip.group_id, user_id, poll.created_by_id,
        "Only the poll creator or a group leader can delete this poll.",
    )
    if poll.status == PollStatus.FINALIZED:
        raise BadRequestError(FINALIZED_IMMUTABLE)

    async with unit_of_work(db):
        await write_poll_state(
            db, poll, poll.status, deleted_at=utcnow(), updated_by_id=user_id
        )

    logger.info(f"Poll {poll.id} deleted by {user_id}")


async def add_poll_option(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
    data: PollOptionCreate,
) -> PollOption:
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_member(oracle, trip.group_id, user_id)
    ensure_open(poll, "Options can only be added to an open poll.")

    option = build_option(poll.poll_type, data, user_id)
    option.poll_id = poll.id

    async with unit_of_work(db):
        await write_poll_state(db, poll, PollStatus.OPEN)
        db.add(option)

    logger.info(f"Option {option.id} added to poll {poll.id} by {user_id}")
    return option


async def remove_poll_option(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    option_id: str,
) -> None:
    """Remove an option and every vote cast on it."""
    option = await get_poll_option(db, option_id)
    poll, trip = await get_poll_with_trip(db, option.poll_id)
    await require_owner_or_leader(
        oracle, trip.group_id, user_id, option.created_by_id,
        "Only the option creator or a group leader can remove this option.",
    )
    ensure_open(poll, "Options can only be removed from an open poll.")

    async with unit_of_work(db):
        await write_poll_state(db, poll, PollStatus.OPEN)
        await db.execute(delete(Vote).where(Vote.poll_option_id == option.id))
        option.soft_delete()

    logger.info(f"Option {option.id} removed from poll {poll.id} by {user_id}")


async def get_poll_detail(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
) -> tuple[Poll, list[PollOption]]:
    """A poll and its live options, readable in every status."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_member(oracle, trip.group_id, user_id)
    options = await list_poll_options(db, poll.id)
    return poll, options


async def get_polls(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    trip_id: str,
    scope: PollScope = PollScope.ALL,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[Poll], int]:
    """Polls of a trip, newest first, with the total count for pagination."""
    trip = await get_trip(db, trip_id)
    await require_member(oracle, trip.group_id, user_id)

    query = select(Poll).where(Poll.trip_id == trip.id, Poll.deleted_at.is_(None))
    if scope == PollScope.TRIP:
        query = query.where(Poll.activity_id.is_(None))
    elif scope == PollScope.ACTIVITY:
        query = query.where(Poll.activity_id.is_not(None))

    count_query = select(func.count()).select_from(query.subquery())
    total_items = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(Poll.created.desc()).offset((page - 1) * per_page).limit(per_page)
    result = await db.execute(query)
    return list(result.scalars().all()), total_items


# ============================================================================
# Read-model helpers
# ============================================================================

async def option_vote_counts(db: AsyncSession, poll_id: str) -> dict[str, int]:
    """Number of votes per option id of a poll."""
    result = await db.execute(
        select(Vote.poll_option_id, func.count(Vote.id))
        .where(Vote.poll_id == poll_id)
        .group_by(Vote.poll_option_id)
    )
    return {option_id: count for option_id, count in result.all()}


async def poll_counts(db: AsyncSession, poll_ids: list[str]) -> dict[str, tuple[int, int]]:
    """``(option_count, total_votes)`` per poll id."""
    if not poll_ids:
        return {}

    option_result = await db.execute(
        select(PollOption.poll_id, func.count(PollOption.id))
        .where(PollOption.poll_id.in_(poll_ids), PollOption.deleted_at.is_(None))
        .group_by(PollOption.poll_id)
    )
    option_counts = dict(option_result.all())

    vote_result = await db.execute(
        select(Vote.poll_id, func.count(Vote.id))
        .where(Vote.poll_id.in_(poll_ids))
        .group_by(Vote.poll_id)
    )
    vote_counts = dict(vote_result.all())

    return {
        poll_id: (option_counts.get(poll_id, 0), vote_counts.get(poll_id, 0))
        for poll_id in poll_ids
    }


async def user_names(db: AsyncSession, user_ids: set[str]) -> dict[str, str]:
    """Display name (falling back to username) per user id."""
    if not user_ids:
        return {}
    result = await db.execute(
        select(User.id, User.display_name, User.username).where(User.id.in_(user_ids))
    )
    return {
        user_id: display_name or username
        for user_id, display_name, username in result.all()
    }


async def trip_titles(db: AsyncSession, trip_ids: set[str]) -> dict[str, str]:
    if not trip_ids:
        return {}
    result = await db.execute(select(Trip.id, Trip.title).where(Trip.id.in_(trip_ids)))
    return dict(result.all())
