"""
Vote ledger.

Ordinary polls take one vote per member; a member changes their mind
through ``change_vote``. Date polls take one vote per member and option,
so a member can mark every date that works for them.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from tripboard.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from tripboard.core.permissions import MembershipOracle, require_member
from tripboard.db.base import unit_of_work
from tripboard.models.poll import Poll, PollStatus, PollType
from tripboard.models.vote import Vote
from tripboard.services.lookups import get_poll_with_trip, get_poll_option, get_vote
from tripboard.services.polls import ensure_open, write_poll_state

logger = logging.getLogger(__name__)

DUPLICATE_VOTE = "You have already voted in this poll."


def _new_vote(poll: Poll, option_id: str, user_id: str) -> Vote:
    return Vote(
        poll_option_id=option_id,
        poll_id=poll.id,
        exclusive_poll_id=poll.id if poll.poll_type == PollType.ORDINARY else None,
        user_id=user_id,
    )


async def _find_votes(db: AsyncSession, poll_id: str, user_id: str) -> list[Vote]:
    result = await db.execute(
        select(Vote).where(Vote.poll_id == poll_id, Vote.user_id == user_id)
    )
    return list(result.scalars().all())


async def cast_vote(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    option_id: str,
) -> Vote:
    option = await get_poll_option(db, option_id)
    poll, trip = await get_poll_with_trip(db, option.poll_id)
    await require_member(oracle, trip.group_id, user_id)
    ensure_open(poll, "Votes can only be cast on an open poll.")

    existing = await _find_votes(db, poll.id, user_id)
    if any(vote.poll_option_id == option.id for vote in existing):
        raise ConflictError("You have already voted for this option.")
    if poll.poll_type == PollType.ORDINARY and existing:
        raise ConflictError(f"{DUPLICATE_VOTE} Change your vote instead.")

    vote = _new_vote(poll, option.id, user_id)
    async with unit_of_work(db, conflict_detail=DUPLICATE_VOTE):
        await write_poll_state(db, poll, PollStatus.OPEN)
        db.add(vote)

    logger.info(f"Vote {vote.id} cast on option {option.id} of poll {poll.id} by {user_id}")
    return vote


async def change_vote(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
    new_option_id: str,
) -> Vote:
    """Move the caller's vote in an ordinary poll to another option."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_member(oracle, trip.group_id, user_id)
    ensure_open(poll, "Votes can only be changed on an open poll.")
    if poll.poll_type == PollType.DATE:
        raise BadRequestError(
            "Votes on a date poll cannot be changed. Remove the vote and vote again."
        )

    try:
        option = await get_poll_option(db, new_option_id)
    except NotFoundError:
        option = None
    if option is None or option.poll_id != poll.id:
        raise BadRequestError("The option does not belong to this poll.")

    existing = await _find_votes(db, poll.id, user_id)
    if not existing:
        raise NotFoundError("You have not voted in this poll.")
    old_vote = existing[0]
    if old_vote.poll_option_id == option.id:
        return old_vote

    vote = _new_vote(poll, option.id, user_id)
    async with unit_of_work(db, conflict_detail=DUPLICATE_VOTE):
        await write_poll_state(db, poll, PollStatus.OPEN)
        # The old row leaves the exclusive-poll constraint before the insert.
        await db.execute(delete(Vote).where(Vote.id == old_vote.id))
        db.add(vote)

    logger.info(f"Vote of {user_id} in poll {poll.id} moved to option {option.id}")
    return vote


async def remove_vote(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    vote_id: str,
) -> None:
    vote = await get_vote(db, vote_id)
    poll, trip = await get_poll_with_trip(db, vote.poll_id)
    await require_member(oracle, trip.group_id, user_id)
    if vote.user_id != user_id:
        raise ForbiddenError("You can only remove your own vote.")
    ensure_open(poll, "Votes can only be removed from an open poll.")

    async with unit_of_work(db):
        await write_poll_state(db, poll, PollStatus.OPEN)
        await db.execute(delete(Vote).where(Vote.id == vote.id))

    logger.info(f"Vote {vote_id} removed from poll {poll.id} by {user_id}")


async def get_poll_votes(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
) -> list[Vote]:
    """All votes of a poll, oldest first."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_member(oracle, trip.group_id, user_id)

    result = await db.execute(
        select(Vote).where(Vote.poll_id == poll.id).order_by(Vote.created)
    )
    return list(result.scalars().all())


async def get_user_votes_for_poll(
    db: AsyncSession,
    oracle: MembershipOracle,
    user_id: str,
    poll_id: str,
) -> list[Vote]:
    """The caller's own votes in a poll."""
    poll, trip = await get_poll_with_trip(db, poll_id)
    await require_member(oracle, trip.group_id, user_id)
    return await _find_votes(db, poll.id, user_id)
