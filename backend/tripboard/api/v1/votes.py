"""
Vote endpoints.

Permissions:
- All operations require active membership in the trip's group
- Remove: only the voter can remove their vote
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripboard.db.base import get_db
from tripboard.core.deps import get_current_user, get_membership_oracle
from tripboard.core.permissions import MembershipOracle
from tripboard.models.user import User
from tripboard.models.vote import Vote
from tripboard.schemas.common import MessageResponse
from tripboard.schemas.vote import VoteCreate, ChangeVoteRequest, VoteResponse
from tripboard.services import votes as vote_service
from tripboard.services.polls import user_names

router = APIRouter()


def vote_to_response(vote: Vote, username: Optional[str] = None) -> VoteResponse:
    """Convert Vote model to VoteResponse schema."""
    return VoteResponse(
        id=vote.id,
        poll_id=vote.poll_id,
        poll_option_id=vote.poll_option_id,
        user_id=vote.user_id,
        username=username,
        created=vote.created,
    )


async def votes_to_response(votes: list[Vote], db: AsyncSession) -> list[VoteResponse]:
    names = await user_names(db, {vote.user_id for vote in votes})
    return [vote_to_response(vote, names.get(vote.user_id)) for vote in votes]


@router.get("", response_model=list[VoteResponse])
async def list_votes(
    poll_id: str = Query(..., description="Poll ID"),
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """List every vote of a poll."""
    votes = await vote_service.get_poll_votes(db, oracle, current_user.id, poll_id)
    return await votes_to_response(votes, db)


@router.get("/mine", response_model=list[VoteResponse])
async def list_my_votes(
    poll_id: str = Query(..., description="Poll ID"),
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """List the current user's votes in a poll."""
    votes = await vote_service.get_user_votes_for_poll(db, oracle, current_user.id, poll_id)
    return await votes_to_response(votes, db)


@router.post("", response_model=VoteResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    data: VoteCreate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Cast a vote for a poll option.
    Ordinary polls take one vote per member; date polls one per option.
    """
    vote = await vote_service.cast_vote(db, oracle, current_user.id, data.poll_option_id)
    return vote_to_response(vote, current_user.display_name or current_user.username)


@router.post("/change", response_model=VoteResponse)
async def change_vote(
    data: ChangeVoteRequest,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Move the current user's vote in an ordinary poll to another option."""
    vote = await vote_service.change_vote(
        db, oracle, current_user.id, data.poll_id, data.new_option_id
    )
    return vote_to_response(vote, current_user.display_name or current_user.username)


@router.delete("/{vote_id}", response_model=MessageResponse)
async def remove_vote(
    vote_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Remove the current user's vote from an open poll."""
    await vote_service.remove_vote(db, oracle, current_user.id, vote_id)
    return MessageResponse(message="Vote removed.")
