"""
Poll endpoints.

Permissions:
- List/Get/Create/Add option: requires active membership in the trip's group
- Update/Close/Delete: requires poll creator or group leader
- Remove option: requires option creator or group leader
- Finalize: requires group leader
"""
from math import ceil
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripboard.db.base import get_db
from tripboard.core.config import settings
from tripboard.core.deps import get_current_user, get_membership_oracle
from tripboard.core.permissions import MembershipOracle
from tripboard.models.user import User
from tripboard.models.poll import Poll, PollOption, PollScope
from tripboard.models.trip import Trip
from tripboard.schemas.common import MessageResponse
from tripboard.schemas.poll import (
    PollCreate, PollUpdate, PollOptionCreate, FinalizePollRequest,
    PollResponse, PollDetailResponse, PollOptionResponse, PollListResponse,
    FinalizePollResponse,
)
from tripboard.schemas.trip import TripResponse
from tripboard.services import polls as poll_service
from tripboard.services.finalization import finalize_date_poll
from tripboard.api.v1.activities import activity_to_response

router = APIRouter()


def option_to_response(option: PollOption, vote_count: int = 0) -> PollOptionResponse:
    """Convert PollOption model to response schema."""
    return PollOptionResponse(
        id=option.id,
        poll_id=option.poll_id,
        index=option.index,
        text_value=option.text_value,
        media_url=option.media_url,
        metadata=option.metadata_json,
        date_start=option.date_start,
        date_end=option.date_end,
        time_of_day=option.time_of_day.value if option.time_of_day else None,
        vote_count=vote_count,
        created_by_id=option.created_by_id,
        created=option.created,
    )


def trip_to_response(trip: Trip) -> TripResponse:
    return TripResponse(
        id=trip.id,
        group_id=trip.group_id,
        title=trip.title,
        status=trip.status.value,
        planning_range_start=trip.planning_range_start,
        planning_range_end=trip.planning_range_end,
        start_date=trip.start_date,
        end_date=trip.end_date,
        updated=trip.updated,
    )


def poll_to_response(
    poll: Poll,
    option_count: int = 0,
    total_votes: int = 0,
    creator_name: Optional[str] = None,
    trip_title: Optional[str] = None,
) -> PollResponse:
    """Convert Poll model to PollResponse schema."""
    return PollResponse(
        id=poll.id,
        trip_id=poll.trip_id,
        trip_title=trip_title,
        activity_id=poll.activity_id,
        poll_type=poll.poll_type.value,
        title=poll.title,
        status=poll.status.value,
        created_by_id=poll.created_by_id,
        creator_name=creator_name,
        updated_by_id=poll.updated_by_id,
        closed_at=poll.closed_at,
        finalized_at=poll.finalized_at,
        finalized_option_id=poll.finalized_option_id,
        option_count=option_count,
        total_votes=total_votes,
        created=poll.created,
        updated=poll.updated,
    )


async def poll_summary(poll: Poll, db: AsyncSession) -> PollResponse:
    """Poll response with counts, creator name and trip title."""
    counts = await poll_service.poll_counts(db, [poll.id])
    names = await poll_service.user_names(db, {poll.created_by_id})
    titles = await poll_service.trip_titles(db, {poll.trip_id})
    option_count, total_votes = counts[poll.id]
    return poll_to_response(
        poll, option_count, total_votes,
        names.get(poll.created_by_id), titles.get(poll.trip_id),
    )


async def poll_detail(poll: Poll, options: list[PollOption], db: AsyncSession) -> PollDetailResponse:
    vote_counts = await poll_service.option_vote_counts(db, poll.id)
    names = await poll_service.user_names(db, {poll.created_by_id})
    titles = await poll_service.trip_titles(db, {poll.trip_id})
    option_items = [
        option_to_response(option, vote_counts.get(option.id, 0)) for option in options
    ]
    summary = poll_to_response(
        poll,
        option_count=len(option_items),
        total_votes=sum(item.vote_count for item in option_items),
        creator_name=names.get(poll.created_by_id),
        trip_title=titles.get(poll.trip_id),
    )
    return PollDetailResponse(**summary.model_dump(), options=option_items)


# ============================================================================
# Poll Endpoints
# ============================================================================

@router.get("", response_model=PollListResponse)
async def list_polls(
    trip_id: str = Query(..., description="Trip ID"),
    scope: PollScope = Query(PollScope.ALL, description="all, trip or activity polls"),
    page: int = Query(1, ge=1),
    perPage: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    List polls of a trip, newest first.
    Requires group membership.
    """
    polls, total_items = await poll_service.get_polls(
        db, oracle, current_user.id, trip_id, scope, page, perPage
    )

    counts = await poll_service.poll_counts(db, [poll.id for poll in polls])
    names = await poll_service.user_names(db, {poll.created_by_id for poll in polls})
    titles = await poll_service.trip_titles(db, {trip_id})
    items = [
        poll_to_response(
            poll, *counts[poll.id],
            creator_name=names.get(poll.created_by_id),
            trip_title=titles.get(poll.trip_id),
        )
        for poll in polls
    ]

    total_pages = ceil(total_items / perPage) if total_items > 0 else 1

    return PollListResponse(
        page=page,
        perPage=perPage,
        totalItems=total_items,
        totalPages=total_pages,
        items=items
    )


@router.post("", response_model=PollDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_poll(
    data: PollCreate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Create a poll with its initial options.
    Requires group membership.
    """
    poll = await poll_service.create_poll(db, oracle, current_user.id, data)
    poll, options = await poll_service.get_poll_detail(db, oracle, current_user.id, poll.id)
    return await poll_detail(poll, options, db)


@router.get("/{poll_id}", response_model=PollDetailResponse)
async def get_poll(
    poll_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Get a poll with its options and vote counts."""
    poll, options = await poll_service.get_poll_detail(db, oracle, current_user.id, poll_id)
    return await poll_detail(poll, options, db)


@router.patch("/{poll_id}", response_model=PollResponse)
async def update_poll(
    poll_id: str,
    data: PollUpdate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Update a poll's title or status.
    Only the poll creator or a group leader can update.
    """
    poll = await poll_service.update_poll(db, oracle, current_user.id, poll_id, data)
    return await poll_summary(poll, db)


@router.delete("/{poll_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_poll(
    poll_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Delete a poll.
    Only the poll creator or a group leader can delete. Finalized polls are kept.
    """
    await poll_service.delete_poll(db, oracle, current_user.id, poll_id)
    return None


@router.post("/{poll_id}/close", response_model=PollResponse)
async def close_poll(
    poll_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Close a poll so it stops accepting votes and options."""
    poll = await poll_service.close_poll(db, oracle, current_user.id, poll_id)
    return await poll_summary(poll, db)


@router.post("/{poll_id}/finalize", response_model=FinalizePollResponse)
async def finalize_poll(
    poll_id: str,
    data: FinalizePollRequest,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Finalize a date poll with the selected option.
    Only group leaders can finalize.
    """
    poll, activity, trip = await finalize_date_poll(
        db, oracle, current_user.id, poll_id, data.selected_option_id
    )
    return FinalizePollResponse(
        poll=await poll_summary(poll, db),
        activity=activity_to_response(activity) if activity else None,
        trip=trip_to_response(trip) if trip else None,
    )


# ============================================================================
# Option Endpoints
# ============================================================================

@router.post("/{poll_id}/options", response_model=PollOptionResponse, status_code=status.HTTP_201_CREATED)
async def add_poll_option(
    poll_id: str,
    data: PollOptionCreate,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """Add an option to an open poll."""
    option = await poll_service.add_poll_option(db, oracle, current_user.id, poll_id, data)
    return option_to_response(option)


@router.delete("/options/{option_id}", response_model=MessageResponse)
async def remove_poll_option(
    option_id: str,
    db: AsyncSession = Depends(get_db),
    oracle: MembershipOracle = Depends(get_membership_oracle),
    current_user: User = Depends(get_current_user)
):
    """
    Remove an option and its votes from an open poll.
    Only the option creator or a group leader can remove it.
    """
    await poll_service.remove_poll_option(db, oracle, current_user.id, option_id)
    return MessageResponse(message="Poll option removed.")
