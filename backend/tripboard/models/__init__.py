"""
SQLAlchemy models for TripBoard.

- Core: users, groups and group membership (read-only here)
- Planning: trips and activities
- Decisions: polls, poll options and votes
"""
# Core models
from tripboard.models.user import User
from tripboard.models.group import Group, GroupMember, GroupMemberRole, GroupMemberStatus

# Planning
from tripboard.models.trip import Trip, TripStatus
from tripboard.models.activity import Activity, ActivityStatus, ActivityCategory, TimeSlot

# Decisions
from tripboard.models.poll import (
    Poll,
    PollOption,
    PollType,
    PollStatus,
    PollScope,
    VALID_STATUS_TRANSITIONS,
)
from tripboard.models.vote import Vote

__all__ = [
    # Core
    "User",
    "Group",
    "GroupMember",
    "GroupMemberRole",
    "GroupMemberStatus",
    # Planning
    "Trip",
    "TripStatus",
    "Activity",
    "ActivityStatus",
    "ActivityCategory",
    "TimeSlot",
    # Decisions
    "Poll",
    "PollOption",
    "PollType",
    "PollStatus",
    "PollScope",
    "VALID_STATUS_TRANSITIONS",
    "Vote",
]
