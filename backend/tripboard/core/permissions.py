"""
Group membership checks for trip-scoped resources.

Every poll, vote and activity operation is gated on the trip's group:
reads and most writes need an active membership, closing or deleting a
poll needs its creator or a leader, and finalization needs a leader.
The checks go through a ``MembershipOracle`` so services do not depend on
how membership is stored.
"""
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tripboard.core.errors import ForbiddenError
from tripboard.models.group import GroupMember, GroupMemberRole, GroupMemberStatus


class MembershipOracle(ABC):
    """Answers membership questions about a group."""

    @abstractmethod
    async def is_active_member(self, group_id: str, user_id: str) -> bool:
        ...

    @abstractmethod
    async def is_leader(self, group_id: str, user_id: str) -> bool:
        """True only for active members holding the leader role."""


class DbMembershipOracle(MembershipOracle):
    """Looks membership up in the ``group_members`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_active_membership(self, group_id: str, user_id: str):
        result = await self.db.execute(
            select(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
                GroupMember.status == GroupMemberStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def is_active_member(self, group_id: str, user_id: str) -> bool:
        return await self._get_active_membership(group_id, user_id) is not None

    async def is_leader(self, group_id: str, user_id: str) -> bool:
        membership = await self._get_active_membership(group_id, user_id)
        return membership is not None and membership.role == GroupMemberRole.LEADER


async def require_member(
    oracle: MembershipOracle,
    group_id: str,
    user_id: str,
    detail: str = "You must be a member of the group.",
) -> None:
    """Raise 403 unless the user is an active member of the group."""
    if not await oracle.is_active_member(group_id, user_id):
        raise ForbiddenError(detail)


async def require_leader(
    oracle: MembershipOracle,
    group_id: str,
    user_id: str,
    detail: str = "Only group leaders can perform this action.",
) -> None:
    """Raise 403 unless the user is an active member and a leader."""
    await require_member(oracle, group_id, user_id)
    if not await oracle.is_leader(group_id, user_id):
        raise ForbiddenError(detail)


async def require_owner_or_leader(
    oracle: MembershipOracle,
    group_id: str,
    user_id: str,
    owner_id: str,
    detail: str,
) -> None:
    """Raise 403 unless the user is an active member who owns the resource or leads the group."""
    await require_member(oracle, group_id, user_id)
    if owner_id != user_id and not await oracle.is_leader(group_id, user_id):
        raise ForbiddenError(detail)
