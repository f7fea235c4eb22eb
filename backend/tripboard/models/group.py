"""
Travel group and group membership models.

Membership is managed by the groups service; polls and activities only ask
whether a user is an active member or a leader of the trip's group.
"""
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy import String, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum
from tripboard.models.base import BaseModel

if TYPE_CHECKING:
    from tripboard.models.user import User
    from tripboard.models.trip import Trip


class GroupMemberRole(str, enum.Enum):
    """Role inside a travel group."""
    LEADER = "leader"
    MEMBER = "member"


class GroupMemberStatus(str, enum.Enum):
    """Membership status."""
    PENDING = "pending"
    ACTIVE = "active"


class Group(BaseModel):
    """A travel group that owns trips."""
    __tablename__ = "groups"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    cover_photo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_by_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    members: Mapped[list["GroupMember"]] = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan"
    )
    trips: Mapped[list["Trip"]] = relationship(
        "Trip",
        back_populates="group"
    )

    def __repr__(self) -> str:
        return f"<Group {self.name}>"


class GroupMember(BaseModel):
    """Links users to groups with a role."""
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    group_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role: Mapped[GroupMemberRole] = mapped_column(
        Enum(GroupMemberRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=GroupMemberRole.MEMBER
    )
    status: Mapped[GroupMemberStatus] = mapped_column(
        Enum(GroupMemberStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=GroupMemberStatus.PENDING,
        index=True
    )
    joined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    group: Mapped["Group"] = relationship(
        "Group",
        back_populates="members"
    )
    user: Mapped["User"] = relationship(
        "User",
        foreign_keys=[user_id],
        back_populates="memberships"
    )

    def __repr__(self) -> str:
        return f"<GroupMember {self.user_id} in {self.group_id} as {self.role}>"
