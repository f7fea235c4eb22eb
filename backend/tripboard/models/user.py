"""
User model.

Users are provisioned by the identity service; this backend only reads them.
"""
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tripboard.models.base import BaseModel

if TYPE_CHECKING:
    from tripboard.models.group import GroupMember


class User(BaseModel):
    """User profile."""
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    memberships: Mapped[list["GroupMember"]] = relationship(
        "GroupMember",
        foreign_keys="GroupMember.user_id",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"
