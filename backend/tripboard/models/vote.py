"""
Vote model.
"""
from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from tripboard.models.base import BaseModel

if TYPE_CHECKING:
    from tripboard.models.poll import PollOption
    from tripboard.models.user import User


class Vote(BaseModel):
    """
    A user's vote for one poll option.

    ``exclusive_poll_id`` equals ``poll_id`` for ordinary polls and is NULL
    for date polls, so the second unique constraint allows a single vote per
    user in an ordinary poll while date polls accept one vote per option.
    """
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("poll_option_id", "user_id", name="uq_votes_option_user"),
        UniqueConstraint("exclusive_poll_id", "user_id", name="uq_votes_exclusive_poll_user"),
    )

    poll_option_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("poll_options.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    poll_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("polls.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    exclusive_poll_id: Mapped[Optional[str]] = mapped_column(String(15), nullable=True)
    user_id: Mapped[str] = mapped_column(
        String(15),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    poll_option: Mapped["PollOption"] = relationship(
        "PollOption",
        back_populates="votes"
    )
    user: Mapped["User"] = relationship(
        "User",
        foreign_keys=[user_id]
    )

    def __repr__(self) -> str:
        return f"<Vote by {self.user_id} on option {self.poll_option_id}>"
