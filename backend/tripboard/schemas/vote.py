"""
Vote schemas.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel


class VoteCreate(BaseModel):
    """Cast vote request."""
    poll_option_id: str


class ChangeVoteRequest(BaseModel):
    """Move the caller's vote in an ordinary poll to another option."""
    poll_id: str
    new_option_id: str


class VoteResponse(BaseModel):
    """Vote response."""
    id: str
    poll_id: str
    poll_option_id: str
    user_id: str
    username: Optional[str] = None
    created: datetime
