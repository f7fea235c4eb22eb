"""
v1 API routers.
"""
from fastapi import APIRouter

from tripboard.api.v1 import polls, votes, activities

api_router = APIRouter()

# Polls - /api/v1/polls/*
# Includes: options, close, finalize
api_router.include_router(polls.router, prefix="/polls", tags=["polls"])

# Votes - /api/v1/votes/*
api_router.include_router(votes.router, prefix="/votes", tags=["votes"])

# Activities - /api/v1/activities/*
# Includes: available day slots
api_router.include_router(activities.router, prefix="/activities", tags=["activities"])
