"""
TripBoard FastAPI Application - Main entry point.

TripBoard helps a travel group settle its plans. This service hosts the
decision engine behind it:

- Polls: ordinary polls and date polls on a trip or one of its activities
- Votes: one vote per member (ordinary) or per member and date (date polls)
- Finalization: a leader commits the winning date into the activity or trip
- Activities: the daily schedule, ten day slots per trip date

Accounts, groups and memberships are managed by other services; this API
only reads them.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tripboard.core.config import settings
from tripboard.db.base import init_db
from tripboard.schemas.common import HealthResponse
from tripboard.api.v1 import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Note: In production, use Alembic migrations instead
    await init_db()
    logger.info(f"{settings.APP_NAME} started ({settings.APP_ENV})")
    yield


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="""
TripBoard - group trip planning.

## Resources

- **Polls**: propose options for a trip or an activity, close and finalize
- **Votes**: cast, change and remove votes
- **Activities**: the trip schedule and its free day slots
    """,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# HEALTH CHECK
# ============================================================================

@app.get("/api/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(code=200, message="API is healthy.")


# ============================================================================
# V1 ENDPOINTS
# ============================================================================

# Polls, votes and activities - /api/v1/*
app.include_router(
    api_router,
    prefix=settings.API_V1_PREFIX,
)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc)}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tripboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
