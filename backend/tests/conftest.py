"""
Test configuration and fixtures for TripBoard backend tests.
"""
import os
import pytest
import pytest_asyncio
from datetime import datetime, timezone, date
from typing import AsyncGenerator, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from tripboard.main import app
from tripboard.db.base import Base, get_db
from tripboard.core.security import issue_member_token
from tripboard.core.permissions import MembershipOracle
from tripboard.models.user import User
from tripboard.models.group import Group, GroupMember, GroupMemberRole, GroupMemberStatus
from tripboard.models.trip import Trip
from tripboard.models.activity import Activity, ActivityStatus
from tripboard.models.poll import Poll, PollOption, PollType, PollStatus


# Use a file-based SQLite DB to avoid :memory: multiple-connection issues
# with SQLAlchemy + aiosqlite (each new connection would see an empty DB).
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


class FakeMembershipOracle(MembershipOracle):
    """In-memory membership oracle for service-level tests."""

    def __init__(self):
        self.members: dict[tuple[str, str], bool] = {}

    def add(self, group_id: str, user_id: str, leader: bool = False) -> None:
        self.members[(group_id, user_id)] = leader

    async def is_active_member(self, group_id: str, user_id: str) -> bool:
        return (group_id, user_id) in self.members

    async def is_leader(self, group_id: str, user_id: str) -> bool:
        return self.members.get((group_id, user_id), False)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    # Clean up test database file
    try:
        os.remove("./test.db")
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def other_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Independent session on the same database, acting as a concurrent request."""
    async_session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ========== Users, group and trip ==========

async def _create_user(db_session: AsyncSession, email: str, username: str) -> User:
    user = User(email=email, username=username, display_name=username.title())
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def leader_user(db_session: AsyncSession) -> User:
    """Group leader."""
    return await _create_user(db_session, "leader@example.com", "leader")


@pytest_asyncio.fixture
async def member_user(db_session: AsyncSession) -> User:
    """Active group member without the leader role."""
    return await _create_user(db_session, "member@example.com", "member")


@pytest_asyncio.fixture
async def pending_user(db_session: AsyncSession) -> User:
    """Invited to the group but not yet active."""
    return await _create_user(db_session, "pending@example.com", "pending")


@pytest_asyncio.fixture
async def outsider_user(db_session: AsyncSession) -> User:
    """Not part of the group."""
    return await _create_user(db_session, "outsider@example.com", "outsider")


@pytest_asyncio.fixture
async def test_group(
    db_session: AsyncSession,
    leader_user: User,
    member_user: User,
    pending_user: User,
) -> Group:
    """Travel group with a leader, an active member and a pending member."""
    group = Group(name="Lisbon Crew", created_by_id=leader_user.id)
    db_session.add(group)
    await db_session.flush()

    now = datetime.now(timezone.utc)
    db_session.add_all([
        GroupMember(
            group_id=group.id,
            user_id=leader_user.id,
            role=GroupMemberRole.LEADER,
            status=GroupMemberStatus.ACTIVE,
            joined_at=now,
        ),
        GroupMember(
            group_id=group.id,
            user_id=member_user.id,
            role=GroupMemberRole.MEMBER,
            status=GroupMemberStatus.ACTIVE,
            joined_at=now,
        ),
        GroupMember(
            group_id=group.id,
            user_id=pending_user.id,
            role=GroupMemberRole.MEMBER,
            status=GroupMemberStatus.PENDING,
        ),
    ])
    await db_session.commit()
    return group


@pytest_asyncio.fixture
async def test_trip(db_session: AsyncSession, test_group: Group) -> Trip:
    """Trip of the test group with a planning range in summer 2025."""
    trip = Trip(
        group_id=test_group.id,
        title="Lisbon 2025",
        planning_range_start=date(2025, 6, 1),
        planning_range_end=date(2025, 6, 30),
    )
    db_session.add(trip)
    await db_session.commit()
    return trip


@pytest_asyncio.fixture
async def test_activity(db_session: AsyncSession, test_trip: Trip, member_user: User) -> Activity:
    """Undated activity idea on the test trip."""
    activity = Activity(
        trip_id=test_trip.id,
        title="Sunset sailing",
        status=ActivityStatus.IDEA,
        created_by_id=member_user.id,
    )
    db_session.add(activity)
    await db_session.commit()
    return activity


# ========== Auth headers ==========

def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {issue_member_token(user.id)}"}


@pytest_asyncio.fixture
async def leader_headers(leader_user: User) -> dict:
    return _headers(leader_user)


@pytest_asyncio.fixture
async def member_headers(member_user: User) -> dict:
    return _headers(member_user)


@pytest_asyncio.fixture
async def pending_headers(pending_user: User) -> dict:
    return _headers(pending_user)


@pytest_asyncio.fixture
async def outsider_headers(outsider_user: User) -> dict:
    return _headers(outsider_user)


# ========== Service-level helpers ==========

@pytest.fixture
def fake_oracle(test_group: Group, leader_user: User, member_user: User) -> FakeMembershipOracle:
    """Membership fake mirroring the test group."""
    oracle = FakeMembershipOracle()
    oracle.add(test_group.id, leader_user.id, leader=True)
    oracle.add(test_group.id, member_user.id)
    return oracle


@pytest.fixture
def make_poll(db_session: AsyncSession, test_trip: Trip, member_user: User):
    """
    Factory inserting a poll with options directly, bypassing validation.

    Lets tests use fixed (past) option dates.
    """
    async def _make_poll(
        poll_type: PollType = PollType.ORDINARY,
        options: Optional[list[dict]] = None,
        activity: Optional[Activity] = None,
        status: PollStatus = PollStatus.OPEN,
        created_by: Optional[User] = None,
    ) -> tuple[Poll, list[PollOption]]:
        creator_id = (created_by or member_user).id
        poll = Poll(
            trip_id=test_trip.id,
            activity_id=activity.id if activity else None,
            poll_type=poll_type,
            title="Where and when?",
            status=status,
            created_by_id=creator_id,
        )
        db_session.add(poll)
        await db_session.flush()

        rows = [
            PollOption(poll_id=poll.id, index=i, created_by_id=creator_id, **fields)
            for i, fields in enumerate(options or [])
        ]
        db_session.add_all(rows)
        await db_session.commit()
        return poll, rows

    return _make_poll
