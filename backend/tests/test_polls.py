"""
Tests for polls and poll options.

Tests cover:
- Poll creation and option validation per poll type
- Membership, creator and leader permissions
- Status transitions (open, closed, finalized)
- Listing with scope filter and pagination
- Option removal and its votes
- Writes racing a concurrent close or finalize
"""
import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from tripboard.core.errors import BadRequestError, ConflictError, ForbiddenError
from tripboard.models.activity import Activity, TimeSlot
from tripboard.models.poll import Poll, PollOption, PollType, PollStatus
from tripboard.models.trip import Trip
from tripboard.models.user import User
from tripboard.models.vote import Vote
from tripboard.schemas.poll import PollCreate, PollOptionCreate
from tripboard.services import polls as poll_service
from tripboard.services.finalization import finalize_date_poll


def _future(days: int = 30, hour: int = 9) -> str:
    moment = datetime.now(timezone.utc) + timedelta(days=days)
    return moment.replace(hour=hour, minute=0, second=0, microsecond=0).isoformat()


def _past(days: int = 1) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


class TestCreatePoll:
    """Poll creation and option rules."""

    @pytest.mark.asyncio
    async def test_create_ordinary_poll(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip
    ):
        response = await client.post(
            "/api/v1/polls",
            json={
                "trip_id": test_trip.id,
                "title": "Where do we stay?",
                "options": [
                    {"index": 0, "text_value": "Alfama flat"},
                    {"index": 1, "text_value": "Hostel", "metadata": '{"price": 30}'},
                ],
            },
            headers=member_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["poll_type"] == "ordinary"
        assert data["option_count"] == 2
        assert data["total_votes"] == 0
        assert data["creator_name"] == "Member"
        assert data["trip_title"] == "Lisbon 2025"
        assert [o["text_value"] for o in data["options"]] == ["Alfama flat", "Hostel"]

    @pytest.mark.asyncio
    async def test_create_date_poll(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip
    ):
        response = await client.post(
            "/api/v1/polls",
            json={
                "trip_id": test_trip.id,
                "poll_type": "date",
                "title": "When do we go?",
                "options": [
                    {"index": 0, "date_start": _future(30), "date_end": _future(34)},
                    {"index": 1, "date_start": _future(60), "time_of_day": "morning"},
                ],
            },
            headers=member_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["poll_type"] == "date"
        assert data["options"][1]["time_of_day"] == "morning"

    @pytest.mark.asyncio
    async def test_create_poll_requires_active_membership(
        self, client: AsyncClient, outsider_headers: dict, pending_headers: dict, test_trip: Trip
    ):
        payload = {"trip_id": test_trip.id, "title": "Sneaky", "options": [{"text_value": "x"}]}

        response = await client.post("/api/v1/polls", json=payload, headers=outsider_headers)
        assert response.status_code == 403

        response = await client.post("/api/v1/polls", json=payload, headers=pending_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_create_poll_unknown_trip(self, client: AsyncClient, member_headers: dict):
        response = await client.post(
            "/api/v1/polls",
            json={"trip_id": "doesnotexist123", "title": "Nope"},
            headers=member_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_poll_without_token(self, client: AsyncClient, test_trip: Trip):
        response = await client.post(
            "/api/v1/polls", json={"trip_id": test_trip.id, "title": "Anon"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("poll_type,option,message", [
        ("date", {"date_start": _past()}, "must be in the future"),
        ("date", {"date_start": _future(10), "date_end": _future(5)}, "on or after the start date"),
        ("date", {"date_start": _future(10), "text_value": "Beach"}, "cannot have a text value"),
        ("date", {"text_value": "Beach"}, "cannot have a text value"),
        ("ordinary", {"text_value": "Beach", "date_start": _future(10)}, "cannot have dates"),
        ("ordinary", {"text_value": "Beach", "time_of_day": "evening"}, "cannot have dates"),
        ("ordinary", {"index": 1}, "needs a text value"),
        ("ordinary", {"metadata": "{not json"}, "valid JSON"),
    ])
    async def test_invalid_options_rejected(
        self,
        client: AsyncClient,
        member_headers: dict,
        test_trip: Trip,
        poll_type: str,
        option: dict,
        message: str,
    ):
        response = await client.post(
            "/api/v1/polls",
            json={
                "trip_id": test_trip.id,
                "poll_type": poll_type,
                "title": "Invalid",
                "options": [option],
            },
            headers=member_headers
        )
        assert response.status_code == 400
        assert message in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_second_unfinalized_poll_for_same_target_conflicts(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip, make_poll
    ):
        await make_poll(PollType.ORDINARY, status=PollStatus.CLOSED)

        response = await client.post(
            "/api/v1/polls",
            json={"trip_id": test_trip.id, "title": "Again", "options": [{"text_value": "a"}]},
            headers=member_headers
        )
        assert response.status_code == 409

        # A different poll type for the same target is fine
        response = await client.post(
            "/api/v1/polls",
            json={
                "trip_id": test_trip.id,
                "poll_type": "date",
                "title": "Dates",
                "options": [{"date_start": _future()}],
            },
            headers=member_headers
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_finalized_poll_does_not_block_a_new_one(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip, make_poll
    ):
        await make_poll(PollType.ORDINARY, status=PollStatus.FINALIZED)

        response = await client.post(
            "/api/v1/polls",
            json={"trip_id": test_trip.id, "title": "Round two"},
            headers=member_headers
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_activity_from_another_trip_rejected(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        member_headers: dict,
        member_user: User,
        test_trip: Trip,
    ):
        other_trip = Trip(group_id=test_trip.group_id, title="Porto weekend")
        db_session.add(other_trip)
        await db_session.flush()
        other_activity = Activity(trip_id=other_trip.id, title="Port tasting", created_by_id=member_user.id)
        db_session.add(other_activity)
        await db_session.commit()

        response = await client.post(
            "/api/v1/polls",
            json={"trip_id": test_trip.id, "activity_id": other_activity.id, "title": "Wrong trip"},
            headers=member_headers
        )
        assert response.status_code == 400
        assert "does not belong to this trip" in response.json()["detail"]


class TestPollService:
    """Service-level checks with the in-memory membership fake."""

    @pytest.mark.asyncio
    async def test_create_poll_with_fake_oracle(
        self, db_session: AsyncSession, fake_oracle, member_user: User, test_trip: Trip
    ):
        poll = await poll_service.create_poll(
            db_session, fake_oracle, member_user.id,
            PollCreate(
                trip_id=test_trip.id,
                title="Dinner spot",
                options=[PollOptionCreate(text_value="Tasca"), PollOptionCreate(text_value="Marisqueira")],
            ),
        )
        assert poll.status == PollStatus.OPEN
        assert poll.created_by_id == member_user.id

        stored, options = await poll_service.get_poll_detail(
            db_session, fake_oracle, member_user.id, poll.id
        )
        assert stored.id == poll.id
        assert len(options) == 2

    @pytest.mark.asyncio
    async def test_outsider_rejected_by_fake_oracle(
        self, db_session: AsyncSession, fake_oracle, outsider_user: User, test_trip: Trip
    ):
        with pytest.raises(ForbiddenError):
            await poll_service.create_poll(
                db_session, fake_oracle, outsider_user.id,
                PollCreate(trip_id=test_trip.id, title="Nope"),
            )

    @pytest.mark.asyncio
    async def test_conflicting_poll_raises(
        self, db_session: AsyncSession, fake_oracle, member_user: User, test_trip: Trip, make_poll
    ):
        await make_poll(PollType.DATE)
        with pytest.raises(ConflictError):
            await poll_service.create_poll(
                db_session, fake_oracle, member_user.id,
                PollCreate(trip_id=test_trip.id, poll_type=PollType.DATE, title="Dates again"),
            )

    def test_build_option_normalizes_naive_dates_to_utc(self, member_user: User):
        start = datetime.now() + timedelta(days=3)
        option = poll_service.build_option(
            PollType.DATE,
            PollOptionCreate(date_start=start, time_of_day=TimeSlot.EVENING),
            member_user.id,
        )
        assert option.date_start.tzinfo == timezone.utc
        assert option.time_of_day == TimeSlot.EVENING

    def test_build_option_rejects_past_start(self, member_user: User):
        now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        with pytest.raises(BadRequestError):
            poll_service.build_option(
                PollType.DATE,
                PollOptionCreate(date_start=datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)),
                member_user.id,
                now=now,
            )


class TestPollStatus:
    """Close, update and delete go through the transition table."""

    @pytest.mark.asyncio
    async def test_creator_closes_poll(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll(options=[{"text_value": "a"}])

        response = await client.post(f"/api/v1/polls/{poll.id}/close", headers=member_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "closed"
        assert data["closed_at"] is not None
        assert data["updated_by_id"] is not None

    @pytest.mark.asyncio
    async def test_leader_closes_member_poll(
        self, client: AsyncClient, leader_headers: dict, make_poll
    ):
        poll, _ = await make_poll()
        response = await client.post(f"/api/v1/polls/{poll.id}/close", headers=leader_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_other_member_cannot_close(
        self, client: AsyncClient, member_headers: dict, leader_user: User, make_poll
    ):
        poll, _ = await make_poll(created_by=leader_user)
        response = await client.post(f"/api/v1/polls/{poll.id}/close", headers=member_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_close_twice_rejected(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll(status=PollStatus.CLOSED)
        response = await client.post(f"/api/v1/polls/{poll.id}/close", headers=member_headers)
        assert response.status_code == 400
        assert "Cannot change poll status" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_closed_poll_blocks_options_and_votes_but_stays_readable(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, options = await make_poll(options=[{"text_value": "a"}], status=PollStatus.CLOSED)

        response = await client.post(
            f"/api/v1/polls/{poll.id}/options",
            json={"text_value": "late idea"},
            headers=member_headers
        )
        assert response.status_code == 400

        response = await client.post(
            "/api/v1/votes", json={"poll_option_id": options[0].id}, headers=member_headers
        )
        assert response.status_code == 400

        response = await client.get(f"/api/v1/polls/{poll.id}", headers=member_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "closed"

    @pytest.mark.asyncio
    async def test_update_title_and_close(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll()
        response = await client.patch(
            f"/api/v1/polls/{poll.id}",
            json={"title": "Renamed", "status": "closed"},
            headers=member_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Renamed"
        assert data["status"] == "closed"

    @pytest.mark.asyncio
    async def test_update_cannot_finalize(
        self, client: AsyncClient, leader_headers: dict, make_poll
    ):
        poll, _ = await make_poll(PollType.DATE)
        response = await client.patch(
            f"/api/v1/polls/{poll.id}", json={"status": "finalized"}, headers=leader_headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_closed_poll_cannot_reopen(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll(status=PollStatus.CLOSED)
        response = await client.patch(
            f"/api/v1/polls/{poll.id}", json={"status": "open"}, headers=member_headers
        )
        assert response.status_code == 400
        assert "Cannot change poll status" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_finalized_poll_is_immutable(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll(PollType.DATE, status=PollStatus.FINALIZED)

        response = await client.patch(
            f"/api/v1/polls/{poll.id}", json={"title": "Changed"}, headers=member_headers
        )
        assert response.status_code == 400

        response = await client.delete(f"/api/v1/polls/{poll.id}", headers=member_headers)
        assert response.status_code == 400

        response = await client.get(f"/api/v1/polls/{poll.id}", headers=member_headers)
        assert response.json()["title"] == "Where and when?"

    @pytest.mark.asyncio
    async def test_delete_poll(
        self, client: AsyncClient, db_session: AsyncSession, member_headers: dict, make_poll
    ):
        poll, _ = await make_poll()

        response = await client.delete(f"/api/v1/polls/{poll.id}", headers=member_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/v1/polls/{poll.id}", headers=member_headers)
        assert response.status_code == 404

        result = await db_session.execute(select(Poll).where(Poll.id == poll.id))
        assert result.scalar_one().deleted_at is not None


class TestListPolls:

    @pytest.mark.asyncio
    async def test_scope_filter(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip,
        test_activity: Activity, make_poll
    ):
        await make_poll(PollType.ORDINARY)
        await make_poll(PollType.DATE, activity=test_activity)

        response = await client.get(
            f"/api/v1/polls?trip_id={test_trip.id}", headers=member_headers
        )
        assert response.status_code == 200
        assert response.json()["totalItems"] == 2

        response = await client.get(
            f"/api/v1/polls?trip_id={test_trip.id}&scope=trip", headers=member_headers
        )
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["activity_id"] is None

        response = await client.get(
            f"/api/v1/polls?trip_id={test_trip.id}&scope=activity", headers=member_headers
        )
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["activity_id"] == test_activity.id

    @pytest.mark.asyncio
    async def test_pagination_and_counts(
        self, client: AsyncClient, member_headers: dict, test_trip: Trip, make_poll
    ):
        for _ in range(3):
            await make_poll(options=[{"text_value": "a"}, {"text_value": "b"}])

        response = await client.get(
            f"/api/v1/polls?trip_id={test_trip.id}&page=2&perPage=2", headers=member_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 2
        assert data["perPage"] == 2
        assert data["totalItems"] == 3
        assert data["totalPages"] == 2
        assert len(data["items"]) == 1
        assert data["items"][0]["option_count"] == 2

    @pytest.mark.asyncio
    async def test_list_requires_membership(
        self, client: AsyncClient, outsider_headers: dict, test_trip: Trip
    ):
        response = await client.get(
            f"/api/v1/polls?trip_id={test_trip.id}", headers=outsider_headers
        )
        assert response.status_code == 403


class TestPollOptions:

    @pytest.mark.asyncio
    async def test_add_option_to_open_poll(
        self, client: AsyncClient, leader_headers: dict, make_poll
    ):
        poll, _ = await make_poll(PollType.DATE)
        response = await client.post(
            f"/api/v1/polls/{poll.id}/options",
            json={"date_start": _future(45, hour=19), "time_of_day": "evening"},
            headers=leader_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["poll_id"] == poll.id
        assert data["vote_count"] == 0

    @pytest.mark.asyncio
    async def test_remove_option_deletes_its_votes(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        member_headers: dict,
        member_user: User,
        make_poll,
    ):
        poll, options = await make_poll(options=[{"text_value": "a"}, {"text_value": "b"}])
        db_session.add(Vote(
            poll_option_id=options[0].id,
            poll_id=poll.id,
            exclusive_poll_id=poll.id,
            user_id=member_user.id,
        ))
        await db_session.commit()

        response = await client.delete(
            f"/api/v1/polls/options/{options[0].id}", headers=member_headers
        )
        assert response.status_code == 200

        result = await db_session.execute(select(Vote).where(Vote.poll_id == poll.id))
        assert result.scalars().all() == []

        response = await client.get(f"/api/v1/polls/{poll.id}", headers=member_headers)
        data = response.json()
        assert data["option_count"] == 1
        assert data["total_votes"] == 0
        assert data["options"][0]["id"] == options[1].id

    @pytest.mark.asyncio
    async def test_remove_option_requires_creator_or_leader(
        self, client: AsyncClient, member_headers: dict, leader_user: User, make_poll
    ):
        poll, options = await make_poll(options=[{"text_value": "a"}], created_by=leader_user)
        response = await client.delete(
            f"/api/v1/polls/options/{options[0].id}", headers=member_headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_remove_option_from_closed_poll_rejected(
        self, client: AsyncClient, member_headers: dict, make_poll
    ):
        poll, options = await make_poll(options=[{"text_value": "a"}], status=PollStatus.CLOSED)
        response = await client.delete(
            f"/api/v1/polls/options/{options[0].id}", headers=member_headers
        )
        assert response.status_code == 400


class TestConcurrentPollWrites:

    @pytest.mark.asyncio
    async def test_add_option_after_concurrent_close(
        self,
        db_session: AsyncSession,
        other_session: AsyncSession,
        fake_oracle,
        member_user: User,
        make_poll,
    ):
        poll, _ = await make_poll(options=[{"text_value": "Beach"}])
        user_id, poll_id = member_user.id, poll.id

        await poll_service.close_poll(other_session, fake_oracle, user_id, poll_id)

        with pytest.raises(ConflictError):
            await poll_service.add_poll_option(
                db_session, fake_oracle, user_id, poll_id, PollOptionCreate(text_value="Museum")
            )

        result = await other_session.execute(
            select(PollOption).where(PollOption.poll_id == poll_id)
        )
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_delete_after_concurrent_finalize(
        self,
        db_session: AsyncSession,
        other_session: AsyncSession,
        fake_oracle,
        leader_user: User,
        make_poll,
    ):
        poll, options = await make_poll(
            PollType.DATE,
            options=[{
                "date_start": datetime(2025, 7, 1, tzinfo=timezone.utc),
                "date_end": datetime(2025, 7, 5, tzinfo=timezone.utc),
            }],
        )
        leader_id, poll_id = leader_user.id, poll.id

        await finalize_date_poll(other_session, fake_oracle, leader_id, poll_id, options[0].id)

        with pytest.raises(ConflictError):
            await poll_service.delete_poll(db_session, fake_oracle, leader_id, poll_id)

        await db_session.refresh(poll)
        assert poll.deleted_at is None
        assert poll.status == PollStatus.FINALIZED
