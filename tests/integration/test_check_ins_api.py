"""Check-in API tests."""

import uuid

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.db.models import UserStats
from tests.helpers import create_goal_via_api


class TestCreateCheckIn:
    async def test_create(self, authed_client: AsyncClient, db_session: AsyncSession):
        goal = await create_goal_via_api(authed_client)
        response = await authed_client.post(
            "/api/v1/check-ins",
            json={"goal_id": goal["id"], "mood": "great", "content": "Did my lesson"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "daily"
        assert data["mood"] == "great"
        assert data["is_public"] is False
        assert data["goal"] == {"title": "Learn Spanish", "slug": "learn-spanish"}

        stats = (await db_session.execute(select(UserStats).where(UserStats.user_id == "user_alice"))).scalar_one()
        assert stats.current_streak == 1
        assert stats.total_steps_completed == 0

    async def test_same_day_check_ins_keep_streak(self, authed_client: AsyncClient, db_session: AsyncSession):
        goal = await create_goal_via_api(authed_client)
        for _ in range(3):
            await authed_client.post("/api/v1/check-ins", json={"goal_id": goal["id"]})
        stats = (await db_session.execute(select(UserStats).where(UserStats.user_id == "user_alice"))).scalar_one()
        assert stats.current_streak == 1

    async def test_invalid_mood_is_400(self, authed_client: AsyncClient):
        goal = await create_goal_via_api(authed_client)
        response = await authed_client.post("/api/v1/check-ins", json={"goal_id": goal["id"], "mood": "ecstatic"})
        assert response.status_code == 400

    async def test_other_users_goal_is_404(self, authed_client: AsyncClient, auth_headers):
        goal = await create_goal_via_api(authed_client)
        response = await authed_client.post(
            "/api/v1/check-ins",
            json={"goal_id": goal["id"]},
            headers=auth_headers("user_bob", "bob@example.com"),
        )
        assert response.status_code == 404

    async def test_unknown_goal_is_404(self, authed_client: AsyncClient):
        response = await authed_client.post("/api/v1/check-ins", json={"goal_id": str(uuid.uuid4())})
        assert response.status_code == 404


class TestListCheckIns:
    async def test_newest_first_and_filter(self, authed_client: AsyncClient):
        spanish = await create_goal_via_api(authed_client, "Learn Spanish")
        guitar = await create_goal_via_api(authed_client, "Play guitar")
        await authed_client.post("/api/v1/check-ins", json={"goal_id": spanish["id"], "content": "one"})
        await authed_client.post("/api/v1/check-ins", json={"goal_id": guitar["id"], "content": "two"})
        await authed_client.post("/api/v1/check-ins", json={"goal_id": spanish["id"], "content": "three"})

        everything = (await authed_client.get("/api/v1/check-ins")).json()["check_ins"]
        assert [c["content"] for c in everything] == ["three", "two", "one"]

        filtered = await authed_client.get("/api/v1/check-ins", params={"goal_id": spanish["id"]})
        assert [c["content"] for c in filtered.json()["check_ins"]] == ["three", "one"]

    async def test_only_own(self, authed_client: AsyncClient, auth_headers):
        goal = await create_goal_via_api(authed_client)
        await authed_client.post("/api/v1/check-ins", json={"goal_id": goal["id"]})
        response = await authed_client.get("/api/v1/check-ins", headers=auth_headers("user_bob", "bob@example.com"))
        assert response.json()["check_ins"] == []
