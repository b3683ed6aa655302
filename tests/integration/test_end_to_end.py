"""A goal from creation to completion through the public API."""

import json
from unittest.mock import AsyncMock

from httpx import AsyncClient

from goalplanner.ai import planner

PLAN = {
    "overview": "Get to your first 5k.",
    "steps": [
        {"title": "Buy running shoes", "description": "Get fitted at a store", "order": 1},
        {"title": "Run three times a week", "description": "Couch to 5k plan", "order": 2},
        {"title": "Enter a race", "description": "Pick a local parkrun", "order": 3},
    ],
    "timeline": "8 weeks",
    "tips": ["Go slow"],
}


async def test_goal_completes_when_last_step_done(authed_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(planner, "complete", AsyncMock(return_value=json.dumps(PLAN)))

    created = await authed_client.post(
        "/api/v1/goals",
        json={"title": "Run a 5k", "why": "Feel healthier", "deadline": "2099-06-01"},
    )
    assert created.status_code == 201
    assert created.json()["steps_saved"] == 3
    goal_id = created.json()["goal_id"]

    goal = (await authed_client.get(f"/api/v1/goals/{goal_id}")).json()
    steps = [s["id"] for s in goal["steps"]]
    assert [s["title"] for s in goal["steps"]] == ["Buy running shoes", "Run three times a week", "Enter a race"]

    first = await authed_client.patch(f"/api/v1/steps/{steps[0]}", json={"status": "completed"})
    assert first.json()["goal_status"] == "active"

    stats = (await authed_client.get("/api/v1/stats/me")).json()
    assert stats["total_steps_completed"] == 1
    assert stats["current_streak"] == 1
    assert (await authed_client.get(f"/api/v1/goals/{goal_id}")).json()["status"] == "active"

    await authed_client.patch(f"/api/v1/steps/{steps[1]}", json={"status": "completed"})
    last = await authed_client.patch(f"/api/v1/steps/{steps[2]}", json={"status": "completed"})
    assert last.json()["goal_completed"] is True

    goal = (await authed_client.get(f"/api/v1/goals/{goal_id}")).json()
    assert goal["status"] == "completed"
    assert goal["completed_at"] is not None

    stats = (await authed_client.get("/api/v1/stats/me")).json()
    assert stats["total_steps_completed"] == 3
    assert stats["total_goals_completed"] == 1
    assert stats["goals_by_status"]["completed"] == 1
