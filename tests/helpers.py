"""Helpers shared by API tests."""

from __future__ import annotations

import base64
import json
import time
import uuid
from typing import Any

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.webhooks import sign_payload
from goalplanner.database import get_session_factory
from goalplanner.db.models import Goal

IDENTITY_SECRET = "whsec_" + base64.b64encode(b"identity-test-secret").decode()
BILLING_SECRET = "whsec_" + base64.b64encode(b"billing-test-secret").decode()
CRON_SECRET = "cron-test-secret"


def signed_webhook(secret: str, event: dict[str, Any]) -> tuple[bytes, dict[str, str]]:
    """Body and Standard Webhooks headers for a delivery signed with ``secret``."""
    body = json.dumps(event).encode()
    msg_id = f"msg_{uuid.uuid4().hex}"
    timestamp = int(time.time())
    headers = {
        "webhook-id": msg_id,
        "webhook-timestamp": str(timestamp),
        "webhook-signature": sign_payload(secret, msg_id, timestamp, body),
        "content-type": "application/json",
    }
    return body, headers


async def create_goal_via_api(client: AsyncClient, title: str = "Learn Spanish", **fields: Any) -> dict[str, Any]:
    """POST a goal and return the full goal document."""
    response = await client.post("/api/v1/goals", json={"title": title, **fields})
    assert response.status_code == 201, response.text
    goal_id = response.json()["goal_id"]
    detail = await client.get(f"/api/v1/goals/{goal_id}")
    assert detail.status_code == 200, detail.text
    return detail.json()


async def activate_pro(client: AsyncClient, user_id: str, subscription_id: str = "sub_test_1") -> None:
    """Deliver a signed ``subscription.created`` event making ``user_id`` Pro."""
    body, headers = signed_webhook(
        BILLING_SECRET,
        {
            "type": "subscription.created",
            "data": {
                "id": subscription_id,
                "status": "active",
                "customer_id": "cus_test_1",
                "product_id": "prod_pro",
                "current_period_start": "2026-01-01T00:00:00Z",
                "current_period_end": "2099-01-01T00:00:00Z",
                "metadata": {"user_id": user_id},
            },
        },
    )
    response = await client.post("/api/v1/webhooks/billing", content=body, headers=headers)
    assert response.status_code == 200, response.text


def interleave_goal_write(monkeypatch: Any, goal_id: str, title: str = "Renamed elsewhere") -> dict[str, int]:
    """Make the next commit lose a race: another session renames the goal first.

    The competing write bumps the goal's version, so the original commit
    fails with ``StaleDataError``. Returns a counter of intercepted commits.
    """
    original_commit = AsyncSession.commit
    state = {"interleaved": 0}

    async def commit(self: AsyncSession) -> None:
        if not state["interleaved"]:
            state["interleaved"] = 1
            async with get_session_factory()() as other:
                goal = await other.get(Goal, goal_id)
                goal.title = title
                await other.commit()
        await original_commit(self)

    monkeypatch.setattr(AsyncSession, "commit", commit)
    return state
