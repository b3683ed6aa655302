"""Identity-provider webhook: keeps local users in sync with the auth provider."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.webhooks import read_verified_event
from goalplanner.config import get_settings
from goalplanner.database import get_session
from goalplanner.dependencies import get_email
from goalplanner.email.service import EmailService
from goalplanner.users.service import delete_user, upsert_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])


def primary_email(data: dict[str, Any]) -> str:
    """The primary address from an identity payload, else the first one listed."""
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if primary_id and entry.get("id") == primary_id:
            return entry.get("email_address") or ""
    if addresses:
        return addresses[0].get("email_address") or ""
    return ""


@router.post("/identity")
async def identity_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
    email_service: EmailService = Depends(get_email),
) -> dict[str, bool]:
    """Handle ``user.created``, ``user.updated`` and ``user.deleted`` events."""
    event = await read_verified_event(request, get_settings().identity_webhook_secret)
    event_type = event.get("type")
    data = event["data"]
    user_id = data.get("id")
    if not user_id:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if event_type in ("user.created", "user.updated"):
        user, created = await upsert_user(
            db,
            str(user_id),
            email=primary_email(data),
            username=data.get("username"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            image_url=data.get("image_url"),
        )
        await db.commit()
        if created and user.email:
            await email_service.send_template(user.email, "welcome", {"first_name": user.first_name})
    elif event_type == "user.deleted":
        await delete_user(db, str(user_id))
        await db.commit()
    else:
        logger.info("identity_event_ignored", event_type=event_type)

    return {"received": True}
