"""Billing router: subscription status, customer portal and the payments webhook."""

from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.dependencies import get_current_user
from goalplanner.auth.webhooks import read_verified_event
from goalplanner.billing.service import (
    get_subscription_limits,
    get_user_subscription,
    handle_billing_event,
    subscription_is_pro,
)
from goalplanner.config import get_settings
from goalplanner.database import get_session
from goalplanner.db.models import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/billing", tags=["Billing"])
webhook_router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])


class LimitsResponse(BaseModel):
    max_active_goals: int | None
    daily_check_ins: bool
    advanced_ai: bool
    custom_templates: bool
    analytics: bool
    export_data: bool
    remove_branding: bool


class SubscriptionResponse(BaseModel):
    tier: str
    is_pro: bool
    status: str | None
    current_period_end: datetime | None
    cancel_at_period_end: bool
    limits: LimitsResponse


class PortalResponse(BaseModel):
    url: str


@router.get("/subscription", response_model=SubscriptionResponse)
async def my_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    sub = await get_user_subscription(db, user.id)
    is_pro = subscription_is_pro(sub)
    limits = await get_subscription_limits(db, user.id)
    return SubscriptionResponse(
        tier="pro" if is_pro else "free",
        is_pro=is_pro,
        status=sub.status if sub else None,
        current_period_end=sub.current_period_end if sub else None,
        cancel_at_period_end=sub.cancel_at_period_end if sub else False,
        limits=LimitsResponse(
            max_active_goals=None if limits.max_active_goals == float("inf") else int(limits.max_active_goals),
            daily_check_ins=limits.daily_check_ins,
            advanced_ai=limits.advanced_ai,
            custom_templates=limits.custom_templates,
            analytics=limits.analytics,
            export_data=limits.export_data,
            remove_branding=limits.remove_branding,
        ),
    )


@router.get("/portal", response_model=PortalResponse)
async def customer_portal(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PortalResponse:
    """Link to the payments provider's self-service portal."""
    sub = await get_user_subscription(db, user.id)
    if sub is None or not sub.provider_customer_id:
        raise HTTPException(status_code=404, detail="No subscription found")
    base = get_settings().billing_portal_base_url.rstrip("/")
    return PortalResponse(url=f"{base}/{quote(sub.provider_customer_id, safe='')}")


@webhook_router.post("/billing")
async def billing_webhook(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> dict[str, bool]:
    """Mirror subscription lifecycle events from the payments provider."""
    event = await read_verified_event(request, get_settings().billing_webhook_secret)
    if str(event.get("type") or "").startswith("subscription.") and not event["data"].get("id"):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    await handle_billing_event(db, event)
    await db.commit()
    return {"received": True}
