"""Subscription state, plan limits and payments-provider webhook handling."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import func, select

from goalplanner.config import get_settings
from goalplanner.db.models import Goal, Subscription, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@dataclass(frozen=True)
class SubscriptionLimits:
    max_active_goals: float
    daily_check_ins: bool
    advanced_ai: bool
    custom_templates: bool
    analytics: bool
    export_data: bool
    remove_branding: bool


PRO_LIMITS = SubscriptionLimits(
    max_active_goals=math.inf,
    daily_check_ins=True,
    advanced_ai=True,
    custom_templates=True,
    analytics=True,
    export_data=True,
    remove_branding=True,
)


def free_limits() -> SubscriptionLimits:
    return SubscriptionLimits(
        max_active_goals=get_settings().free_tier_max_active_goals,
        daily_check_ins=False,
        advanced_ai=False,
        custom_templates=False,
        analytics=False,
        export_data=False,
        remove_branding=False,
    )


@dataclass(frozen=True)
class GoalAllowance:
    allowed: bool
    current_count: int
    limit: int | None
    reason: str | None = None


async def get_user_subscription(db: AsyncSession, user_id: str) -> Subscription | None:
    """Most recently updated subscription of a user."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .order_by(Subscription.updated_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def subscription_is_pro(subscription: Subscription | None, now: datetime | None = None) -> bool:
    """Pro means tier pro, status active, and the paid period not yet over."""
    if subscription is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc)
    return (
        subscription.tier == "pro"
        and subscription.status == "active"
        and (subscription.current_period_end is None or now < subscription.current_period_end)
    )


async def is_pro_user(db: AsyncSession, user_id: str, now: datetime | None = None) -> bool:
    return subscription_is_pro(await get_user_subscription(db, user_id), now)


async def get_subscription_limits(db: AsyncSession, user_id: str) -> SubscriptionLimits:
    return PRO_LIMITS if await is_pro_user(db, user_id) else free_limits()


async def count_active_goals(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Goal).where(Goal.user_id == user_id, Goal.status == "active")
    )
    return result.scalar_one()


async def can_create_goal(db: AsyncSession, user_id: str) -> GoalAllowance:
    """Check the active-goal limit of the user's plan."""
    limits = await get_subscription_limits(db, user_id)
    current = await count_active_goals(db, user_id)
    if math.isinf(limits.max_active_goals):
        return GoalAllowance(allowed=True, current_count=current, limit=None)

    limit = int(limits.max_active_goals)
    if current >= limit:
        return GoalAllowance(
            allowed=False,
            current_count=current,
            limit=limit,
            reason="You have reached the maximum number of active goals for free accounts",
        )
    return GoalAllowance(allowed=True, current_count=current, limit=limit)


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _owner_id(data: dict[str, Any]) -> str | None:
    for key in ("metadata", "customer_metadata"):
        meta = data.get(key) or {}
        owner = meta.get("user_id") or meta.get("userId")
        if owner:
            return str(owner)
    return None


async def upsert_subscription(db: AsyncSession, data: dict[str, Any]) -> Subscription | None:
    """Insert or refresh a pro subscription. Returns None when the owner is missing or unknown."""
    user_id = _owner_id(data)
    if user_id is None:
        logger.warning("subscription_without_user", subscription_id=data.get("id"))
        return None
    if await db.get(User, user_id) is None:
        logger.warning("subscription_unknown_user", subscription_id=data.get("id"), user_id=user_id)
        return None

    now = datetime.now(timezone.utc)
    sub = await db.get(Subscription, data["id"])
    if sub is None:
        sub = Subscription(id=data["id"], user_id=user_id, created_at=now)
        db.add(sub)

    sub.user_id = user_id
    sub.status = data.get("status") or "active"
    sub.tier = "pro"
    sub.provider_customer_id = data.get("customer_id")
    sub.provider_subscription_id = data["id"]
    sub.provider_product_id = data.get("product_id")
    sub.current_period_start = _parse_timestamp(data.get("current_period_start"))
    sub.current_period_end = _parse_timestamp(data.get("current_period_end"))
    sub.cancel_at_period_end = bool(data.get("cancel_at_period_end", False))
    sub.updated_at = now
    await db.flush()
    logger.info("subscription_upserted", subscription_id=sub.id, user_id=user_id, status=sub.status)
    return sub


async def mark_subscription_canceled(db: AsyncSession, subscription_id: str) -> Subscription | None:
    """Customer canceled; access continues until the period ends."""
    sub = await db.get(Subscription, subscription_id)
    if sub is None:
        return None
    sub.cancel_at_period_end = True
    sub.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("subscription_canceled", subscription_id=subscription_id)
    return sub


async def mark_subscription_revoked(db: AsyncSession, subscription_id: str) -> Subscription | None:
    """Access ends immediately."""
    sub = await db.get(Subscription, subscription_id)
    if sub is None:
        return None
    sub.status = "canceled"
    sub.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("subscription_revoked", subscription_id=subscription_id)
    return sub


async def handle_billing_event(db: AsyncSession, event: dict[str, Any]) -> bool:
    """Apply one billing webhook event. Returns False for event types that are ignored."""
    event_type = event.get("type")
    data = event.get("data") or {}
    if event_type in ("subscription.created", "subscription.updated"):
        await upsert_subscription(db, data)
    elif event_type == "subscription.canceled":
        await mark_subscription_canceled(db, data["id"])
    elif event_type == "subscription.revoked":
        await mark_subscription_revoked(db, data["id"])
    else:
        logger.info("billing_event_ignored", event_type=event_type)
        return False
    return True
