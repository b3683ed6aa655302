"""arq worker for scheduled jobs.

Import path for arq CLI: arq goalplanner.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from goalplanner.config import get_settings
from goalplanner.database import close_db, get_session_factory, init_db
from goalplanner.email.service import get_email_service
from goalplanner.goals.fallback_store import get_fallback_store, reconcile_fallback_goals
from goalplanner.reminders.service import send_daily_check_in_reminders

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database pool once per worker process."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["email"] = get_email_service(ctx.get("redis"))
    logger.info("Scheduled-job worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Scheduled-job worker shut down")


async def check_in_reminders(ctx: dict) -> int:  # type: ignore[type-arg]
    """Daily job: email users who have not checked in today."""
    async with get_session_factory()() as db:
        sent = await send_daily_check_in_reminders(db, ctx["email"])
    logger.info("Sent %d check-in reminders", sent)
    return sent


async def reconcile_fallback(ctx: dict) -> int:  # type: ignore[type-arg]
    """Hourly job: replay goals saved to the fallback log into the database."""
    store = get_fallback_store()
    if not store.pending():
        return 0
    async with get_session_factory()() as db:
        count = await reconcile_fallback_goals(db, store)
    if count:
        logger.info("Reconciled %d fallback goals", count)
    return count


class WorkerSettings:
    """arq worker settings for reminders and fallback reconciliation."""

    functions = [check_in_reminders, reconcile_fallback]
    cron_jobs = [
        cron(check_in_reminders, hour={17}, minute={0}, run_at_startup=False),
        cron(reconcile_fallback, minute={15}, run_at_startup=True),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    on_startup = startup
    on_shutdown = shutdown
    max_jobs = 2
    job_timeout = 600
