"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from goalplanner.billing.router import router as billing_router
from goalplanner.billing.router import webhook_router as billing_webhook_router
from goalplanner.checkins.router import router as check_ins_router
from goalplanner.coach.router import router as coach_router
from goalplanner.config import get_settings
from goalplanner.database import close_db, init_db
from goalplanner.goals.router import public_router as public_goals_router
from goalplanner.goals.router import router as goals_router
from goalplanner.health.router import router as health_router
from goalplanner.middleware import setup_middleware
from goalplanner.redis_client import close_redis, init_redis
from goalplanner.reminders.router import router as cron_router
from goalplanner.stats.router import router as stats_router
from goalplanner.steps.router import router as steps_router
from goalplanner.users.router import router as users_router
from goalplanner.users.webhooks import router as identity_webhook_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Goal Planner API",
        description="Backend API for Goal Planner: AI-drafted plans, step tracking, check-ins and streaks",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(goals_router)
    app.include_router(public_goals_router)
    app.include_router(steps_router)
    app.include_router(check_ins_router)
    app.include_router(coach_router)
    app.include_router(stats_router)
    app.include_router(billing_router)
    app.include_router(identity_webhook_router)
    app.include_router(billing_webhook_router)
    app.include_router(cron_router)

    return app


app = create_app()
