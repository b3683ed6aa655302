"""Middleware registration."""

from fastapi import FastAPI

from goalplanner.config import Settings
from goalplanner.middleware.cors import setup_cors
from goalplanner.middleware.error_handler import setup_error_handlers
from goalplanner.middleware.logging import setup_logging
from goalplanner.middleware.rate_limit import RateLimitMiddleware
from goalplanner.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS (added last) is
    outermost and also decorates 429 responses from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
