"""CORS middleware configuration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from goalplanner.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the web frontend origins; expose the export filename header."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=[
            "X-Request-Id",
            "X-RateLimit-Remaining",
            "X-RateLimit-Limit",
            "Content-Disposition",
        ],
    )
