"""Shared test fixtures."""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.auth.jwt import reset_keys
from goalplanner.config import get_settings
from goalplanner.database import close_db, create_all, get_session_factory, init_db
from goalplanner.dependencies import get_email
from goalplanner.email.service import reset_email_service
from goalplanner.goals.fallback_store import reset_fallback_store
from goalplanner.main import create_app
from goalplanner.redis_client import close_redis, get_redis, init_redis
from tests.helpers import BILLING_SECRET, CRON_SECRET, IDENTITY_SECRET


@pytest.fixture(scope="session")
def rsa_keys(tmp_path_factory: pytest.TempPathFactory) -> tuple[bytes, Path]:
    """Identity-provider key pair: PEM private key and the public key file path."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    public_path = tmp_path_factory.mktemp("keys") / "identity_public.pem"
    public_path.write_bytes(
        key.public_key().public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
    )
    return private_pem, public_path


@pytest.fixture(autouse=True)
def test_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, rsa_keys: tuple[bytes, Path]):
    """Point every setting at per-test resources: SQLite file, fallback log, secrets, no AI key."""
    _, public_path = rsa_keys
    monkeypatch.setenv("GOALPLANNER_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("GOALPLANNER_AUTH_PUBLIC_KEY_PATH", str(public_path))
    monkeypatch.setenv("GOALPLANNER_AUTH_ISSUER", "")
    monkeypatch.setenv("GOALPLANNER_AI_API_KEY", "")
    monkeypatch.setenv("GOALPLANNER_IDENTITY_WEBHOOK_SECRET", IDENTITY_SECRET)
    monkeypatch.setenv("GOALPLANNER_BILLING_WEBHOOK_SECRET", BILLING_SECRET)
    monkeypatch.setenv("GOALPLANNER_CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("GOALPLANNER_FALLBACK_GOALS_PATH", str(tmp_path / "fallback-goals.jsonl"))
    monkeypatch.setenv("GOALPLANNER_DB_RETRY_BASE_DELAY_SECONDS", "0")
    monkeypatch.setenv("GOALPLANNER_LOG_FORMAT", "console")
    get_settings.cache_clear()
    reset_keys()
    reset_fallback_store()
    reset_email_service()
    yield get_settings()
    get_settings.cache_clear()
    reset_keys()
    reset_fallback_store()
    reset_email_service()


@pytest_asyncio.fixture
async def database(test_settings) -> AsyncGenerator[None, None]:
    """Fresh schema in a per-test SQLite file."""
    await init_db(test_settings.database_url)
    await create_all()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def mock_email_service() -> MagicMock:
    """Email service stand-in so nothing is actually sent."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)
    return mock_service


@pytest_asyncio.fixture
async def client(database, mock_email_service: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client against a fresh database (Redis left uninitialized)."""
    app = create_app()
    app.dependency_overrides[get_email] = lambda: mock_email_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def redis_client(test_settings) -> AsyncGenerator[Any, None]:
    """A live Redis connection; tests needing one are skipped when none is reachable."""
    await init_redis(test_settings.redis_url)
    rc = get_redis()
    try:
        await rc.ping()
    except Exception:  # noqa: BLE001
        await close_redis()
        pytest.skip("Redis not available")
    for pattern in ("ratelimit:*", "email_rate:*"):
        keys = await rc.keys(pattern)
        if keys:
            await rc.delete(*keys)
    yield rc
    await close_redis()


@pytest.fixture
def make_token(rsa_keys: tuple[bytes, Path]) -> Callable[..., str]:
    """Issue identity-provider session tokens signed with the test key."""
    private_pem, _ = rsa_keys

    def _make(user_id: str, **claims: Any) -> str:
        payload = {"sub": user_id, "exp": int(time.time()) + 3600, "iat": int(time.time())}
        payload.update(claims)
        return jwt.encode(payload, private_pem, algorithm="RS256")

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[..., dict[str, str]]:
    """``Authorization`` headers for a user, created lazily on first request."""

    def _headers(user_id: str = "user_alice", email: str = "alice@example.com", **claims: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, email=email, **claims)}"}

    return _headers


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, auth_headers) -> AsyncClient:
    """Client authenticated as ``user_alice`` (username ``alice``)."""
    client.headers.update(auth_headers("user_alice", "alice@example.com", username="alice", first_name="Alice"))
    return client

