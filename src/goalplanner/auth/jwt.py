"""
Identity-provider session token verification.

Sessions are issued by the external identity provider as RS256 JWTs. The
``sub`` claim carries the provider's opaque user id; ``email``, ``username``,
``first_name``, ``last_name`` and ``image_url`` claims, when present, seed
the local user row.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jwt

from goalplanner.config import get_settings

_public_key: str | None = None


def _load_public_key() -> str:
    """Load the provider's public key from disk (cached after first call)."""
    global _public_key  # noqa: PLW0603
    if _public_key is None:
        settings = get_settings()
        _public_key = Path(settings.auth_public_key_path).read_text()
    return _public_key


def reset_keys() -> None:
    """Reset the cached key (useful for testing and key rotation)."""
    global _public_key  # noqa: PLW0603
    _public_key = None


def verify_session_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a session token.

    Returns:
        The decoded claims.

    Raises:
        jwt.InvalidTokenError: On bad signature, expiry, issuer mismatch or missing ``sub``.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["sub", "exp"]}
    kwargs: dict[str, Any] = {}
    if settings.auth_issuer:
        kwargs["issuer"] = settings.auth_issuer
    return jwt.decode(
        token,
        _load_public_key(),
        algorithms=[settings.auth_algorithm],
        options=options,
        **kwargs,
    )
