"""Chat-completion calls to the OpenRouter-compatible text provider."""

from __future__ import annotations

import httpx
import structlog

from goalplanner.config import get_settings

logger = structlog.get_logger()


class AIServiceError(Exception):
    """The provider could not produce a usable completion."""


async def complete(
    prompt: str,
    *,
    model: str,
    system: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    """
    Send one chat-completion request and return the assistant text.

    Raises:
        AIServiceError: On missing API key, timeout, transport error, non-2xx
            status, or a response without message content.
    """
    settings = get_settings()
    if not settings.ai_api_key:
        msg = "AI provider API key not configured"
        raise AIServiceError(msg)

    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    payload: dict[str, object] = {
        "model": model,
        "messages": messages,
        "temperature": settings.ai_temperature if temperature is None else temperature,
    }
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    try:
        async with httpx.AsyncClient(timeout=settings.ai_timeout_seconds) as client:
            response = await client.post(
                settings.ai_provider_url,
                headers={
                    "Authorization": f"Bearer {settings.ai_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            response.raise_for_status()
            data = response.json()
    except httpx.TimeoutException as e:
        logger.warning("ai_request_timeout", model=model)
        msg = "AI provider timed out"
        raise AIServiceError(msg) from e
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("ai_request_failed", model=model, error=str(e))
        msg = "AI provider request failed"
        raise AIServiceError(msg) from e

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        msg = "AI provider returned no content"
        raise AIServiceError(msg) from e
    if not isinstance(content, str) or not content.strip():
        msg = "AI provider returned no content"
        raise AIServiceError(msg)
    return content


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences models like to wrap JSON in."""
    clean = text.strip()
    if clean.startswith("```"):
        clean = clean.split("\n", 1)[1] if "\n" in clean else clean[3:]
        if clean.startswith("json"):
            clean = clean[4:]
    if clean.rstrip().endswith("```"):
        clean = clean.rstrip()[:-3]
    return clean.strip()
