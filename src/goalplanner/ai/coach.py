"""Coaching answers grounded in a goal's progress and recent check-ins."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from goalplanner.ai.client import AIServiceError, complete
from goalplanner.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goalplanner.db.models import CheckIn, Goal, Step

logger = structlog.get_logger()

DEFAULT_QUESTION = "I need help with my goal. What should I do next?"
RECENT_CHECK_IN_LIMIT = 7

FALLBACK_RESPONSE = (
    "I'm having trouble reaching my coaching notes right now, but here's what I'd suggest: "
    "look at the next step on your list and pick the smallest piece of it you can finish today. "
    "Progress comes from showing up consistently, not from perfect days.\n\n"
    "If something is blocking you, write it down in a check-in. Naming the obstacle is often "
    "the first step to getting past it. You've got this."
)


def build_coach_prompt(
    goal: Goal,
    steps: Sequence[Step],
    check_ins: Sequence[CheckIn],
    now: datetime | None = None,
) -> str:
    """System prompt describing the goal, progress so far and the latest check-ins."""
    if now is None:
        now = datetime.now(timezone.utc)

    total = len(steps)
    completed = sum(1 for s in steps if s.status == "completed")
    percent = round(completed / total * 100) if total else 0
    days_since_start = max((now - goal.started_at).days, 0)
    current = next((s for s in steps if s.status in ("pending", "in_progress")), None)

    progress = [
        f"- {completed} of {total} steps completed ({percent}%)",
        f"- {days_since_start} days into the journey",
    ]
    if current is not None:
        progress.append(f"- Currently working on: {current.title}")

    recent = []
    for ci in check_ins[:RECENT_CHECK_IN_LIMIT]:
        line = f"- {ci.created_at.date().isoformat()}: {ci.mood or 'no mood'}"
        if ci.content:
            line += f' - "{ci.content}"'
        recent.append(line)

    return "\n".join(
        [
            "You are an empathetic and experienced goal achievement coach. "
            "You're helping someone work towards their goal.",
            "",
            "CONTEXT:",
            f"Goal: {goal.title}",
            f"Why it matters: {goal.why or 'Not specified'}",
            f"Time commitment: {goal.time_commitment or 'Not specified'}",
            f"Biggest concern: {goal.biggest_concern or 'Not specified'}",
            "",
            "PROGRESS:",
            *progress,
            "",
            "RECENT CHECK-INS:",
            *(recent or ["- none yet"]),
            "",
            "YOUR ROLE:",
            "1. Be empathetic and understanding",
            "2. Provide specific, actionable advice",
            "3. If they're stuck, help them break things down into smaller steps",
            "4. If they're doing well, celebrate and encourage",
            "5. Keep responses concise but warm (2-3 paragraphs max)",
        ]
    )


async def ask_coach(
    goal: Goal,
    steps: Sequence[Step],
    check_ins: Sequence[CheckIn],
    question: str | None = None,
) -> tuple[str, bool]:
    """Return ``(answer, is_fallback)``; provider failures and timeouts yield the generic answer."""
    settings = get_settings()
    system = build_coach_prompt(goal, steps, check_ins)
    try:
        text = await asyncio.wait_for(
            complete(
                question or DEFAULT_QUESTION,
                model=settings.ai_coach_model,
                system=system,
                max_tokens=settings.ai_coach_max_tokens,
            ),
            timeout=settings.ai_timeout_seconds,
        )
        return text.strip(), False
    except (AIServiceError, TimeoutError) as e:
        logger.warning("coach_fallback", goal_id=goal.id, error=str(e))
        return FALLBACK_RESPONSE, True
