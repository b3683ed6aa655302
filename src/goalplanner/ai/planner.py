"""Goal plan generation and the plan schema the rest of the app relies on."""

from __future__ import annotations

import asyncio
import json
from datetime import date

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator

from goalplanner.ai.client import AIServiceError, complete, strip_code_fences
from goalplanner.config import get_settings

logger = structlog.get_logger()

SYSTEM_PROMPT = """You are an expert goal achievement coach. Given a user's goal and context, \
generate a comprehensive, actionable, and inspiring plan to help them accomplish it.

Your response MUST be valid JSON with this exact structure:
{
  "overview": "Brief encouraging overview (2-3 sentences)",
  "steps": [
    {"title": "Step title", "description": "Detailed explanation with specific actions", "order": 1}
  ],
  "timeline": "Estimated completion time",
  "tips": ["Practical tip 1", "Practical tip 2"]
}

IMPORTANT RULES:
1. Generate 5-8 actionable steps
2. Each step should be specific, measurable, achievable, relevant and time-bound
3. Address the user's biggest concern in your plan
4. Make the timeline realistic based on their time commitment
5. The first step should be a quick win they can do today
6. Include 3-5 practical tips
7. Return ONLY valid JSON, no markdown, no explanations"""


class PlanStep(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None
    order: int | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "step title must not be blank"
            raise ValueError(msg)
        return v


class AIPlan(BaseModel):
    """A generated plan. Missing optional fields get explicit defaults."""

    overview: str = Field(min_length=1)
    steps: list[PlanStep] = Field(min_length=1)
    timeline: str = ""
    tips: list[str] = Field(default_factory=list)


class GoalContext(BaseModel):
    title: str
    why: str | None = None
    deadline: date | None = None
    time_commitment: str | None = None
    biggest_concern: str | None = None


def parse_plan(text: str) -> AIPlan:
    """
    Parse provider output into a validated plan.

    Raises:
        ValueError: If the text is not JSON or does not match the plan schema.
    """
    try:
        raw = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        msg = "Plan is not valid JSON"
        raise ValueError(msg) from e
    return AIPlan.model_validate(raw)


def fallback_plan(title: str) -> AIPlan:
    """Generic five-step plan used whenever generation fails."""
    return AIPlan(
        overview=f'Let\'s break down your goal: "{title}" into actionable steps.',
        steps=[
            PlanStep(
                title="Research and Planning",
                description="Gather resources and create a detailed roadmap for your goal.",
                order=1,
            ),
            PlanStep(
                title="Start Small",
                description="Take your first actionable step to build momentum.",
                order=2,
            ),
            PlanStep(title="Build Consistency", description="Establish a regular practice schedule.", order=3),
            PlanStep(title="Track Progress", description="Monitor your advancement and adjust as needed.", order=4),
            PlanStep(
                title="Complete and Celebrate",
                description="Finish strong and celebrate your achievement.",
                order=5,
            ),
        ],
        timeline="Based on your availability, this could take 2-3 months",
        tips=[
            "Stay consistent, even when motivation dips",
            "Break large steps into smaller tasks",
            "Celebrate small wins along the way",
        ],
    )


def build_plan_prompt(context: GoalContext) -> str:
    return (
        f"Goal: {context.title}\n\n"
        f"Why this matters: {context.why or 'Not specified'}\n\n"
        f"Deadline: {context.deadline.isoformat() if context.deadline else 'No fixed deadline'}\n\n"
        f"Time commitment: {context.time_commitment or 'Not specified'}\n\n"
        f"Biggest concern: {context.biggest_concern or 'Not specified'}\n\n"
        "Generate a personalized action plan that addresses their concern and fits their timeline."
    )


async def generate_goal_plan(context: GoalContext) -> tuple[AIPlan, bool]:
    """Return ``(plan, is_fallback)``. Never raises for provider or parse failures."""
    settings = get_settings()
    try:
        text = await asyncio.wait_for(
            complete(build_plan_prompt(context), model=settings.ai_plan_model, system=SYSTEM_PROMPT),
            timeout=settings.ai_timeout_seconds,
        )
        return parse_plan(text), False
    except (AIServiceError, TimeoutError, ValueError, ValidationError) as e:
        logger.warning("goal_plan_fallback", title=context.title, error=str(e))
        return fallback_plan(context.title), True
