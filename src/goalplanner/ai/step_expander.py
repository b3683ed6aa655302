"""Break a single step into smaller sub-steps with time estimates."""

from __future__ import annotations

import json
from datetime import date

import structlog
from pydantic import BaseModel, Field, ValidationError

from goalplanner.ai.client import AIServiceError, complete, strip_code_fences
from goalplanner.config import get_settings

logger = structlog.get_logger()


class SubStep(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    description: str = ""
    estimated_time: str = Field(default="", alias="estimatedTime")

    model_config = {"populate_by_name": True}


class StepExpansion(BaseModel):
    sub_steps: list[SubStep] = Field(alias="subSteps", min_length=1, max_length=8)
    reasoning: str = ""
    total_estimated_time: str = Field(default="", alias="totalEstimatedTime")

    model_config = {"populate_by_name": True}


FALLBACK_EXPANSION = StepExpansion(
    sub_steps=[
        SubStep(
            title="Research and preparation",
            description="Gather necessary information and prepare for the task",
            estimated_time="30-60 minutes",
        ),
        SubStep(
            title="Main execution",
            description="Focus on completing the core objective",
            estimated_time="2-3 hours",
        ),
        SubStep(
            title="Review and finalize",
            description="Check your work and make any needed adjustments",
            estimated_time="30 minutes",
        ),
    ],
    reasoning="Structured approach with preparation, execution, and review phases",
    total_estimated_time="3-4.5 hours",
)


def build_expand_prompt(
    step_title: str,
    step_description: str | None,
    goal_title: str,
    *,
    deadline: date | None = None,
    time_commitment: str | None = None,
    biggest_concern: str | None = None,
) -> str:
    lines = ["You are a goal-setting and project management expert.", ""]
    lines.append("Please expand the following step into smaller, actionable sub-steps:")
    lines.append("")
    lines.append(f"GOAL: {goal_title}")
    if deadline:
        lines.append(f"DEADLINE: {deadline.isoformat()}")
    if time_commitment:
        lines.append(f"TIME COMMITMENT: {time_commitment}")
    if biggest_concern:
        lines.append(f"BIGGEST CONCERN: {biggest_concern}")
    lines.append("")
    lines.append(f"STEP TO EXPAND: {step_title}")
    if step_description:
        lines.append(f"DESCRIPTION: {step_description}")
    lines.append("")
    lines.append(
        "Break this step down into 3-5 specific, actionable sub-steps. For each give a clear "
        "action-oriented title (max 60 characters), a brief description (max 150 characters) "
        'and a realistic time estimate (e.g. "30 minutes", "2-3 hours", "1 day").'
    )
    lines.append("")
    lines.append(
        'Respond with JSON only: {"subSteps": [{"title": "...", "description": "...", '
        '"estimatedTime": "..."}], "reasoning": "...", "totalEstimatedTime": "..."}'
    )
    return "\n".join(lines)


def parse_expansion(text: str) -> StepExpansion:
    """
    Raises:
        ValueError: If the text is not JSON or does not match the expansion schema.
    """
    try:
        raw = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        msg = "Expansion is not valid JSON"
        raise ValueError(msg) from e
    return StepExpansion.model_validate(raw)


async def expand_step(
    step_title: str,
    step_description: str | None,
    goal_title: str,
    *,
    deadline: date | None = None,
    time_commitment: str | None = None,
    biggest_concern: str | None = None,
) -> tuple[StepExpansion, bool]:
    """Return ``(expansion, is_fallback)``."""
    settings = get_settings()
    prompt = build_expand_prompt(
        step_title,
        step_description,
        goal_title,
        deadline=deadline,
        time_commitment=time_commitment,
        biggest_concern=biggest_concern,
    )
    try:
        text = await complete(prompt, model=settings.ai_expand_model)
        return parse_expansion(text), False
    except (AIServiceError, ValueError, ValidationError) as e:
        logger.warning("step_expansion_fallback", step_title=step_title, error=str(e))
        return FALLBACK_EXPANSION.model_copy(deep=True), True
