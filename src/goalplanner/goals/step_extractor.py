"""Turn a validated plan into step rows and spread due dates up to a deadline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from goalplanner.ai.planner import AIPlan


@dataclass(frozen=True)
class ExtractedStep:
    title: str
    description: str | None
    due_date: date | None = None


def extract_steps(plan: AIPlan) -> list[ExtractedStep]:
    """Plan steps in source order, without due dates."""
    return [ExtractedStep(title=step.title, description=step.description) for step in plan.steps]


def calculate_due_dates(
    steps: list[ExtractedStep],
    deadline: date | None,
    start_date: date,
) -> list[ExtractedStep]:
    """
    Divide ``[start_date, deadline]`` evenly across the steps.

    Step ``i`` (0-based) is due ``start_date + days_per_step * (i + 1)`` where
    ``days_per_step = (deadline - start_date).days // len(steps)``. With fewer
    days than steps every due date lands on ``start_date``; a deadline in the
    past is treated as zero days. No deadline or no steps leaves the list
    unchanged.
    """
    if deadline is None or not steps:
        return steps

    total_days = max((deadline - start_date).days, 0)
    days_per_step = total_days // len(steps)
    return [
        replace(step, due_date=start_date + timedelta(days=days_per_step * (i + 1)))
        for i, step in enumerate(steps)
    ]
