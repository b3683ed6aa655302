"""Goal and step status rules.

Goals move through ``active -> {paused, completed, abandoned}`` and
``paused -> {active, abandoned}``. A completed goal can still be abandoned;
it keeps its ``completed_at`` when that happens. Abandoned is terminal.
Setting a status a goal already has is accepted and changes nothing.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from goalplanner.db.models import Goal, Step


class GoalStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Visibility(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    UNLISTED = "unlisted"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


GOAL_TRANSITIONS: dict[GoalStatus, frozenset[GoalStatus]] = {
    GoalStatus.ACTIVE: frozenset({GoalStatus.PAUSED, GoalStatus.COMPLETED, GoalStatus.ABANDONED}),
    GoalStatus.PAUSED: frozenset({GoalStatus.ACTIVE, GoalStatus.ABANDONED}),
    GoalStatus.COMPLETED: frozenset({GoalStatus.ABANDONED}),
    GoalStatus.ABANDONED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Requested goal status change is not allowed from the current status."""


def can_transition(current: GoalStatus, target: GoalStatus) -> bool:
    return current == target or target in GOAL_TRANSITIONS[current]


def apply_goal_status(goal: Goal, target: GoalStatus, now: datetime) -> bool:
    """
    Move ``goal`` to ``target``. Returns True if the status changed.

    Raises:
        InvalidTransitionError: If ``target`` is not reachable from the current status.
    """
    current = GoalStatus(goal.status)
    if current == target:
        return False
    if not can_transition(current, target):
        msg = f"Cannot change goal status from {current.value} to {target.value}"
        raise InvalidTransitionError(msg)

    goal.status = target.value
    if target == GoalStatus.COMPLETED:
        goal.completed_at = now
    goal.updated_at = now
    return True


def apply_goal_visibility(goal: Goal, visibility: Visibility, now: datetime) -> bool:
    if goal.visibility == visibility.value:
        return False
    goal.visibility = visibility.value
    goal.updated_at = now
    return True


def apply_step_status(step: Step, target: StepStatus, now: datetime) -> bool:
    """
    Set a step's status, keeping ``completed_at`` in step with it.

    Returns True only when the step newly became completed.
    """
    if step.status == target.value:
        return False

    step.status = target.value
    if target == StepStatus.COMPLETED:
        step.completed_at = now
        return True
    step.completed_at = None
    return False


def all_steps_completed(steps: Iterable[Step]) -> bool:
    """True when there is at least one step and every step is completed."""
    statuses = [step.status for step in steps]
    return bool(statuses) and all(status == StepStatus.COMPLETED for status in statuses)


def force_complete(goal: Goal, now: datetime) -> bool:
    """System-driven completion once all steps are done; skips the transition table."""
    if goal.status == GoalStatus.COMPLETED:
        return False
    goal.status = GoalStatus.COMPLETED.value
    goal.completed_at = now
    goal.updated_at = now
    return True
