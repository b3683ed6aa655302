"""Plan, expansion and coaching tests with the provider mocked out."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from goalplanner.ai import coach, planner, step_expander
from goalplanner.ai.client import AIServiceError, complete, strip_code_fences
from goalplanner.ai.planner import GoalContext, fallback_plan, generate_goal_plan, parse_plan
from goalplanner.db.models import CheckIn, Goal, Step

VALID_PLAN = {
    "overview": "You can do this.",
    "steps": [
        {"title": "Second", "description": "b", "order": 2},
        {"title": "First", "description": "a", "order": 1},
    ],
    "timeline": "6 weeks",
    "tips": ["Be consistent"],
}


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParsePlan:
    def test_array_order_wins_over_order_field(self):
        plan = parse_plan(json.dumps(VALID_PLAN))
        assert [s.title for s in plan.steps] == ["Second", "First"]
        assert [s.order for s in plan.steps] == [2, 1]

    def test_defaults_filled(self):
        plan = parse_plan(json.dumps({"overview": "o", "steps": [{"title": "Only"}]}))
        assert plan.timeline == ""
        assert plan.tips == []

    def test_fenced_output(self):
        plan = parse_plan("```json\n" + json.dumps(VALID_PLAN) + "\n```")
        assert len(plan.steps) == 2

    def test_not_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_plan("Here is your plan: step one...")

    def test_empty_steps_rejected(self):
        with pytest.raises(ValidationError):
            parse_plan(json.dumps({"overview": "o", "steps": []}))

    def test_blank_step_title_rejected(self):
        with pytest.raises(ValidationError):
            parse_plan(json.dumps({"overview": "o", "steps": [{"title": "   "}]}))


class TestFallbackPlan:
    def test_five_steps_mentioning_title(self):
        plan = fallback_plan("Run a marathon")
        assert len(plan.steps) == 5
        assert "Run a marathon" in plan.overview
        assert plan.steps[0].title == "Research and Planning"


class TestGenerateGoalPlan:
    async def test_success(self, monkeypatch):
        monkeypatch.setattr(planner, "complete", AsyncMock(return_value=json.dumps(VALID_PLAN)))
        plan, is_fallback = await generate_goal_plan(GoalContext(title="Learn Go"))
        assert not is_fallback
        assert plan.timeline == "6 weeks"

    async def test_provider_error_falls_back(self, monkeypatch):
        monkeypatch.setattr(planner, "complete", AsyncMock(side_effect=AIServiceError("down")))
        plan, is_fallback = await generate_goal_plan(GoalContext(title="Learn Go"))
        assert is_fallback
        assert len(plan.steps) == 5

    async def test_garbage_falls_back(self, monkeypatch):
        monkeypatch.setattr(planner, "complete", AsyncMock(return_value="sure! here are some ideas"))
        _, is_fallback = await generate_goal_plan(GoalContext(title="Learn Go"))
        assert is_fallback

    async def test_timeout_falls_back(self, monkeypatch, test_settings):
        async def slow(*_args, **_kwargs):
            await asyncio.sleep(5)
            return json.dumps(VALID_PLAN)

        monkeypatch.setattr(test_settings, "ai_timeout_seconds", 0.01)
        monkeypatch.setattr(planner, "complete", slow)
        _, is_fallback = await generate_goal_plan(GoalContext(title="Learn Go"))
        assert is_fallback

    async def test_prompt_carries_context(self, monkeypatch):
        mock = AsyncMock(return_value=json.dumps(VALID_PLAN))
        monkeypatch.setattr(planner, "complete", mock)
        await generate_goal_plan(GoalContext(title="Learn Go", biggest_concern="No time"))
        prompt = mock.call_args.args[0]
        assert "Learn Go" in prompt
        assert "No time" in prompt


class TestClient:
    async def test_missing_key_raises(self):
        with pytest.raises(AIServiceError, match="not configured"):
            await complete("hi", model="m")


class TestExpandStep:
    async def test_parses_camel_case(self, monkeypatch):
        payload = {
            "subSteps": [{"title": "Find a tutor", "description": "d", "estimatedTime": "1 hour"}],
            "reasoning": "r",
            "totalEstimatedTime": "1 hour",
        }
        monkeypatch.setattr(step_expander, "complete", AsyncMock(return_value=json.dumps(payload)))
        expansion, is_fallback = await step_expander.expand_step("Practice", None, "Learn Spanish")
        assert not is_fallback
        assert expansion.sub_steps[0].estimated_time == "1 hour"

    async def test_failure_returns_generic(self, monkeypatch):
        monkeypatch.setattr(step_expander, "complete", AsyncMock(side_effect=AIServiceError("down")))
        expansion, is_fallback = await step_expander.expand_step("Practice", None, "Learn Spanish")
        assert is_fallback
        assert len(expansion.sub_steps) == 3


class TestCoach:
    def _goal(self):
        started = datetime.now(timezone.utc) - timedelta(days=4)
        goal = Goal(id="g", user_id="u", title="Learn Spanish", slug="s", why="Travel", started_at=started)
        steps = [
            Step(goal_id="g", order_num=1, title="Install app", status="completed"),
            Step(goal_id="g", order_num=2, title="Daily lesson", status="in_progress"),
        ]
        check_ins = [
            CheckIn(goal_id="g", user_id="u", type="daily", mood=m, content=f"note {i}", created_at=started)
            for i, m in enumerate(["good"] * 9)
        ]
        return goal, steps, check_ins

    def test_prompt_summarizes_progress(self):
        goal, steps, check_ins = self._goal()
        prompt = coach.build_coach_prompt(goal, steps, check_ins)
        assert "1 of 2 steps completed (50%)" in prompt
        assert "4 days into the journey" in prompt
        assert "Currently working on: Daily lesson" in prompt
        assert sum(1 for line in prompt.splitlines() if "note " in line) == coach.RECENT_CHECK_IN_LIMIT

    async def test_answer_and_fallback(self, monkeypatch):
        goal, steps, check_ins = self._goal()
        monkeypatch.setattr(coach, "complete", AsyncMock(return_value="  Keep going!  "))
        assert await coach.ask_coach(goal, steps, check_ins, None) == ("Keep going!", False)

        mock = AsyncMock(side_effect=AIServiceError("down"))
        monkeypatch.setattr(coach, "complete", mock)
        text, is_fallback = await coach.ask_coach(goal, steps, check_ins, "Help?")
        assert is_fallback
        assert text == coach.FALLBACK_RESPONSE
