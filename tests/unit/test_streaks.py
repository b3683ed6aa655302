"""Streak and activity counter tests (UTC calendar days)."""

from datetime import date, datetime, timezone

import pytest

from goalplanner.db.models import User, UserStats
from goalplanner.stats.service import apply_streak, record_activity, utc_today


def _stats(current: int = 0, longest: int = 0, last: date | None = None) -> UserStats:
    return UserStats(user_id="u", current_streak=current, longest_streak=longest, last_activity_date=last)


class TestApplyStreak:
    def test_first_activity_starts_streak(self):
        stats = _stats()
        apply_streak(stats, date(2026, 5, 1))
        assert stats.current_streak == 1
        assert stats.longest_streak == 1

    def test_consecutive_day_extends(self):
        stats = _stats(current=3, longest=3, last=date(2026, 5, 1))
        apply_streak(stats, date(2026, 5, 2))
        assert stats.current_streak == 4
        assert stats.longest_streak == 4

    def test_same_day_unchanged(self):
        stats = _stats(current=3, longest=5, last=date(2026, 5, 1))
        apply_streak(stats, date(2026, 5, 1))
        assert stats.current_streak == 3
        assert stats.longest_streak == 5

    def test_gap_resets_but_keeps_longest(self):
        stats = _stats(current=4, longest=7, last=date(2026, 5, 1))
        apply_streak(stats, date(2026, 5, 3))
        assert stats.current_streak == 1
        assert stats.longest_streak == 7

    def test_month_boundary_is_consecutive(self):
        stats = _stats(current=1, longest=1, last=date(2026, 1, 31))
        apply_streak(stats, date(2026, 2, 1))
        assert stats.current_streak == 2


class TestUtcToday:
    def test_converts_to_utc(self):
        from datetime import timedelta

        late_evening_west = datetime(2026, 5, 1, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert utc_today(late_evening_west) == date(2026, 5, 2)


class TestRecordActivity:
    async def _user(self, db) -> str:
        db.add(User(id="streaker", email="s@example.com"))
        await db.flush()
        return "streaker"

    async def test_counters_per_action(self, db_session):
        user_id = await self._user(db_session)
        now = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)
        await record_activity(db_session, user_id, "step_completed", now)
        await record_activity(db_session, user_id, "step_completed", now)
        await record_activity(db_session, user_id, "goal_completed", now)
        stats = await record_activity(db_session, user_id, "activity", now)
        assert stats.total_steps_completed == 2
        assert stats.total_goals_completed == 1
        assert stats.current_streak == 1
        assert stats.last_activity_date == date(2026, 5, 1)

    async def test_three_day_run_then_gap(self, db_session):
        user_id = await self._user(db_session)
        for day in (1, 2, 3):
            stats = await record_activity(db_session, user_id, "activity", datetime(2026, 5, day, 9, tzinfo=timezone.utc))
        assert stats.current_streak == 3
        assert stats.longest_streak == 3

        stats = await record_activity(db_session, user_id, "activity", datetime(2026, 5, 6, 9, tzinfo=timezone.utc))
        assert stats.current_streak == 1
        assert stats.longest_streak == 3

    async def test_longest_never_below_current(self, db_session):
        user_id = await self._user(db_session)
        days = [1, 2, 4, 5, 6, 7, 9]
        for day in days:
            stats = await record_activity(db_session, user_id, "activity", datetime(2026, 6, day, tzinfo=timezone.utc))
            assert stats.longest_streak >= stats.current_streak
        assert stats.longest_streak == 4

    async def test_unknown_action_rejected(self, db_session):
        user_id = await self._user(db_session)
        with pytest.raises(ValueError, match="Unknown activity action"):
            await record_activity(db_session, user_id, "jumped")  # type: ignore[arg-type]
