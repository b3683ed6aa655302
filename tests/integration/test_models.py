"""Model-level tests: UTC timestamps and CHECK constraints."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from goalplanner.database import get_session_factory
from goalplanner.db.base import UTCDateTime
from goalplanner.db.models import Goal, User, UserStats


async def _user(db: AsyncSession, user_id: str = "user_alice") -> User:
    user = User(id=user_id, email=f"{user_id}@example.com")
    db.add(user)
    await db.commit()
    return user


class TestUTCDateTime:
    def test_naive_value_is_taken_as_utc(self):
        column_type = UTCDateTime()
        value = column_type.process_result_value(datetime(2026, 3, 1, 12, 30), None)
        assert value == datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert value.tzinfo is timezone.utc

    def test_offset_value_is_converted(self):
        plus_two = timezone(timedelta(hours=2))
        value = UTCDateTime().process_bind_param(datetime(2026, 3, 1, 14, 30, tzinfo=plus_two), None)
        assert value == datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert value.tzinfo is timezone.utc

    def test_none_passes_through(self):
        assert UTCDateTime().process_bind_param(None, None) is None
        assert UTCDateTime().process_result_value(None, None) is None

    async def test_reads_are_aware(self, db_session: AsyncSession):
        await _user(db_session)
        written = datetime(2026, 3, 1, 9, 15, 30, 123456, tzinfo=timezone.utc)
        db_session.add(Goal(user_id="user_alice", title="Run", slug="run", started_at=written))
        await db_session.commit()

        async with get_session_factory()() as fresh:
            goal = (await fresh.execute(select(Goal).where(Goal.slug == "run"))).scalar_one()
            assert goal.started_at == written
            assert goal.started_at.tzinfo is timezone.utc
            assert goal.created_at.tzinfo is timezone.utc
            assert goal.completed_at is None


class TestCheckConstraints:
    async def test_unknown_goal_status_rejected(self, db_session: AsyncSession):
        await _user(db_session)
        db_session.add(Goal(user_id="user_alice", title="Run", slug="run", status="done"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_unknown_visibility_rejected(self, db_session: AsyncSession):
        await _user(db_session)
        db_session.add(Goal(user_id="user_alice", title="Run", slug="run", visibility="friends"))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()

    async def test_current_streak_cannot_exceed_longest(self, db_session: AsyncSession):
        await _user(db_session)
        db_session.add(UserStats(user_id="user_alice", current_streak=3, longest_streak=1))
        with pytest.raises(IntegrityError):
            await db_session.commit()
        await db_session.rollback()
