"""Fallback goal log tests."""

import json
from datetime import date, datetime, timezone

from sqlalchemy import select

from goalplanner.db.models import Goal, Step, User
from goalplanner.goals.fallback_store import FallbackGoalStore, build_fallback_record, reconcile_fallback_goals


def _record(goal_id: str, user_id: str = "u1", slug: str = "my-goal", created_at: str = "2026-05-01T10:00:00+00:00"):
    return {
        "id": goal_id,
        "user_id": user_id,
        "title": "My Goal",
        "slug": slug,
        "deadline": "2026-06-01",
        "ai_plan": {"overview": "o", "steps": [{"title": "A"}], "timeline": "", "tips": []},
        "status": "active",
        "visibility": "private",
        "started_at": created_at,
        "created_at": created_at,
        "updated_at": created_at,
        "steps": [
            {
                "id": f"{goal_id[:-1]}f",
                "order_num": 1,
                "title": "A",
                "description": None,
                "due_date": "2026-06-01",
                "status": "pending",
            }
        ],
    }


G1 = "11111111-1111-4111-8111-111111111111"
G2 = "22222222-2222-4222-8222-222222222222"


class TestFallbackGoalStore:
    def test_save_and_get(self, tmp_path):
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1))
        assert store.get(G1, "u1")["title"] == "My Goal"
        assert store.get(G1, "someone-else") is None
        assert store.get(G2, "u1") is None

    def test_missing_file_is_empty(self, tmp_path):
        store = FallbackGoalStore(tmp_path / "nope" / "log.jsonl")
        assert store.pending() == []
        assert store.list_for_user("u1") == []

    def test_list_newest_first(self, tmp_path):
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1, created_at="2026-05-01T10:00:00+00:00"))
        store.save(_record(G2, created_at="2026-05-02T10:00:00+00:00"))
        assert [r["id"] for r in store.list_for_user("u1")] == [G2, G1]

    def test_reconciled_records_hidden(self, tmp_path):
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1))
        store.save(_record(G2))
        store.mark_reconciled(G1)
        assert [r["id"] for r in store.pending()] == [G2]
        assert [r["id"] for r in store.list_for_user("u1")] == [G2]

    def test_torn_line_skipped(self, tmp_path):
        path = tmp_path / "log.jsonl"
        store = FallbackGoalStore(path)
        store.save(_record(G1))
        with path.open("a", encoding="utf-8") as f:
            f.write('{"id": "broken')
        assert [r["id"] for r in store.pending()] == [G1]

    def test_lines_are_json(self, tmp_path):
        path = tmp_path / "log.jsonl"
        store = FallbackGoalStore(path)
        store.save(_record(G1))
        store.mark_reconciled(G1)
        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["reconciled_goal_id"] == G1


class TestBuildFallbackRecord:
    def test_serializes_dates(self):
        now = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)
        goal = Goal(
            id=G1,
            user_id="u1",
            title="T",
            slug="t",
            deadline=date(2026, 6, 1),
            status="active",
            visibility="private",
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        step = Step(id=G2, goal_id=G1, order_num=1, title="A", due_date=date(2026, 5, 10), status="pending")
        record = build_fallback_record(goal, [step])
        assert record["deadline"] == "2026-06-01"
        assert record["created_at"] == now.isoformat()
        assert record["steps"][0]["due_date"] == "2026-05-10"
        json.dumps(record)


class TestReconcile:
    async def test_replays_pending_goals(self, db_session, tmp_path):
        db_session.add(User(id="u1", email="u1@example.com"))
        await db_session.commit()
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1))

        assert await reconcile_fallback_goals(db_session, store) == 1
        goal = (await db_session.execute(select(Goal).where(Goal.id == G1))).scalar_one()
        assert goal.slug == "my-goal"
        assert goal.deadline == date(2026, 6, 1)
        steps = (await db_session.execute(select(Step).where(Step.goal_id == G1))).scalars().all()
        assert len(steps) == 1
        assert store.pending() == []

        # Second run is a no-op
        assert await reconcile_fallback_goals(db_session, store) == 0

    async def test_taken_slug_replaced(self, db_session, tmp_path):
        db_session.add(User(id="u1", email="u1@example.com"))
        db_session.add(Goal(user_id="u1", title="My Goal", slug="my-goal"))
        await db_session.commit()
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1))

        assert await reconcile_fallback_goals(db_session, store) == 1
        goal = (await db_session.execute(select(Goal).where(Goal.id == G1))).scalar_one()
        assert goal.slug != "my-goal"
        assert goal.slug.startswith("my-goal-")

    async def test_orphaned_and_existing_marked_without_insert(self, db_session, tmp_path):
        db_session.add(User(id="u1", email="u1@example.com"))
        db_session.add(Goal(id=G1, user_id="u1", title="My Goal", slug="my-goal"))
        await db_session.commit()
        store = FallbackGoalStore(tmp_path / "log.jsonl")
        store.save(_record(G1))
        store.save(_record(G2, user_id="ghost", slug="other"))

        assert await reconcile_fallback_goals(db_session, store) == 0
        assert store.pending() == []
        missing = await db_session.execute(select(Goal).where(Goal.id == G2))
        assert missing.first() is None
