"""Degraded-mode goal storage used when the database write fails.

Records are appended to a JSON-lines file, one full goal (steps embedded) per
line. Reconciliation appends a marker line instead of rewriting the file, so
writers never read-modify-write. A process-local lock serializes appends;
at most one writer process is assumed.
"""

from __future__ import annotations

import json
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import select

from goalplanner.config import get_settings
from goalplanner.db.models import Goal, Step, User
from goalplanner.goals.slug import random_slug

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

RECONCILED_KEY = "reconciled_goal_id"


class FallbackGoalStore:
    """Append-only JSON-lines log of goals that could not be written to the database."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _append(self, entry: dict[str, Any]) -> None:
        line = json.dumps(entry, default=str, separators=(",", ":"))
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
                f.flush()

    def _entries(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        entries = []
        with self.path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    # A torn final line from a crash mid-append
                    logger.warning("fallback_store_bad_line", path=str(self.path), line=lineno)
        return entries

    def _scan(self) -> tuple[dict[str, dict[str, Any]], set[str]]:
        records: dict[str, dict[str, Any]] = {}
        reconciled: set[str] = set()
        for entry in self._entries():
            if RECONCILED_KEY in entry:
                reconciled.add(entry[RECONCILED_KEY])
            elif "id" in entry:
                records[entry["id"]] = entry
        return records, reconciled

    def save(self, record: dict[str, Any]) -> None:
        """Append a goal record. ``record`` must carry ``id`` and ``user_id``."""
        self._append(record)
        logger.warning("goal_saved_to_fallback", goal_id=record["id"], user_id=record["user_id"])

    def get(self, goal_id: str, user_id: str) -> dict[str, Any] | None:
        records, _ = self._scan()
        record = records.get(goal_id)
        if record is None or record.get("user_id") != user_id:
            return None
        return record

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        """Unreconciled records of one user, newest first."""
        records, reconciled = self._scan()
        mine = [r for gid, r in records.items() if r.get("user_id") == user_id and gid not in reconciled]
        mine.sort(key=lambda r: r.get("created_at", ""), reverse=True)
        return mine

    def pending(self) -> list[dict[str, Any]]:
        """Records not yet replayed into the database, in append order."""
        records, reconciled = self._scan()
        return [r for gid, r in records.items() if gid not in reconciled]

    def mark_reconciled(self, goal_id: str) -> None:
        self._append({RECONCILED_KEY: goal_id, "at": datetime.now(timezone.utc).isoformat()})


def build_fallback_record(goal: Goal, steps: list[Step]) -> dict[str, Any]:
    """Serialize an unsaved goal and its steps for the fallback log."""
    return {
        "id": goal.id,
        "user_id": goal.user_id,
        "title": goal.title,
        "slug": goal.slug,
        "why": goal.why,
        "deadline": goal.deadline.isoformat() if goal.deadline else None,
        "time_commitment": goal.time_commitment,
        "biggest_concern": goal.biggest_concern,
        "ai_plan": goal.ai_plan,
        "status": goal.status,
        "visibility": goal.visibility,
        "started_at": goal.started_at.isoformat(),
        "created_at": goal.created_at.isoformat(),
        "updated_at": goal.updated_at.isoformat(),
        "steps": [
            {
                "id": s.id,
                "order_num": s.order_num,
                "title": s.title,
                "description": s.description,
                "due_date": s.due_date.isoformat() if s.due_date else None,
                "status": s.status,
            }
            for s in steps
        ],
    }


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value)


async def reconcile_fallback_goals(db: AsyncSession, store: FallbackGoalStore) -> int:
    """
    Replay pending fallback records into the database.

    Records whose goal id already exists, or whose user no longer exists, are
    marked reconciled without writing. A slug taken in the meantime is replaced
    with a random one. Returns the number of goals inserted.
    """
    inserted = 0
    for record in store.pending():
        goal_id = record["id"]
        existing = await db.execute(select(Goal.id).where(Goal.id == goal_id))
        if existing.first() is not None:
            store.mark_reconciled(goal_id)
            continue
        owner = await db.execute(select(User.id).where(User.id == record["user_id"]))
        if owner.first() is None:
            logger.warning("fallback_goal_orphaned", goal_id=goal_id, user_id=record["user_id"])
            store.mark_reconciled(goal_id)
            continue

        slug = record["slug"]
        taken = await db.execute(
            select(Goal.id).where(Goal.user_id == record["user_id"], Goal.slug == slug)
        )
        if taken.first() is not None:
            slug = random_slug(record["title"])

        goal = Goal(
            id=goal_id,
            user_id=record["user_id"],
            title=record["title"],
            slug=slug,
            why=record.get("why"),
            deadline=_parse_date(record.get("deadline")),
            time_commitment=record.get("time_commitment"),
            biggest_concern=record.get("biggest_concern"),
            ai_plan=record.get("ai_plan"),
            status=record.get("status", "active"),
            visibility=record.get("visibility", "private"),
            started_at=_parse_datetime(record.get("started_at")),
            created_at=_parse_datetime(record.get("created_at")),
            updated_at=_parse_datetime(record.get("updated_at")),
        )
        db.add(goal)
        for s in record.get("steps", []):
            db.add(
                Step(
                    id=s["id"],
                    goal_id=goal_id,
                    order_num=s["order_num"],
                    title=s["title"],
                    description=s.get("description"),
                    due_date=_parse_date(s.get("due_date")),
                    status=s.get("status", "pending"),
                )
            )
        await db.commit()
        store.mark_reconciled(goal_id)
        inserted += 1
        logger.info("fallback_goal_reconciled", goal_id=goal_id, user_id=record["user_id"])
    return inserted


_store: FallbackGoalStore | None = None


def get_fallback_store() -> FallbackGoalStore:
    """Get or create the process-wide fallback store."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = FallbackGoalStore(get_settings().fallback_goals_path)
    return _store


def reset_fallback_store() -> None:
    """Drop the cached store (for testing)."""
    global _store  # noqa: PLW0603
    _store = None
