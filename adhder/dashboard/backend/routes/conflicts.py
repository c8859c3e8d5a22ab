"""Delete guards: refuse to orphan active tasks."""

from typing import Any

from ....errors import ConflictError
from ..database import Database

ACTIVE_TASKS_SHOWN = 10


def active_tasks_linked(db: Database, user_id: str, **link: Any) -> list[dict[str, Any]]:
    rows = db.select("tasks", user_id, limit=ACTIVE_TASKS_SHOWN, status="active", **link)
    return [{"id": r["id"], "title": r["title"], "due_date": r["due_date"]} for r in rows]


def ensure_no_active_tasks(active_tasks: list[dict[str, Any]], what: str) -> None:
    """Raise a 409 listing the tasks the caller must relink first."""
    if active_tasks:
        raise ConflictError(
            f"Cannot delete {what} with active tasks",
            payload={"activeTasks": active_tasks[:ACTIVE_TASKS_SHOWN], "requiresRelink": True},
        )
