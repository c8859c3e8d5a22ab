"""
Task, Category and RecurrenceRule records.

Rows arrive as JSON dicts from the API (and as dicts from the row
store on the server); these dataclasses give them a shape without
losing round-trip fidelity. Unknown keys are ignored on load.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any

from . import PRIORITIES, RECURRENCE_FREQUENCIES, TASK_STATUSES


@dataclass(frozen=True)
class RecurrenceRule:
    """How often a recurring task comes back."""

    frequency: str
    interval: int = 1
    end_date: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "RecurrenceRule | None":
        if isinstance(data, RecurrenceRule):
            return data
        if not isinstance(data, dict) or not data.get("frequency"):
            return None
        try:
            interval = int(data.get("interval") or 1)
        except (TypeError, ValueError):
            interval = 1
        return cls(
            frequency=str(data["frequency"]),
            interval=max(1, interval),
            end_date=data.get("end_date") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"frequency": self.frequency, "interval": self.interval}
        if self.end_date:
            result["end_date"] = self.end_date
        return result

    @property
    def is_valid(self) -> bool:
        return self.frequency in RECURRENCE_FREQUENCIES


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str = "#8b8ba7"
    icon: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Category | None":
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            color=data.get("color") or "#8b8ba7",
            icon=data.get("icon"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Task:
    """A single task row.

    Invariants (checked by validate_task, not enforced on construction):
        completed_at is set iff status == "done"
        recurrence_rule is set only if is_recurring
    """

    id: str
    title: str
    status: str = "active"
    due_date: str | None = None
    due_time: str | None = None
    priority: str | None = None
    category_id: str | None = None
    category_confidence: float | None = None
    category: Category | None = None
    position: int | None = None
    is_recurring: bool = False
    recurrence_rule: RecurrenceRule | None = None
    recurrence_parent_id: str | None = None
    recurring_streak: int = 0
    completed_at: str | None = None
    dropped_at: str | None = None
    skipped_at: str | None = None
    created_at: str = ""
    updated_at: str | None = None
    user_id: str | None = None
    outcome_id: str | None = None
    commitment_id: str | None = None
    parent_task_id: str | None = None
    estimated_minutes: int | None = None
    renegotiation_count: int = 0
    original_due_date: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["id"] = str(values.get("id", ""))
        values["title"] = str(values.get("title") or "")
        values["is_recurring"] = bool(values.get("is_recurring"))
        values["recurring_streak"] = int(values.get("recurring_streak") or 0)
        values["renegotiation_count"] = int(values.get("renegotiation_count") or 0)
        values["recurrence_rule"] = RecurrenceRule.from_dict(values.get("recurrence_rule"))
        category = values.get("category")
        values["category"] = category if isinstance(category, Category) else Category.from_dict(category)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["recurrence_rule"] = self.recurrence_rule.to_dict() if self.recurrence_rule else None
        result["category"] = self.category.to_dict() if self.category else None
        return result

    def field_values(self, names) -> dict[str, Any]:
        """Current values of the named fields (used for revert snapshots)."""
        return {name: getattr(self, name) for name in names}


TASK_FIELDS = frozenset(f.name for f in fields(Task))


def validate_task(task: Task) -> list[str]:
    """Return a list of invariant violations (empty if the task is consistent)."""
    problems = []

    if task.status not in TASK_STATUSES:
        problems.append(f"Invalid status: {task.status}")

    if task.priority is not None and task.priority not in PRIORITIES:
        problems.append(f"Invalid priority: {task.priority}")

    if (task.completed_at is not None) != (task.status == "done"):
        problems.append("completed_at must be set exactly when status is 'done'")

    if task.recurrence_rule is not None and not task.is_recurring:
        problems.append("recurrence_rule is only allowed on recurring tasks")

    if task.recurring_streak < 0:
        problems.append("recurring_streak cannot be negative")

    return problems


__all__ = ["Category", "RecurrenceRule", "TASK_FIELDS", "Task", "validate_task"]
