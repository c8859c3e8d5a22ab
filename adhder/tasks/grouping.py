"""
Bucket placement and per-bucket sorting.

Every task lands in at most one of five fixed buckets. Placement is an
ordered table of (predicate, bucket) rows read top to bottom; the first
matching row wins and a bucket of None means "not shown".

Done tasks only show up on the day they were completed. Anything
finished earlier is left out of the grouping entirely.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from . import POSITION_STEP, SORT_MODES
from .dates import is_overdue, is_this_week, is_today, local_today, parse_timestamp, timestamp_is_today
from .models import Task

OVERDUE = "Overdue"
TODAY = "Today"
THIS_WEEK = "This Week"
NO_DATE = "No Date"
DONE_TODAY = "Done Today"

BUCKET_ORDER = (OVERDUE, TODAY, THIS_WEEK, NO_DATE, DONE_TODAY)

BUCKET_COLORS = {
    OVERDUE: "#f87171",
    TODAY: "#fbbf24",
    THIS_WEEK: "#60a5fa",
    NO_DATE: "#8b8ba7",
    DONE_TODAY: "#4ade80",
}

COLLAPSED_BY_DEFAULT = frozenset({DONE_TODAY})


@dataclass
class TaskGroup:
    label: str
    tasks: list[Task] = field(default_factory=list)
    color: str | None = None
    collapsed_by_default: bool = False


Predicate = Callable[[Task, date], bool]

PLACEMENT_RULES: tuple[tuple[Predicate, str | None], ...] = (
    (lambda t, today: t.status in ("dropped", "skipped"), None),
    (lambda t, today: t.status == "done" and timestamp_is_today(t.completed_at, today), DONE_TODAY),
    (lambda t, today: t.status == "done", None),
    (lambda t, today: is_overdue(t.due_date, today), OVERDUE),
    (lambda t, today: is_today(t.due_date, today), TODAY),
    (lambda t, today: is_this_week(t.due_date, today), THIS_WEEK),
    (lambda t, today: True, NO_DATE),
)


def place_task(task: Task, today: date | None = None) -> str | None:
    """Bucket label for a task, or None if it belongs in no bucket."""
    today = today or local_today()
    for predicate, bucket in PLACEMENT_RULES:
        if predicate(task, today):
            return bucket
    return None


def group_tasks(
    tasks: Iterable[Task],
    today: date | None = None,
    sort_mode: str | None = None,
) -> list[TaskGroup]:
    """
    Partition tasks into the five buckets, in display order.

    Empty buckets are kept; use non_empty_groups before rendering.
    When sort_mode is given, each bucket is sorted on its own.
    """
    today = today or local_today()
    groups = {
        label: TaskGroup(
            label=label,
            color=BUCKET_COLORS[label],
            collapsed_by_default=label in COLLAPSED_BY_DEFAULT,
        )
        for label in BUCKET_ORDER
    }

    for task in tasks:
        bucket = place_task(task, today)
        if bucket is not None:
            groups[bucket].tasks.append(task)

    if sort_mode:
        for group in groups.values():
            group.tasks = sort_tasks(group.tasks, sort_mode)

    return [groups[label] for label in BUCKET_ORDER]


def non_empty_groups(groups: list[TaskGroup]) -> list[TaskGroup]:
    return [g for g in groups if g.tasks]


# =============================================================================
# Sorting
# =============================================================================


def sort_tasks(tasks: Iterable[Task], mode: str) -> list[Task]:
    """
    Order tasks within one bucket.

    manual: ascending position, missing treated as 0
    due_date: ascending date, undated last in input order
    created_date: newest instant first, unreadable timestamps last in input order
    """
    if mode not in SORT_MODES:
        raise ValueError(f"Invalid sort mode. Must be one of: {SORT_MODES}")

    items = list(tasks)
    if mode == "manual":
        return sorted(items, key=lambda t: t.position or 0)
    if mode == "due_date":
        return sorted(items, key=lambda t: (not t.due_date, t.due_date or ""))

    stamped = [(task, _created_instant(task)) for task in items]
    dated = [pair for pair in stamped if pair[1] is not None]
    undated = [task for task, instant in stamped if instant is None]
    return [task for task, _ in sorted(dated, key=lambda pair: pair[1], reverse=True)] + undated


def _created_instant(task: Task) -> float | None:
    ts = parse_timestamp(task.created_at)
    if ts is None:
        return None
    # naive timestamps are local time
    return ts.astimezone().timestamp() if ts.tzinfo is None else ts.timestamp()


def sparse_positions(ordered_ids: Iterable[str]) -> dict[str, int]:
    """Position per id, spaced POSITION_STEP apart starting at 0."""
    return {task_id: index * POSITION_STEP for index, task_id in enumerate(ordered_ids)}


def move_task(ordered_ids: list[str], from_index: int, to_index: int) -> list[str]:
    """New id order after dragging one item; out-of-range moves are ignored."""
    ids = list(ordered_ids)
    if not (0 <= from_index < len(ids)) or not (0 <= to_index < len(ids)):
        return ids
    ids.insert(to_index, ids.pop(from_index))
    return ids


__all__ = [
    "BUCKET_ORDER",
    "DONE_TODAY",
    "NO_DATE",
    "OVERDUE",
    "PLACEMENT_RULES",
    "THIS_WEEK",
    "TODAY",
    "TaskGroup",
    "group_tasks",
    "move_task",
    "non_empty_groups",
    "place_task",
    "sort_tasks",
    "sparse_positions",
]
