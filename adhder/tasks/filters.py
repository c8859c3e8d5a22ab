"""
Task filters and their URL encoding.

A TaskFilters value has five dimensions. Dimensions are AND-combined;
values inside a multi-select dimension are OR-combined. An empty
dimension means "no constraint", never "exclude everything".

URL encoding uses one query parameter per dimension:

    category=<id>,<id>   status=active,done   priority=high
    due=today            recurring=1|0

Category ids are percent-encoded before joining, so an id may itself
contain a comma. Unknown parameters and malformed values are ignored.
"""

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Iterable, Mapping
from urllib.parse import parse_qsl, quote, unquote, urlencode

from . import DUE_RANGES, PRIORITIES, TASK_STATUSES, UNCATEGORIZED
from .dates import is_overdue, is_next_week, is_this_week, is_today, is_tomorrow, local_today
from .models import Task

if TYPE_CHECKING:
    from .views import SavedView


@dataclass(frozen=True)
class TaskFilters:
    categories: tuple[str, ...] = ()
    statuses: tuple[str, ...] = ()
    priorities: tuple[str, ...] = ()
    due_range: str | None = None
    is_recurring: bool | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "TaskFilters":
        """Tolerant load from a stored snapshot; bad entries become defaults."""
        if not isinstance(data, Mapping):
            return cls()
        due_range = data.get("due_range", data.get("dueRange"))
        is_recurring = data.get("is_recurring", data.get("isRecurring"))
        return cls(
            categories=_str_tuple(data.get("categories")),
            statuses=_str_tuple(data.get("statuses"), allowed=TASK_STATUSES),
            priorities=_str_tuple(data.get("priorities"), allowed=PRIORITIES),
            due_range=due_range if due_range in DUE_RANGES else None,
            is_recurring=is_recurring if isinstance(is_recurring, bool) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "categories": list(self.categories),
            "statuses": list(self.statuses),
            "priorities": list(self.priorities),
            "due_range": self.due_range,
            "is_recurring": self.is_recurring,
        }


DEFAULT_FILTERS = TaskFilters()

DUE_RANGE_LABELS = {
    "overdue": "Overdue",
    "today": "Today",
    "tomorrow": "Tomorrow",
    "this_week": "This Week",
    "next_week": "Next Week",
    "no_date": "No Date",
}

STATUS_LABELS = {
    "active": "Active",
    "done": "Done",
    "dropped": "Dropped",
    "skipped": "Skipped",
}

PRIORITY_LABELS = {
    "low": "Low",
    "medium": "Medium",
    "high": "High",
}


def _str_tuple(values: Any, allowed: Iterable[str] | None = None) -> tuple[str, ...]:
    if not isinstance(values, (list, tuple)):
        return ()
    allowed_set = set(allowed) if allowed is not None else None
    return tuple(
        v for v in values
        if isinstance(v, str) and v and (allowed_set is None or v in allowed_set)
    )


# =============================================================================
# Filter Logic
# =============================================================================


def matches_due_range(due_date: str | None, due_range: str, today: date | None = None) -> bool:
    """
    Check a due date against a single due-range bucket.

    A task without a due date only matches "no_date". The "today" bucket
    also takes overdue tasks: anything that should be done by today.
    """
    if due_range == "no_date":
        return not due_date
    if not due_date:
        return False

    today = today or local_today()
    if due_range == "overdue":
        return is_overdue(due_date, today)
    if due_range == "today":
        return is_today(due_date, today) or is_overdue(due_date, today)
    if due_range == "tomorrow":
        return is_tomorrow(due_date, today)
    if due_range == "this_week":
        return is_this_week(due_date, today)
    if due_range == "next_week":
        return is_next_week(due_date, today)
    return True


def task_matches(task: Task, filters: TaskFilters, today: date | None = None) -> bool:
    if filters.categories:
        if (task.category_id or UNCATEGORIZED) not in filters.categories:
            return False

    if filters.statuses and task.status not in filters.statuses:
        return False

    if filters.priorities:
        if not task.priority or task.priority not in filters.priorities:
            return False

    if filters.due_range and not matches_due_range(task.due_date, filters.due_range, today):
        return False

    if filters.is_recurring is not None and task.is_recurring != filters.is_recurring:
        return False

    return True


def apply_filters(tasks: Iterable[Task], filters: TaskFilters, today: date | None = None) -> list[Task]:
    """Keep the tasks that satisfy every constrained dimension, in input order."""
    today = today or local_today()
    return [task for task in tasks if task_matches(task, filters, today)]


def has_active_filters(filters: TaskFilters) -> bool:
    return count_active_filters(filters) > 0


def count_active_filters(filters: TaskFilters) -> int:
    return sum((
        bool(filters.categories),
        bool(filters.statuses),
        bool(filters.priorities),
        filters.due_range is not None,
        filters.is_recurring is not None,
    ))


def filters_match_view(filters: TaskFilters, view: "SavedView") -> bool:
    """Structural equality, ignoring the order of multi-select values."""
    other = view.filters
    return (
        sorted(filters.categories) == sorted(other.categories)
        and sorted(filters.statuses) == sorted(other.statuses)
        and sorted(filters.priorities) == sorted(other.priorities)
        and filters.due_range == other.due_range
        and filters.is_recurring == other.is_recurring
    )


# =============================================================================
# URL State
# =============================================================================


def filters_to_search_params(filters: TaskFilters) -> dict[str, str]:
    params: dict[str, str] = {}

    if filters.categories:
        params["category"] = ",".join(quote(c, safe="") for c in filters.categories)
    if filters.statuses:
        params["status"] = ",".join(filters.statuses)
    if filters.priorities:
        params["priority"] = ",".join(filters.priorities)
    if filters.due_range:
        params["due"] = filters.due_range
    if filters.is_recurring is not None:
        params["recurring"] = "1" if filters.is_recurring else "0"

    return params


def filters_to_query_string(filters: TaskFilters) -> str:
    return urlencode(filters_to_search_params(filters), safe=",")


def _split_values(raw: str | None, allowed: Iterable[str] | None = None) -> tuple[str, ...]:
    if not raw:
        return ()
    values = [v.strip() for v in raw.split(",")]
    if allowed is not None:
        allowed_set = set(allowed)
        values = [v for v in values if v in allowed_set]
    return tuple(v for v in values if v)


def search_params_to_filters(params: Mapping[str, Any] | str | None) -> TaskFilters:
    """
    Parse filters from query parameters. Never raises.

    Accepts a raw query string ("status=active&due=today") or a mapping.
    When a parameter repeats, the last value wins.
    """
    if params is None:
        return DEFAULT_FILTERS

    if isinstance(params, str):
        pairs: Mapping[str, Any] = dict(parse_qsl(params.lstrip("?"), keep_blank_values=True))
    else:
        pairs = params

    def get(name: str) -> str | None:
        value = pairs.get(name)
        if isinstance(value, (list, tuple)):
            value = value[-1] if value else None
        return value if isinstance(value, str) else None

    due = get("due")
    recurring = get("recurring")

    return TaskFilters(
        categories=tuple(unquote(c) for c in _split_values(get("category"))),
        statuses=_split_values(get("status"), TASK_STATUSES),
        priorities=_split_values(get("priority"), PRIORITIES),
        due_range=due if due in DUE_RANGES else None,
        is_recurring={"1": True, "0": False}.get(recurring or ""),
    )


__all__ = [
    "DEFAULT_FILTERS",
    "DUE_RANGE_LABELS",
    "PRIORITY_LABELS",
    "STATUS_LABELS",
    "TaskFilters",
    "apply_filters",
    "count_active_filters",
    "filters_match_view",
    "filters_to_query_string",
    "filters_to_search_params",
    "has_active_filters",
    "matches_due_range",
    "search_params_to_filters",
    "task_matches",
]
