"""Task Core - filters, grouping, recurrence and renegotiation

Philosophy:
    An overdue list is a wall of shame. The task core keeps the list
    small and honest: five fixed buckets, one sort at a time, and a
    shame-safe way to renegotiate anything that slipped.

Components:
    models.py: Task, Category and RecurrenceRule records
    dates.py: "is this today / this week / overdue" helpers
    recurrence.py: Next occurrence for recurring tasks
    filters.py: Task filters and their URL encoding
    views.py: Saved views and local client state
    grouping.py: Bucket placement and per-bucket sorting
    client.py: Async client for the task API
    optimistic.py: Apply-then-confirm mutations with exact revert
    renegotiation.py: Reschedule / split / park / drop for overdue tasks

Usage:
    from adhder.tasks.filters import apply_filters, search_params_to_filters
    from adhder.tasks.grouping import group_tasks, non_empty_groups

    filters = search_params_to_filters("status=active&due=today")
    groups = non_empty_groups(group_tasks(apply_filters(tasks, filters)))
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent.parent
STATE_PATH = PROJECT_ROOT / "data" / "client_state.json"

# Valid values
TASK_STATUSES = ("active", "done", "dropped", "skipped")
PRIORITIES = ("low", "medium", "high")
RECURRENCE_FREQUENCIES = ("daily", "weekdays", "weekly", "biweekly", "monthly")
DUE_RANGES = ("overdue", "today", "tomorrow", "this_week", "next_week", "no_date")
SORT_MODES = ("manual", "due_date", "created_date")

# Filter bucket for tasks with no category
UNCATEGORIZED = "uncategorized"

# Gap left between manual positions so inserts rarely renumber
POSITION_STEP = 1000

# Title limits shared by the API and the client
MAX_TITLE_LENGTH = 500

__all__ = [
    "PROJECT_ROOT",
    "STATE_PATH",
    "TASK_STATUSES",
    "PRIORITIES",
    "RECURRENCE_FREQUENCIES",
    "DUE_RANGES",
    "SORT_MODES",
    "UNCATEGORIZED",
    "POSITION_STEP",
    "MAX_TITLE_LENGTH",
]
