"""
Saved views and local client state.

A saved view is a named snapshot of TaskFilters. System views are
fixed, always listed first and never deletable; user views are capped
at MAX_CUSTOM_VIEWS. The list operations are pure - they return a new
list and never touch storage. Persisting is a separate step through
LocalStateStore, a small JSON key-value file playing the role of the
browser's local storage.

Usage:
    store = LocalStateStore(STATE_PATH)
    views = load_saved_views(store)
    views = add_saved_view(views, "Deep work", filters)
    save_saved_views(store, views)
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..errors import ValidationError
from . import SORT_MODES, STATE_PATH
from .filters import DEFAULT_FILTERS, TaskFilters, filters_match_view

logger = logging.getLogger(__name__)

SAVED_VIEWS_KEY = "adhd_saved_views"
SORT_MODE_KEY = "adhd_task_sort_mode"

MAX_CUSTOM_VIEWS = 10
MAX_VIEW_NAME_LENGTH = 30
DEFAULT_SORT_MODE = "manual"


class ViewError(ValidationError):
    """A saved-view operation was refused."""


class ViewCapacityError(ViewError):
    """The user already has the maximum number of custom views."""


class ViewNameError(ViewError):
    """The view name is empty or too long."""


@dataclass(frozen=True)
class SavedView:
    id: str
    name: str
    filters: TaskFilters = field(default_factory=TaskFilters)
    is_system: bool = False
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "SavedView | None":
        if not isinstance(data, dict) or not data.get("id") or not data.get("name"):
            return None
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            filters=TaskFilters.from_dict(data.get("filters")),
            is_system=bool(data.get("is_system", data.get("isSystem", False))),
            created_at=str(data.get("created_at", data.get("createdAt", "")) or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "filters": self.filters.to_dict(),
            "is_system": self.is_system,
            "created_at": self.created_at,
        }


SYSTEM_VIEWS: tuple[SavedView, ...] = (
    SavedView(id="all", name="All Tasks", filters=DEFAULT_FILTERS, is_system=True),
    SavedView(
        id="today",
        name="Today's Focus",
        filters=TaskFilters(due_range="today", statuses=("active",)),
        is_system=True,
    ),
    SavedView(
        id="overdue",
        name="Needs Attention",
        filters=TaskFilters(due_range="overdue", statuses=("active",)),
        is_system=True,
    ),
    SavedView(
        id="recurring",
        name="Recurring",
        filters=TaskFilters(is_recurring=True, statuses=("active",)),
        is_system=True,
    ),
)


# =============================================================================
# View List Operations
# =============================================================================


def custom_views(views: list[SavedView]) -> list[SavedView]:
    return [v for v in views if not v.is_system]


def validate_view_name(name: str) -> str:
    """Trim and check a view name; returns the cleaned name."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ViewNameError("View name cannot be empty")
    if len(cleaned) > MAX_VIEW_NAME_LENGTH:
        raise ViewNameError(f"View name must be {MAX_VIEW_NAME_LENGTH} characters or fewer")
    return cleaned


def add_saved_view(
    views: list[SavedView],
    name: str,
    filters: TaskFilters,
    max_count: int = MAX_CUSTOM_VIEWS,
) -> list[SavedView]:
    """
    Append a new user view.

    Raises:
        ViewCapacityError: max_count user views already exist
        ViewNameError: name empty or longer than MAX_VIEW_NAME_LENGTH
    """
    if len(custom_views(views)) >= max_count:
        raise ViewCapacityError(f"Maximum {max_count} custom views allowed")

    view = SavedView(
        id=str(uuid.uuid4()),
        name=validate_view_name(name),
        filters=filters,
        is_system=False,
        created_at=datetime.now().astimezone().isoformat(timespec="seconds"),
    )
    return [*views, view]


def delete_saved_view(views: list[SavedView], view_id: str) -> list[SavedView]:
    """Remove a user view by id. System views and unknown ids are left alone."""
    return [v for v in views if v.id != view_id or v.is_system]


def update_saved_view(
    views: list[SavedView],
    view_id: str,
    name: str | None = None,
    filters: TaskFilters | None = None,
) -> list[SavedView]:
    cleaned = validate_view_name(name) if name is not None else None
    updated = []
    for view in views:
        if view.id == view_id and not view.is_system:
            view = SavedView(
                id=view.id,
                name=cleaned if cleaned is not None else view.name,
                filters=filters if filters is not None else view.filters,
                is_system=False,
                created_at=view.created_at,
            )
        updated.append(view)
    return updated


def all_views(user_views: list[SavedView]) -> list[SavedView]:
    """System views first, then the user's own."""
    return [*SYSTEM_VIEWS, *custom_views(user_views)]


def find_active_view(filters: TaskFilters, views: list[SavedView]) -> SavedView | None:
    """First view whose stored filters match (used to highlight the active pill)."""
    for view in views:
        if filters_match_view(filters, view):
            return view
    return None


# =============================================================================
# Local Persisted State
# =============================================================================


class LocalStateStore:
    """
    JSON key-value file for client-side state.

    A missing or corrupted file reads as empty; nothing here raises on
    read. Writes replace the whole file.
    """

    def __init__(self, path: Path | str = STATE_PATH):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.debug(f"Ignoring unreadable client state {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read_all().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                json.dump(data, f, indent=2)


def load_saved_views(store: LocalStateStore) -> list[SavedView]:
    """User views from storage; bad entries are skipped."""
    raw = store.get(SAVED_VIEWS_KEY, [])
    if not isinstance(raw, list):
        logger.debug("Saved views entry is not a list, using defaults")
        return []
    views = [SavedView.from_dict(item) for item in raw]
    return [v for v in views if v is not None and not v.is_system][:MAX_CUSTOM_VIEWS]


def save_saved_views(store: LocalStateStore, views: list[SavedView]) -> None:
    store.set(SAVED_VIEWS_KEY, [v.to_dict() for v in custom_views(views)])


def load_sort_mode(store: LocalStateStore) -> str:
    mode = store.get(SORT_MODE_KEY, DEFAULT_SORT_MODE)
    return mode if mode in SORT_MODES else DEFAULT_SORT_MODE


def save_sort_mode(store: LocalStateStore, mode: str) -> None:
    if mode not in SORT_MODES:
        raise ValueError(f"Invalid sort mode. Must be one of: {SORT_MODES}")
    store.set(SORT_MODE_KEY, mode)


__all__ = [
    "DEFAULT_SORT_MODE",
    "LocalStateStore",
    "MAX_CUSTOM_VIEWS",
    "MAX_VIEW_NAME_LENGTH",
    "SAVED_VIEWS_KEY",
    "SORT_MODE_KEY",
    "SYSTEM_VIEWS",
    "SavedView",
    "ViewCapacityError",
    "ViewError",
    "ViewNameError",
    "add_saved_view",
    "all_views",
    "custom_views",
    "delete_saved_view",
    "find_active_view",
    "load_saved_views",
    "load_sort_mode",
    "save_saved_views",
    "save_sort_mode",
    "update_saved_view",
]
