"""Shared test fixtures for ADHDer tests.

This module provides common fixtures used across all test modules:
- A fixed "today" so date buckets are deterministic
- A task factory with sensible defaults
- An in-memory fake of the task API for optimistic-update tests
- Local client state in a temporary directory

Usage:
    def test_something(make_task, today):
        task = make_task(due_date=today.isoformat())
        ...
"""

import copy
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pytest

from adhder.tasks.models import Task
from adhder.tasks.views import LocalStateStore


# ─────────────────────────────────────────────────────────────────────────────
# Date Fixtures
# ─────────────────────────────────────────────────────────────────────────────

# Wednesday; its week ends Sunday 2026-03-08
TODAY = date(2026, 3, 4)


@pytest.fixture
def today() -> date:
    """Fixed local date used by date-sensitive tests."""
    return TODAY


@pytest.fixture
def now() -> datetime:
    """Fixed local datetime on TODAY, mid-morning."""
    return datetime(2026, 3, 4, 10, 30)


# ─────────────────────────────────────────────────────────────────────────────
# Task Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def make_task() -> Callable[..., Task]:
    """Factory for Task records with unique ids.

    Returns:
        callable(**fields) -> Task
    """
    counter = {"n": 0}

    def factory(**fields: Any) -> Task:
        counter["n"] += 1
        values = {
            "id": f"task-{counter['n']}",
            "title": f"Task {counter['n']}",
            "status": "active",
            "created_at": f"2026-03-01T0{counter['n'] % 10}:00:00",
        }
        values.update(fields)
        return Task.from_dict(values)

    return factory


# ─────────────────────────────────────────────────────────────────────────────
# Client Fixtures
# ─────────────────────────────────────────────────────────────────────────────


class FakeTasksApi:
    """In-memory stand-in for TasksApiClient.

    Set `fail_with` to an exception to make the next calls fail. Every
    call is recorded in `calls` as (method, args).
    """

    def __init__(self, tasks: list[Task] | None = None):
        self.tasks = {t.id: copy.deepcopy(t) for t in (tasks or [])}
        self.calls: list[tuple[str, tuple]] = []
        self.fail_with: Exception | None = None
        self.next_occurrence: Task | None = None

    def _check(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        if self.fail_with is not None:
            raise self.fail_with

    async def list_tasks(self, filters=None):
        self._check("list_tasks", filters)
        return [copy.deepcopy(t) for t in self.tasks.values()]

    async def update_task(self, task_id, patch):
        self._check("update_task", task_id, patch)
        task = copy.deepcopy(self.tasks[task_id])
        for name, value in patch.items():
            setattr(task, name, value)
        if "status" in patch:
            task.completed_at = "2026-03-04T10:31:00" if patch["status"] == "done" else None
        self.tasks[task_id] = task
        return copy.deepcopy(task), self.next_occurrence

    async def reorder(self, positions):
        self._check("reorder", positions)

    async def renegotiate(self, payload):
        self._check("renegotiate", payload)
        return {"renegotiation": {"id": "r-1", **payload}}


@pytest.fixture
def make_api() -> type[FakeTasksApi]:
    """The fake API class; call it with the tasks it should start with."""
    return FakeTasksApi


# ─────────────────────────────────────────────────────────────────────────────
# Local State Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def state_store(tmp_path: Path) -> LocalStateStore:
    """Client state file in a temporary directory."""
    return LocalStateStore(tmp_path / "data" / "client_state.json")
