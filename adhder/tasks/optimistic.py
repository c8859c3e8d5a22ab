"""
Apply-then-confirm task mutations with exact revert.

Each user action becomes a Mutation record. The change is applied to
the local list first, then the API call is made:

    PENDING -> COMMITTED   call succeeded, server values adopted
    PENDING -> REVERTED    call failed, snapshotted fields restored
    PENDING -> FAILED      call failed, nothing restored (drops)

Only the fields a mutation touched are snapshotted, and a revert writes
back exactly those captured values. Calls are not queued or
de-duplicated; when two calls race, whichever resolves last wins.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from ..errors import ApiError, ValidationError
from . import MAX_TITLE_LENGTH
from .dates import now_iso
from .filters import DEFAULT_FILTERS, TaskFilters, apply_filters
from .grouping import TaskGroup, group_tasks, sparse_positions
from .models import TASK_FIELDS, RecurrenceRule, Task

logger = logging.getLogger(__name__)

# Fields a client patch may not touch
READ_ONLY_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at", "category"})
PATCHABLE_FIELDS = TASK_FIELDS - READ_ONLY_FIELDS


class MutationState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    REVERTED = "reverted"
    FAILED = "failed"


@dataclass
class Mutation:
    """One optimistic change and the values needed to undo it."""

    id: int
    kind: str
    snapshot: dict[str, dict[str, Any]]
    state: MutationState = MutationState.PENDING
    error: str | None = None
    next_occurrence: Task | None = None

    @property
    def task_ids(self) -> list[str]:
        return list(self.snapshot)

    @property
    def ok(self) -> bool:
        return self.state == MutationState.COMMITTED


@dataclass
class OptimisticTaskList:
    """
    Local task list kept in step with the API.

    Args:
        api: TasksApiClient (or anything with the same coroutine methods)
        tasks: Initial rows
        revert_failed_drops: Restore a task whose drop call failed.
            Off by default; a failed drop stays dropped locally.
    """

    api: Any
    tasks: list[Task] = field(default_factory=list)
    revert_failed_drops: bool = False
    mutations: list[Mutation] = field(default_factory=list)

    def __post_init__(self):
        self._ids = itertools.count(1)

    # =========================================================================
    # Local state
    # =========================================================================

    def get(self, task_id: str) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise ValidationError(f"Unknown task: {task_id}")

    async def load(self, filters: TaskFilters | None = None) -> list[Task]:
        self.tasks = await self.api.list_tasks(filters)
        return self.tasks

    def grouped(
        self,
        filters: TaskFilters = DEFAULT_FILTERS,
        sort_mode: str = "manual",
        today: date | None = None,
    ) -> list[TaskGroup]:
        return group_tasks(apply_filters(self.tasks, filters, today), today=today, sort_mode=sort_mode)

    def _begin(self, kind: str, task_ids: list[str], fields: set[str]) -> Mutation:
        snapshot = {task_id: self.get(task_id).field_values(sorted(fields)) for task_id in task_ids}
        mutation = Mutation(id=next(self._ids), kind=kind, snapshot=snapshot)
        self.mutations.append(mutation)
        return mutation

    def _apply(self, task_id: str, values: dict[str, Any]) -> None:
        task = self.get(task_id)
        for name, value in values.items():
            setattr(task, name, value)

    def _restore(self, mutation: Mutation) -> None:
        for task_id, values in mutation.snapshot.items():
            for task in self.tasks:
                if task.id == task_id:
                    for name, value in values.items():
                        setattr(task, name, value)

    def _adopt(self, server_task: Task | None) -> None:
        if server_task is None:
            return
        for index, task in enumerate(self.tasks):
            if task.id == server_task.id:
                self.tasks[index] = server_task
                return

    def _append(self, task: Task | None) -> None:
        if task is None or any(t.id == task.id for t in self.tasks):
            return
        self.tasks.append(task)

    def _fail(self, mutation: Mutation, error: Exception, revert: bool = True) -> Mutation:
        # Non-API errors (bad response body, transport bugs) count as failures too
        message = error.message if isinstance(error, ApiError) else f"{type(error).__name__}: {error}"
        mutation.error = message
        if revert:
            self._restore(mutation)
            mutation.state = MutationState.REVERTED
        else:
            mutation.state = MutationState.FAILED
        logger.warning(
            f"{mutation.kind} of {', '.join(mutation.task_ids)} failed "
            f"({mutation.state.value}): {message}"
        )
        return mutation

    # =========================================================================
    # Mutations
    # =========================================================================

    async def toggle_done(self, task_id: str, done: bool | None = None) -> Mutation:
        """Mark a task done (or back to active). Omit `done` to flip it."""
        task = self.get(task_id)
        if done is None:
            done = task.status != "done"
        status = "done" if done else "active"

        mutation = self._begin("toggle_done", [task_id], {"status", "completed_at"})
        self._apply(task_id, {"status": status, "completed_at": now_iso() if done else None})

        try:
            server_task, next_occurrence = await self.api.update_task(task_id, {"status": status})
        except Exception as e:
            return self._fail(mutation, e)

        self._adopt(server_task)
        self._append(next_occurrence)
        mutation.next_occurrence = next_occurrence
        mutation.state = MutationState.COMMITTED
        return mutation

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> Mutation:
        """
        Apply a partial patch to one task.

        Raises:
            ValidationError: empty or overlong title, unknown fields.
                Raised before anything is applied or sent.
        """
        self.get(task_id)
        local = _validate_patch(patch)
        if "status" in local and "completed_at" not in local:
            local["completed_at"] = now_iso() if local["status"] == "done" else None

        mutation = self._begin("update", [task_id], set(local))
        self._apply(task_id, local)

        try:
            server_task, next_occurrence = await self.api.update_task(task_id, dict(patch))
        except Exception as e:
            return self._fail(mutation, e)

        self._adopt(server_task)
        self._append(next_occurrence)
        mutation.next_occurrence = next_occurrence
        mutation.state = MutationState.COMMITTED
        return mutation

    async def reorder(self, ordered_ids: list[str]) -> Mutation:
        """Give `ordered_ids` sparse positions (0, 1000, 2000, ...) in that order."""
        positions = sparse_positions(ordered_ids)
        mutation = self._begin("reorder", list(positions), {"position"})
        for task_id, position in positions.items():
            self._apply(task_id, {"position": position})

        try:
            await self.api.reorder(positions)
        except Exception as e:
            return self._fail(mutation, e)

        mutation.state = MutationState.COMMITTED
        return mutation

    async def drop(self, task_id: str) -> Mutation:
        mutation = self._begin("drop", [task_id], {"status", "dropped_at"})
        self._apply(task_id, {"status": "dropped", "dropped_at": now_iso()})

        try:
            server_task, _ = await self.api.update_task(task_id, {"status": "dropped"})
        except Exception as e:
            return self._fail(mutation, e, revert=self.revert_failed_drops)

        self._adopt(server_task)
        mutation.state = MutationState.COMMITTED
        return mutation


def _validate_patch(patch: dict[str, Any]) -> dict[str, Any]:
    """Check a patch and convert it to local field values."""
    if not patch:
        raise ValidationError("No fields to update")

    unknown = sorted(set(patch) - PATCHABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(unknown)}")

    local = dict(patch)
    if "title" in local:
        title = (local["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title must be {MAX_TITLE_LENGTH} characters or fewer")
        local["title"] = title
    if "recurrence_rule" in local:
        local["recurrence_rule"] = RecurrenceRule.from_dict(local["recurrence_rule"])
    return local


__all__ = ["Mutation", "MutationState", "OptimisticTaskList", "PATCHABLE_FIELDS"]
