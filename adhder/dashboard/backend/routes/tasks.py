"""
Tasks Route - Task CRUD, reordering and recurrence

Provides endpoints for the task list:
- List tasks, filtered by the same query parameters the client uses
- Create tasks
- Partial updates, with status timestamps and recurring next occurrences
- Bulk reorder and bulk relink to outcomes/commitments
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from ....errors import BadRequestError, NotFoundError
from ....tasks import POSITION_STEP
from ....tasks.dates import now_iso
from ....tasks.filters import apply_filters, search_params_to_filters
from ....tasks.models import Task
from ....tasks.recurrence import build_next_occurrence, compute_next_occurrence
from ..database import Database
from ..deps import get_db, rate_limited
from ..models import BulkRelinkRequest, ReorderRequest, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)


router = APIRouter()

TIMESTAMP_FIELDS = ("completed_at", "dropped_at", "skipped_at")
STATUS_TIMESTAMP = {"done": "completed_at", "dropped": "dropped_at", "skipped": "skipped_at"}


def with_category(db: Database, user_id: str, row: dict[str, Any] | None) -> dict[str, Any] | None:
    """Attach the category row the way the list view expects it."""
    if row is None:
        return None
    category = db.get("categories", user_id, row["category_id"]) if row.get("category_id") else None
    if category:
        category = {k: category[k] for k in ("id", "name", "color", "icon")}
    return {**row, "category": category}


def status_changes(new_status: str, now: str) -> dict[str, Any]:
    """Timestamp fields for a status transition; only the new status's stamp is set."""
    changes: dict[str, Any] = {name: None for name in TIMESTAMP_FIELDS}
    stamp = STATUS_TIMESTAMP.get(new_status)
    if stamp:
        changes[stamp] = now
    return changes


# =============================================================================
# List / Create
# =============================================================================


@router.get("")
async def list_tasks(
    request: Request,
    user_id: str = Depends(rate_limited("tasks")),
    db: Database = Depends(get_db),
):
    """
    List the user's tasks in manual order.

    Accepts category, status, priority, due and recurring query
    parameters; malformed values are ignored.
    """
    filters = search_params_to_filters(request.query_params)
    rows = db.select("tasks", user_id, order_by=("position", "created_at"))
    categories = {c["id"]: c for c in db.select("categories", user_id)}

    kept = {t.id for t in apply_filters((Task.from_dict(r) for r in rows), filters)}
    tasks = []
    for row in rows:
        if row["id"] not in kept:
            continue
        category = categories.get(row.get("category_id"))
        tasks.append({
            **row,
            "category": {k: category[k] for k in ("id", "name", "color", "icon")} if category else None,
        })
    return {"tasks": tasks}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    user_id: str = Depends(rate_limited("tasks")),
    db: Database = Depends(get_db),
):
    """Create an active task at the bottom of the manual order."""
    fields = body.model_dump(mode="json")
    if fields["recurrence_rule"] and not fields["is_recurring"]:
        raise BadRequestError("recurrence_rule requires is_recurring", code="VALIDATION_ERROR")
    if fields["is_recurring"] and not fields["recurrence_rule"]:
        raise BadRequestError("Recurring tasks need a recurrence_rule", code="VALIDATION_ERROR")

    if fields["position"] is None:
        positions = [r["position"] for r in db.select("tasks", user_id) if r.get("position") is not None]
        fields["position"] = (max(positions) + POSITION_STEP) if positions else 0

    row = db.insert("tasks", user_id, {**fields, "status": "active", "recurring_streak": 0})
    logger.info(f"Task created: {row['id']}")
    return {"task": with_category(db, user_id, row)}


# =============================================================================
# Bulk endpoints (must be before /{task_id} to avoid route conflict)
# =============================================================================


@router.patch("/reorder")
async def reorder_tasks(
    body: ReorderRequest,
    user_id: str = Depends(rate_limited("tasks")),
    db: Database = Depends(get_db),
):
    """Write new manual positions. Ids that are not the user's are skipped."""
    updated = 0
    for item in body.tasks:
        if db.update("tasks", user_id, item.id, {"position": item.position}) is not None:
            updated += 1
    return {"success": True, "updated": updated}


@router.post("/bulk-relink")
async def bulk_relink(
    body: BulkRelinkRequest,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    """Point tasks at another outcome or commitment (used before a blocked delete)."""
    if body.target_commitment_id:
        commitment = db.get("commitments", user_id, body.target_commitment_id)
        if commitment is None:
            raise NotFoundError("Target commitment not found")
        changes = {"commitment_id": commitment["id"], "outcome_id": commitment["outcome_id"]}
    elif body.target_outcome_id:
        if db.get("outcomes", user_id, body.target_outcome_id) is None:
            raise NotFoundError("Target outcome not found")
        changes = {"outcome_id": body.target_outcome_id, "commitment_id": None}
    else:
        raise BadRequestError("Must provide target_outcome_id or target_commitment_id")

    owned = [row["id"] for row in db.select("tasks", user_id, id=list(body.task_ids))]
    if not owned:
        raise NotFoundError("No valid tasks found")

    for task_id in owned:
        db.update("tasks", user_id, task_id, changes)
    return {"success": True, "relinked_count": len(owned), "skipped_count": len(body.task_ids) - len(owned)}


# =============================================================================
# Single task
# =============================================================================


@router.patch("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdate,
    user_id: str = Depends(rate_limited("tasks")),
    db: Database = Depends(get_db),
):
    """
    Partially update a task.

    A status change stamps completed_at / dropped_at / skipped_at (and
    clears the others). Completing or skipping a recurring task creates
    its next occurrence, returned as `nextOccurrence`.
    """
    updates = body.model_dump(mode="json", exclude_unset=True)
    if not updates:
        raise BadRequestError("No valid fields to update")

    current_row = db.get("tasks", user_id, task_id)
    if current_row is None:
        raise NotFoundError("Task not found")
    current = Task.from_dict(current_row)

    if updates.get("is_recurring") is False:
        updates["recurrence_rule"] = None

    now = now_iso()
    new_status = updates.get("status")
    next_occurrence = None

    if new_status and new_status != current.status:
        updates.update(status_changes(new_status, now))

        is_recurring = updates.get("is_recurring", current.is_recurring)
        rule = updates.get("recurrence_rule", current_row.get("recurrence_rule"))
        if new_status == "skipped":
            updates["recurring_streak"] = 0

        if new_status in ("done", "skipped") and is_recurring and rule:
            next_due = compute_next_occurrence(rule, current.due_date)
            if next_due:
                # the streak only grows while the series continues
                if new_status == "done":
                    updates["recurring_streak"] = current.recurring_streak + 1
                row = build_next_occurrence(current, next_due, skipped=new_status == "skipped")
                row["recurrence_rule"] = rule
                next_occurrence = db.insert("tasks", user_id, row)
                logger.info(f"Next occurrence {next_occurrence['id']} created for {task_id} on {next_due}")

    task = db.update("tasks", user_id, task_id, updates)
    if task is None:
        raise NotFoundError("Task not found")

    return {
        "task": with_category(db, user_id, task),
        "nextOccurrence": with_category(db, user_id, next_occurrence),
    }


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    user_id: str = Depends(rate_limited("tasks")),
    db: Database = Depends(get_db),
):
    if not db.delete("tasks", user_id, task_id):
        raise NotFoundError("Task not found")
    return {"success": True}
