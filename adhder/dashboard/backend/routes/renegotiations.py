"""
Renegotiations Route - Shame-safe handling of overdue tasks

- GET lists tasks that need renegotiating (most overdue first)
- POST applies a reschedule / split / park / drop and records why
- POST /quick-reschedule moves one task to a new date in a single tap
"""

import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, Query, status

from ....errors import BadRequestError, NotFoundError
from ....tasks.dates import parse_date, parse_timestamp
from ....tasks.models import Task
from ....tasks.renegotiation import (
    PATTERN_DAYS,
    REASON_CODES,
    RenegotiationRequest,
    analyze_renegotiation_pattern,
    filter_overdue_tasks,
    plan_renegotiation,
    resolve_reschedule_date,
    validate_renegotiation_request,
)
from ..database import Database
from ..deps import get_config, get_db, rate_limited
from ..models import QuickRescheduleCreate, RenegotiationCreate

logger = logging.getLogger(__name__)


router = APIRouter()

RECENT_REASONS_LIMIT = 10


def recent_reasons(db: Database, user_id: str, task_id: str) -> list[str]:
    """Reason codes of the task's renegotiations in the last PATTERN_DAYS days, newest first."""
    cutoff = datetime.now().astimezone() - timedelta(days=PATTERN_DAYS)
    rows = db.select(
        "task_renegotiations", user_id, order_by=("-created_at",), limit=RECENT_REASONS_LIMIT, task_id=task_id
    )
    reasons = []
    for row in rows:
        created = parse_timestamp(row["created_at"])
        if created is not None and created.tzinfo is None:
            created = created.astimezone()
        if created is None or created >= cutoff:
            reasons.append(row["reason_code"])
    return reasons


@router.get("")
async def list_tasks_needing_renegotiation(
    patterns: bool = Query(False, description="Include repeat-renegotiation patterns"),
    user_id: str = Depends(rate_limited("renegotiations")),
    db: Database = Depends(get_db),
    config: dict = Depends(get_config),
):
    settings = config.get("renegotiation", {})
    threshold_days = int(settings.get("threshold_days", 1))
    pattern_threshold = int(settings.get("pattern_threshold", 3))

    rows = db.select("tasks", user_id, status="active")
    overdue = filter_overdue_tasks([Task.from_dict(r) for r in rows], threshold_days=threshold_days)

    outcome_titles = {o["id"]: o["title"] for o in db.select("outcomes", user_id)}
    outcome_of = {r["id"]: r.get("outcome_id") for r in rows}
    tasks = [
        {**item.to_dict(), "outcome_title": outcome_titles.get(outcome_of.get(item.id))}
        for item in overdue
    ]

    found_patterns = None
    if patterns:
        found_patterns = []
        for item in overdue:
            if item.renegotiation_count < pattern_threshold:
                continue
            analysis = analyze_renegotiation_pattern(
                item.renegotiation_count, recent_reasons(db, user_id, item.id), threshold=pattern_threshold
            )
            if analysis.has_pattern:
                found_patterns.append({"task_id": item.id, "task_title": item.title, **analysis.to_dict()})

    return {"tasks": tasks, "count": len(tasks), "patterns": found_patterns}


@router.post("", status_code=status.HTTP_201_CREATED)
async def renegotiate_task(
    body: RenegotiationCreate,
    user_id: str = Depends(rate_limited("renegotiations")),
    db: Database = Depends(get_db),
    config: dict = Depends(get_config),
):
    """
    Renegotiate one task.

    The task row, any split subtasks and the renegotiation record are
    written here; the client only updates its list after a 201.
    """
    request = RenegotiationRequest.from_dict(body.model_dump())
    errors = validate_renegotiation_request(request)
    if errors:
        raise BadRequestError(", ".join(errors), code="VALIDATION_ERROR")

    row = db.get("tasks", user_id, request.task_id)
    if row is None:
        raise NotFoundError("Task not found")
    task = Task.from_dict(row)

    plan = plan_renegotiation(task, request)

    created = [db.insert("tasks", user_id, subtask) for subtask in plan.subtasks]
    record = dict(plan.record)
    if created:
        record["split_into_task_ids"] = [s["id"] for s in created]
    renegotiation = db.insert("task_renegotiations", user_id, record)

    updated = db.update("tasks", user_id, task.id, plan.task_update)
    if updated is None:
        raise NotFoundError("Task not found")
    logger.info(f"Task {task.id} renegotiated: {request.action} ({request.reason_code})")

    result = {
        "renegotiation": renegotiation,
        "updated_task": {k: updated[k] for k in ("id", "title", "status", "due_date", "renegotiation_count")},
    }
    if created:
        result["created_subtasks"] = [{k: s[k] for k in ("id", "title", "due_date")} for s in created]

    pattern_threshold = int(config.get("renegotiation", {}).get("pattern_threshold", 3))
    if updated["renegotiation_count"] >= pattern_threshold:
        analysis = analyze_renegotiation_pattern(
            updated["renegotiation_count"], recent_reasons(db, user_id, task.id), threshold=pattern_threshold
        )
        if analysis.has_pattern:
            result["pattern_warning"] = {
                "task_id": task.id,
                "task_title": task.title,
                "renegotiation_count": updated["renegotiation_count"],
                "most_common_reason": analysis.most_common_reason,
                "suggestion": analysis.suggestion,
            }

    return result


@router.post("/quick-reschedule")
async def quick_reschedule(
    body: QuickRescheduleCreate,
    user_id: str = Depends(rate_limited("renegotiations")),
    db: Database = Depends(get_db),
):
    """Reschedule without the full renegotiation flow; no reason text needed."""
    if not body.task_id:
        raise BadRequestError("Task is required", code="VALIDATION_ERROR")

    new_due_date = body.new_due_date
    if not new_due_date and body.option:
        try:
            new_due_date = resolve_reschedule_date(body.option)
        except ValueError as e:
            raise BadRequestError(str(e), code="VALIDATION_ERROR") from e
    if not new_due_date:
        raise BadRequestError("New due date is required", code="VALIDATION_ERROR")
    if parse_date(new_due_date) is None:
        raise BadRequestError("Invalid date format", code="VALIDATION_ERROR")

    reason_code = body.reason_code if body.reason_code in REASON_CODES else "other"

    row = db.get("tasks", user_id, body.task_id)
    if row is None:
        raise NotFoundError("Task not found")
    task = Task.from_dict(row)

    request = RenegotiationRequest(
        task_id=task.id, action="reschedule", reason_code=reason_code, new_due_date=new_due_date
    )
    plan = plan_renegotiation(task, request)
    renegotiation = db.insert("task_renegotiations", user_id, plan.record)
    updated = db.update("tasks", user_id, task.id, plan.task_update)
    if updated is None:
        raise NotFoundError("Task not found")
    logger.info(f"Task {task.id} quick-rescheduled to {new_due_date} ({reason_code})")

    return {
        "task": {k: updated[k] for k in ("id", "title", "status", "due_date", "renegotiation_count")},
        "renegotiation": renegotiation,
        "message": "Task rescheduled successfully",
    }
