"""
Outcomes Route - Goals that tasks roll up to

Deleting an outcome that still has active tasks (directly, or through
one of its commitments) is refused with 409 and the list of tasks to
relink.
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from ....errors import BadRequestError, NotFoundError
from ..database import Database
from ..deps import get_db, rate_limited
from ..models import OutcomeCreate, OutcomeHorizon, OutcomeStatus, OutcomeUpdate
from .conflicts import active_tasks_linked, ensure_no_active_tasks

logger = logging.getLogger(__name__)


router = APIRouter()


@router.get("")
async def list_outcomes(
    status_filter: OutcomeStatus | None = Query(None, alias="status"),
    horizon: OutcomeHorizon | None = Query(None),
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    filters = {}
    if status_filter:
        filters["status"] = status_filter.value
    if horizon:
        filters["horizon"] = horizon.value
    return {"outcomes": db.select("outcomes", user_id, order_by=("priority_rank", "created_at"), **filters)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_outcome(
    body: OutcomeCreate,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    fields = body.model_dump(mode="json")
    fields["title"] = fields["title"].strip()
    if not fields["title"]:
        raise BadRequestError("Title is required", code="VALIDATION_ERROR")
    outcome = db.insert("outcomes", user_id, {**fields, "status": "active"})
    return {"outcome": outcome}


@router.get("/{outcome_id}")
async def get_outcome(
    outcome_id: str,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    outcome = db.get("outcomes", user_id, outcome_id)
    if outcome is None:
        raise NotFoundError("Outcome not found")
    return {
        "outcome": outcome,
        "commitments": db.select("commitments", user_id, outcome_id=outcome_id),
        "tasks": db.select("tasks", user_id, outcome_id=outcome_id),
    }


@router.put("/{outcome_id}")
async def update_outcome(
    outcome_id: str,
    body: OutcomeUpdate,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    updates = body.model_dump(mode="json", exclude_unset=True)
    if not updates:
        raise BadRequestError("No valid fields to update")
    outcome = db.update("outcomes", user_id, outcome_id, updates)
    if outcome is None:
        raise NotFoundError("Outcome not found")
    return {"outcome": outcome}


@router.delete("/{outcome_id}")
async def delete_outcome(
    outcome_id: str,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    if db.get("outcomes", user_id, outcome_id) is None:
        raise NotFoundError("Outcome not found")

    active = active_tasks_linked(db, user_id, outcome_id=outcome_id)
    commitment_ids = [c["id"] for c in db.select("commitments", user_id, outcome_id=outcome_id)]
    if commitment_ids:
        seen = {t["id"] for t in active}
        active += [
            t for t in active_tasks_linked(db, user_id, commitment_id=commitment_ids) if t["id"] not in seen
        ]
    ensure_no_active_tasks(active, "outcome")

    for commitment_id in commitment_ids:
        db.delete("commitments", user_id, commitment_id)
    db.delete("outcomes", user_id, outcome_id)
    logger.info(f"Outcome {outcome_id} deleted with {len(commitment_ids)} commitments")
    return {"success": True}
