"""
Commitments Route - Concrete promises under an outcome
"""

import logging

from fastapi import APIRouter, Depends, Query, status

from ....errors import BadRequestError, NotFoundError
from ..database import Database
from ..deps import get_db, rate_limited
from ..models import CommitmentCreate, CommitmentUpdate
from .conflicts import active_tasks_linked, ensure_no_active_tasks

logger = logging.getLogger(__name__)


router = APIRouter()


def _check_outcome(db: Database, user_id: str, outcome_id: str | None) -> None:
    if outcome_id and db.get("outcomes", user_id, outcome_id) is None:
        raise NotFoundError("Outcome not found")


@router.get("")
async def list_commitments(
    outcome_id: str | None = Query(None),
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    filters = {"outcome_id": outcome_id} if outcome_id else {}
    return {"commitments": db.select("commitments", user_id, order_by=("created_at",), **filters)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_commitment(
    body: CommitmentCreate,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    _check_outcome(db, user_id, body.outcome_id)
    fields = body.model_dump(mode="json")
    fields["title"] = fields["title"].strip()
    if not fields["title"]:
        raise BadRequestError("Title is required", code="VALIDATION_ERROR")
    return {"commitment": db.insert("commitments", user_id, {**fields, "status": "active"})}


@router.put("/{commitment_id}")
async def update_commitment(
    commitment_id: str,
    body: CommitmentUpdate,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    updates = body.model_dump(mode="json", exclude_unset=True)
    if not updates:
        raise BadRequestError("No valid fields to update")
    _check_outcome(db, user_id, updates.get("outcome_id"))
    commitment = db.update("commitments", user_id, commitment_id, updates)
    if commitment is None:
        raise NotFoundError("Commitment not found")
    return {"commitment": commitment}


@router.delete("/{commitment_id}")
async def delete_commitment(
    commitment_id: str,
    user_id: str = Depends(rate_limited("outcomes")),
    db: Database = Depends(get_db),
):
    if db.get("commitments", user_id, commitment_id) is None:
        raise NotFoundError("Commitment not found")
    ensure_no_active_tasks(active_tasks_linked(db, user_id, commitment_id=commitment_id), "commitment")
    db.delete("commitments", user_id, commitment_id)
    return {"success": True}
