"""
Categories Route - Per-user task categories
"""

import logging

from fastapi import APIRouter, Depends, status

from ....errors import BadRequestError, NotFoundError
from ..database import Database
from ..deps import get_db, rate_limited
from ..models import CategoryCreate
from .conflicts import active_tasks_linked, ensure_no_active_tasks

logger = logging.getLogger(__name__)


router = APIRouter()


@router.get("")
async def list_categories(
    user_id: str = Depends(rate_limited("categories")),
    db: Database = Depends(get_db),
):
    return {"categories": db.select("categories", user_id, order_by=("name",))}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    user_id: str = Depends(rate_limited("categories")),
    db: Database = Depends(get_db),
):
    name = body.name.strip()
    if not name:
        raise BadRequestError("Name is required", code="VALIDATION_ERROR")
    category = db.insert("categories", user_id, {"name": name, "color": body.color, "icon": body.icon})
    return {"category": category}


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    user_id: str = Depends(rate_limited("categories")),
    db: Database = Depends(get_db),
):
    """Delete a category once no active task uses it; finished tasks become uncategorized."""
    if db.get("categories", user_id, category_id) is None:
        raise NotFoundError("Category not found")
    ensure_no_active_tasks(active_tasks_linked(db, user_id, category_id=category_id), "category")

    for row in db.select("tasks", user_id, category_id=category_id):
        db.update("tasks", user_id, row["id"], {"category_id": None})
    db.delete("categories", user_id, category_id)
    return {"success": True}
