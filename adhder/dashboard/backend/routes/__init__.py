"""Task API Routes Package

This module aggregates all route handlers into a single router
that can be included in the main FastAPI application.
"""

from fastapi import APIRouter

from .categories import router as categories_router
from .commitments import router as commitments_router
from .outcomes import router as outcomes_router
from .renegotiations import router as renegotiations_router
from .tasks import router as tasks_router


# Create main API router
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(tasks_router, prefix="/tasks", tags=["tasks"])
api_router.include_router(renegotiations_router, prefix="/renegotiations", tags=["renegotiations"])
api_router.include_router(outcomes_router, prefix="/outcomes", tags=["outcomes"])
api_router.include_router(commitments_router, prefix="/commitments", tags=["commitments"])
api_router.include_router(categories_router, prefix="/categories", tags=["categories"])

__all__ = ["api_router"]
