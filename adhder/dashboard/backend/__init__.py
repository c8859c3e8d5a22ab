"""Task API Backend Package

FastAPI-based REST API for tasks, renegotiations, outcomes,
commitments and categories.
"""

from pathlib import Path


# Re-export project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
DB_PATH = PROJECT_ROOT / "data" / "adhder.db"
