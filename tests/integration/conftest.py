"""
Integration test fixtures for the ADHDer task API.

Provides fixtures specific to integration testing:
- A fresh FastAPI app per test, on a temporary SQLite database
- Test clients with and without session auth
- Small helpers for creating rows through the API
"""

import copy
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from adhder.config import DEFAULT_CONFIG
from adhder.dashboard.backend.deps import ANONYMOUS_USER
from adhder.dashboard.backend.main import create_app
from adhder.security.session import create_session


# ─────────────────────────────────────────────────────────────────────────────
# Config Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def api_config() -> dict[str, Any]:
    """Default config with auth off; tests may tweak it before the app is built."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["security"]["require_auth"] = False
    return config


@pytest.fixture
def api_db_path(tmp_path: Path) -> Path:
    return tmp_path / "adhder_test.db"


# ─────────────────────────────────────────────────────────────────────────────
# Client Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def client(api_db_path: Path, api_config: dict[str, Any]) -> Generator[TestClient, None, None]:
    """Test client for an app that runs every request as "anonymous"."""
    app = create_app(api_db_path, api_config)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_client(api_db_path: Path, api_config: dict[str, Any]) -> Generator[TestClient, None, None]:
    """Test client for an app that requires a session token."""
    api_config["security"]["require_auth"] = True
    app = create_app(api_db_path, api_config)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def issue_token(auth_client: TestClient) -> Callable[[str], str]:
    """Create a session for a user on the auth_client app; returns the raw token."""

    def issue(user_id: str) -> str:
        return create_session(auth_client.app.state.db, user_id)["token"]

    return issue


# ─────────────────────────────────────────────────────────────────────────────
# Row Helpers
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def create_task(client: TestClient) -> Callable[..., dict[str, Any]]:
    """POST a task and return the created row."""

    def create(title: str = "Water plants", **fields: Any) -> dict[str, Any]:
        response = client.post("/api/tasks", json={"title": title, **fields})
        assert response.status_code == 201, response.text
        return response.json()["task"]

    return create


@pytest.fixture
def put_task_row(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Insert a task row directly, for states the API can't create (overdue, renegotiated)."""

    def put(**fields: Any) -> dict[str, Any]:
        row = {"title": "Old task", "status": "active", **fields}
        return client.app.state.db.insert("tasks", ANONYMOUS_USER, row)

    return put
