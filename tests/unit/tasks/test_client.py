"""Tests for adhder/tasks/client.py

Uses httpx.MockTransport so no server is needed.
"""

import json

import httpx
import pytest

from adhder.errors import ERROR_CODES, ApiError, ConflictError, NotFoundError, RateLimitedError, code_for_status
from adhder.tasks.client import TasksApiClient
from adhder.tasks.filters import TaskFilters


def make_client(handler, token=None):
    return TasksApiClient(
        base_url="http://testserver",
        token=token,
        transport=httpx.MockTransport(handler),
    )


def task_row(**fields):
    row = {"id": "t1", "title": "Water plants", "status": "active", "created_at": "2026-03-01T08:00:00"}
    row.update(fields)
    return row


# ─────────────────────────────────────────────────────────────────────────────
# Successful Calls
# ─────────────────────────────────────────────────────────────────────────────


class TestRequests:
    """Tests for request shapes and response parsing."""

    @pytest.mark.asyncio
    async def test_list_tasks_with_filters(self):
        """Should send filters as query params and parse tasks."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"tasks": [task_row(), task_row(id="t2")]})

        async with make_client(handler) as client:
            tasks = await client.list_tasks(TaskFilters(statuses=("active", "done")))

        assert seen["path"] == "/api/tasks"
        assert seen["params"] == {"status": "active,done"}
        assert [t.id for t in tasks] == ["t1", "t2"]

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        """Should send the session token as a Bearer header."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"tasks": []})

        async with make_client(handler, token="abc123") as client:
            await client.list_tasks()

        assert seen["auth"] == "Bearer abc123"

    @pytest.mark.asyncio
    async def test_update_returns_next_occurrence(self):
        """Should return the updated task and the next recurring occurrence."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "task": task_row(status="done", completed_at="2026-03-04T10:31:00"),
                "nextOccurrence": task_row(id="t1-next", due_date="2026-03-05"),
            })

        async with make_client(handler) as client:
            task, next_occurrence = await client.update_task("t1", {"status": "done"})

        assert seen == {"method": "PATCH", "body": {"status": "done"}}
        assert task.status == "done"
        assert next_occurrence.id == "t1-next"

    @pytest.mark.asyncio
    async def test_update_without_next_occurrence(self):
        """Should return None when the server sends no next occurrence."""
        def handler(request):
            return httpx.Response(200, json={"task": task_row(priority="high")})

        async with make_client(handler) as client:
            task, next_occurrence = await client.update_task("t1", {"priority": "high"})

        assert task.priority == "high"
        assert next_occurrence is None

    @pytest.mark.asyncio
    async def test_reorder_payload(self):
        """Should send id/position pairs in order."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        async with make_client(handler) as client:
            await client.reorder({"C": 0, "A": 1000})

        assert seen["path"] == "/api/tasks/reorder"
        assert seen["body"] == {"tasks": [{"id": "C", "position": 0}, {"id": "A", "position": 1000}]}

    @pytest.mark.asyncio
    async def test_bulk_relink_count(self):
        """Should return the relinked count."""
        def handler(request):
            return httpx.Response(200, json={"relinked_count": 2})

        async with make_client(handler) as client:
            assert await client.bulk_relink(["a", "b"], outcome_id="o1") == 2

    @pytest.mark.asyncio
    async def test_quick_reschedule(self):
        """Should post only the given fields and parse the task."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "task": task_row(due_date="2026-03-05", renegotiation_count=1),
                "renegotiation": {"id": "r1", "action": "reschedule"},
            })

        async with make_client(handler) as client:
            task, record = await client.quick_reschedule("t1", option="tomorrow")

        assert seen["path"] == "/api/renegotiations/quick-reschedule"
        assert seen["body"] == {"task_id": "t1", "option": "tomorrow"}
        assert task.due_date == "2026-03-05"
        assert task.renegotiation_count == 1
        assert record["id"] == "r1"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        """Should tolerate a 204 with no body."""
        def handler(request):
            return httpx.Response(204)

        async with make_client(handler) as client:
            await client.delete_task("t1")


# ─────────────────────────────────────────────────────────────────────────────
# Error Mapping
# ─────────────────────────────────────────────────────────────────────────────


class TestErrors:
    """Tests for mapping failures onto ApiError subclasses."""

    @pytest.mark.asyncio
    async def test_conflict_carries_active_tasks(self):
        """Should expose the blocking tasks on a 409."""
        def handler(request):
            return httpx.Response(409, json={
                "error": "Cannot delete outcome with active tasks",
                "code": "CONFLICT",
                "activeTasks": [{"id": "t1", "title": "Water plants", "due_date": None}],
                "requiresRelink": True,
            })

        async with make_client(handler) as client:
            with pytest.raises(ConflictError) as exc_info:
                await client.delete_outcome("o1")

        error = exc_info.value
        assert error.status_code == 409
        assert error.message == "Cannot delete outcome with active tasks"
        assert [t["id"] for t in error.active_tasks] == ["t1"]
        assert error.payload["requiresRelink"] is True

    @pytest.mark.asyncio
    async def test_not_found(self):
        """Should raise NotFoundError with the server's message."""
        def handler(request):
            return httpx.Response(404, json={"error": "Task not found", "code": "NOT_FOUND"})

        async with make_client(handler) as client:
            with pytest.raises(NotFoundError, match="Task not found"):
                await client.update_task("missing", {"title": "x"})

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        """Should raise RateLimitedError on a 429."""
        def handler(request):
            return httpx.Response(429, json={"error": "Too many requests", "code": "RATE_LIMITED"})

        async with make_client(handler) as client:
            with pytest.raises(RateLimitedError):
                await client.list_tasks()

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        """Should fall back to a generic message for a plain-text error."""
        def handler(request):
            return httpx.Response(502, text="Bad gateway")

        async with make_client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.list_tasks()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "Request failed with status 502"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Should report a network failure with no status code."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.renegotiate({"task_id": "t1"})

        assert exc_info.value.status_code is None
        assert exc_info.value.is_transport_error


class TestCodeForStatus:
    """Tests for code_for_status."""

    @pytest.mark.parametrize("status_code, code", [
        (400, "BAD_REQUEST"),
        (401, "UNAUTHORIZED"),
        (404, "NOT_FOUND"),
        (405, "BAD_REQUEST"),
        (409, "CONFLICT"),
        (429, "RATE_LIMITED"),
        (503, "INTERNAL_ERROR"),
    ])
    def test_codes_stay_in_the_documented_set(self, status_code, code):
        """Should map every status onto one of ERROR_CODES."""
        assert code_for_status(status_code) == code
        assert code in ERROR_CODES
