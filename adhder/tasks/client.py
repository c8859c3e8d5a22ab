"""
Async client for the task API.

Thin wrapper over httpx.AsyncClient. Every non-2xx response is turned
into the matching ApiError subclass (the body's `error`/`message` text
and `code` are carried over); transport failures become an ApiError
with status_code=None. Nothing is retried.
"""

import logging
from typing import Any

import httpx

from ..errors import ApiError, error_for_status
from .filters import TaskFilters, filters_to_search_params
from .models import Task

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080"


class TasksApiClient:
    """Async HTTP client for /api/tasks, /api/renegotiations and friends."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "TasksApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error: {e}", status_code=None) from e

        if response.is_success:
            if not response.content:
                return {}
            try:
                body = response.json()
            except ValueError:
                return {}
            return body if isinstance(body, dict) else {"data": body}

        raise _error_from_response(response)

    # =========================================================================
    # Tasks
    # =========================================================================

    async def list_tasks(self, filters: TaskFilters | None = None) -> list[Task]:
        params = filters_to_search_params(filters) if filters else None
        body = await self._request("GET", "/api/tasks", params=params)
        return [Task.from_dict(row) for row in body.get("tasks", [])]

    async def create_task(self, fields: dict[str, Any]) -> Task:
        body = await self._request("POST", "/api/tasks", json=fields)
        return Task.from_dict(body["task"])

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> tuple[Task | None, Task | None]:
        """PATCH a task. Returns (updated task, next recurring occurrence or None)."""
        body = await self._request("PATCH", f"/api/tasks/{task_id}", json=patch)
        task = body.get("task")
        next_occurrence = body.get("nextOccurrence")
        return (
            Task.from_dict(task) if isinstance(task, dict) else None,
            Task.from_dict(next_occurrence) if isinstance(next_occurrence, dict) else None,
        )

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    async def reorder(self, positions: dict[str, int]) -> None:
        payload = {"tasks": [{"id": task_id, "position": pos} for task_id, pos in positions.items()]}
        await self._request("PATCH", "/api/tasks/reorder", json=payload)

    async def bulk_relink(
        self,
        task_ids: list[str],
        outcome_id: str | None = None,
        commitment_id: str | None = None,
    ) -> int:
        body = await self._request(
            "POST",
            "/api/tasks/bulk-relink",
            json={
                "task_ids": task_ids,
                "target_outcome_id": outcome_id,
                "target_commitment_id": commitment_id,
            },
        )
        return int(body.get("relinked_count", 0))

    # =========================================================================
    # Renegotiation, outcomes
    # =========================================================================

    async def renegotiate(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/renegotiations", json=payload)

    async def quick_reschedule(
        self,
        task_id: str,
        new_due_date: str | None = None,
        option: str | None = None,
        reason_code: str | None = None,
    ) -> tuple[Task | None, dict[str, Any]]:
        """One-tap reschedule. Returns (updated task, renegotiation record)."""
        payload = {"task_id": task_id, "new_due_date": new_due_date, "option": option, "reason_code": reason_code}
        body = await self._request(
            "POST",
            "/api/renegotiations/quick-reschedule",
            json={k: v for k, v in payload.items() if v is not None},
        )
        task = body.get("task")
        return (Task.from_dict(task) if isinstance(task, dict) else None), dict(body.get("renegotiation") or {})

    async def list_outcomes(self) -> list[dict[str, Any]]:
        body = await self._request("GET", "/api/outcomes")
        return list(body.get("outcomes", []))

    async def delete_outcome(self, outcome_id: str) -> None:
        """Raises ConflictError (with active_tasks) when tasks still link here."""
        await self._request("DELETE", f"/api/outcomes/{outcome_id}")


def _error_from_response(response: httpx.Response) -> ApiError:
    message = f"Request failed with status {response.status_code}"
    code = None
    payload: dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or body.get("detail") or message
        if not isinstance(message, str):
            message = str(message)
        code = body.get("code")
        payload = {k: v for k, v in body.items() if k not in ("error", "message", "detail", "code")}

    logger.info(f"{response.request.method} {response.request.url.path} -> {response.status_code}: {message}")
    return error_for_status(response.status_code, message, code=code, payload=payload)


__all__ = ["DEFAULT_BASE_URL", "TasksApiClient"]
