"""Tests for adhder/tasks/optimistic.py

Mutations apply locally first, then call the API. A failed call
restores exactly the snapshotted fields (drops excepted), and the
Mutation record carries the pending / committed / reverted state.
"""

import httpx
import pytest

from adhder.errors import ApiError, ValidationError
from adhder.tasks.client import TasksApiClient
from adhder.tasks.grouping import DONE_TODAY, NO_DATE
from adhder.tasks.optimistic import MutationState, OptimisticTaskList


@pytest.fixture
def seeded(make_task, make_api):
    """Three active tasks, A/B/C, known to both the list and the fake API."""
    tasks = [
        make_task(id="A", title="Alpha", position=0),
        make_task(id="B", title="Bravo", position=1000),
        make_task(id="C", title="Charlie", position=2000),
    ]
    api = make_api(tasks)
    return api, OptimisticTaskList(api, tasks=[t for t in tasks])


# ─────────────────────────────────────────────────────────────────────────────
# Toggle Done
# ─────────────────────────────────────────────────────────────────────────────


class TestToggleDone:
    """Tests for toggle_done."""

    @pytest.mark.asyncio
    async def test_commits_and_adopts_server_task(self, seeded):
        """Should commit and take the server's completed_at."""
        api, task_list = seeded
        mutation = await task_list.toggle_done("A")

        assert mutation.state == MutationState.COMMITTED
        assert mutation.ok
        assert task_list.get("A").status == "done"
        assert task_list.get("A").completed_at == "2026-03-04T10:31:00"
        assert api.calls[-1] == ("update_task", ("A", {"status": "done"}))

    @pytest.mark.asyncio
    async def test_failure_restores_exact_snapshot(self, make_task, make_api):
        """Should restore status and completed_at exactly as they were."""
        odd = make_task(id="X", status="active", completed_at="2026-01-01T08:00:00")
        api = make_api([odd])
        api.fail_with = ApiError("Server exploded", status_code=500)
        task_list = OptimisticTaskList(api, tasks=[odd])

        mutation = await task_list.toggle_done("X")

        assert mutation.state == MutationState.REVERTED
        assert mutation.error == "Server exploded"
        assert task_list.get("X").status == "active"
        assert task_list.get("X").completed_at == "2026-01-01T08:00:00"

    @pytest.mark.asyncio
    async def test_transport_failure_also_reverts(self, seeded):
        """Should treat a network error like any other failure."""
        api, task_list = seeded
        api.fail_with = ApiError("Network error: refused", status_code=None)

        mutation = await task_list.toggle_done("B", done=True)

        assert mutation.state == MutationState.REVERTED
        assert task_list.get("B").status == "active"
        assert task_list.get("B").completed_at is None

    @pytest.mark.asyncio
    async def test_revert_leaves_other_fields_alone(self, seeded):
        """Should not touch fields edited while the call was in flight."""
        api, task_list = seeded
        api.fail_with = ApiError("Nope", status_code=500)

        original_update = api.update_task

        async def edit_title_during_call(task_id, patch):
            task_list.get(task_id).title = "Edited meanwhile"
            return await original_update(task_id, patch)

        api.update_task = edit_title_during_call
        await task_list.toggle_done("A")

        assert task_list.get("A").status == "active"
        assert task_list.get("A").title == "Edited meanwhile"

    @pytest.mark.asyncio
    async def test_appends_next_occurrence(self, seeded, make_task):
        """Should add the server's next recurring occurrence once."""
        api, task_list = seeded
        api.next_occurrence = make_task(id="A2", title="Alpha", due_date="2026-03-05")

        mutation = await task_list.toggle_done("A")
        await task_list.toggle_done("A", done=True)

        assert mutation.next_occurrence.id == "A2"
        assert [t.id for t in task_list.tasks].count("A2") == 1

    @pytest.mark.asyncio
    async def test_flip_back_to_active(self, seeded):
        """Should clear completed_at when un-completing."""
        api, task_list = seeded
        await task_list.toggle_done("A")
        await task_list.toggle_done("A")

        assert task_list.get("A").status == "active"
        assert task_list.get("A").completed_at is None

    @pytest.mark.asyncio
    async def test_unknown_task(self, seeded):
        """Should refuse before calling the API."""
        api, task_list = seeded
        with pytest.raises(ValidationError):
            await task_list.toggle_done("missing")
        assert api.calls == []


# ─────────────────────────────────────────────────────────────────────────────
# Field Updates
# ─────────────────────────────────────────────────────────────────────────────


class TestUpdateTask:
    """Tests for update_task."""

    @pytest.mark.asyncio
    async def test_applies_patch(self, seeded):
        """Should apply and commit a partial patch."""
        api, task_list = seeded
        mutation = await task_list.update_task("B", {"priority": "high", "due_date": "2026-03-06"})

        assert mutation.ok
        assert task_list.get("B").priority == "high"
        assert task_list.get("B").due_date == "2026-03-06"

    @pytest.mark.asyncio
    async def test_failure_restores_only_patched_fields(self, seeded):
        """Should restore just the fields in the patch."""
        api, task_list = seeded
        api.fail_with = ApiError("Nope", status_code=500)

        mutation = await task_list.update_task("B", {"title": "New", "priority": "low"})

        assert mutation.state == MutationState.REVERTED
        assert mutation.snapshot == {"B": {"priority": None, "title": "Bravo"}}
        assert task_list.get("B").title == "Bravo"
        assert task_list.get("B").priority is None

    @pytest.mark.asyncio
    async def test_status_patch_sets_completed_at(self, seeded):
        """Should stamp completed_at locally for a status change to done."""
        api, task_list = seeded
        api.fail_with = ApiError("Nope", status_code=500)
        captured = {}

        original_update = api.update_task

        async def capture(task_id, patch):
            captured["completed_at"] = task_list.get(task_id).completed_at
            return await original_update(task_id, patch)

        api.update_task = capture
        await task_list.update_task("C", {"status": "done"})

        assert captured["completed_at"] is not None
        assert task_list.get("C").completed_at is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "patch",
        [{}, {"title": "   "}, {"title": "x" * 501}, {"id": "other"}, {"bogus": 1}],
    )
    async def test_invalid_patch_never_sent(self, seeded, patch):
        """Should raise before applying or calling anything."""
        api, task_list = seeded
        with pytest.raises(ValidationError):
            await task_list.update_task("A", patch)
        assert api.calls == []
        assert task_list.mutations == []


# ─────────────────────────────────────────────────────────────────────────────
# Reorder
# ─────────────────────────────────────────────────────────────────────────────


class TestReorder:
    """Tests for reorder."""

    @pytest.mark.asyncio
    async def test_sparse_positions(self, seeded):
        """Should give C, A, B positions 0, 1000, 2000."""
        api, task_list = seeded
        mutation = await task_list.reorder(["C", "A", "B"])

        assert mutation.ok
        positions = {t.id: t.position for t in task_list.tasks}
        assert positions == {"C": 0, "A": 1000, "B": 2000}
        assert api.calls[-1] == ("reorder", ({"C": 0, "A": 1000, "B": 2000},))

    @pytest.mark.asyncio
    async def test_failure_restores_captured_positions(self, make_task, make_api):
        """Should put back the exact previous positions, not a recomputed order."""
        tasks = [
            make_task(id="A", position=5),
            make_task(id="B", position=None),
            make_task(id="C", position=73),
        ]
        api = make_api(tasks)
        api.fail_with = ApiError("Nope", status_code=500)
        task_list = OptimisticTaskList(api, tasks=tasks)

        mutation = await task_list.reorder(["C", "A", "B"])

        assert mutation.state == MutationState.REVERTED
        assert {t.id: t.position for t in task_list.tasks} == {"A": 5, "B": None, "C": 73}


# ─────────────────────────────────────────────────────────────────────────────
# Drop
# ─────────────────────────────────────────────────────────────────────────────


class TestDrop:
    """Tests for drop."""

    @pytest.mark.asyncio
    async def test_drop_commits(self, seeded):
        """Should mark the task dropped."""
        api, task_list = seeded
        mutation = await task_list.drop("A")

        assert mutation.ok
        assert task_list.get("A").status == "dropped"

    @pytest.mark.asyncio
    async def test_failed_drop_stays_dropped(self, seeded):
        """Should not revert a failed drop by default."""
        api, task_list = seeded
        api.fail_with = ApiError("Nope", status_code=500)

        mutation = await task_list.drop("A")

        assert mutation.state == MutationState.FAILED
        assert task_list.get("A").status == "dropped"
        assert task_list.get("A").dropped_at is not None

    @pytest.mark.asyncio
    async def test_failed_drop_reverts_when_enabled(self, make_task, make_api):
        """Should restore the task when revert_failed_drops is set."""
        task = make_task(id="A")
        api = make_api([task])
        api.fail_with = ApiError("Nope", status_code=500)
        task_list = OptimisticTaskList(api, tasks=[task], revert_failed_drops=True)

        mutation = await task_list.drop("A")

        assert mutation.state == MutationState.REVERTED
        assert task_list.get("A").status == "active"
        assert task_list.get("A").dropped_at is None


# ─────────────────────────────────────────────────────────────────────────────
# Unexpected Errors
# ─────────────────────────────────────────────────────────────────────────────


class TestUnexpectedErrors:
    """Tests for failures that aren't ApiError."""

    @pytest.mark.asyncio
    async def test_toggle_reverts_on_any_exception(self, seeded):
        """Should revert and record the error instead of raising."""
        api, task_list = seeded
        api.fail_with = RuntimeError("socket closed")

        mutation = await task_list.toggle_done("A")

        assert mutation.state == MutationState.REVERTED
        assert mutation.error == "RuntimeError: socket closed"
        assert task_list.get("A").status == "active"
        assert task_list.get("A").completed_at is None

    @pytest.mark.asyncio
    async def test_update_and_reorder_revert(self, seeded):
        """Should restore patched fields and positions."""
        api, task_list = seeded
        api.fail_with = RuntimeError("boom")

        updated = await task_list.update_task("B", {"title": "New"})
        reordered = await task_list.reorder(["C", "A", "B"])

        assert updated.state == MutationState.REVERTED
        assert reordered.state == MutationState.REVERTED
        assert task_list.get("B").title == "Bravo"
        assert {t.id: t.position for t in task_list.tasks} == {"A": 0, "B": 1000, "C": 2000}

    @pytest.mark.asyncio
    async def test_drop_follows_revert_setting(self, make_task, make_api):
        """Should keep the no-revert default for drops."""
        task = make_task(id="A")
        api = make_api([task])
        api.fail_with = RuntimeError("boom")
        task_list = OptimisticTaskList(api, tasks=[task])

        mutation = await task_list.drop("A")

        assert mutation.state == MutationState.FAILED
        assert task_list.get("A").status == "dropped"

    @pytest.mark.asyncio
    async def test_malformed_server_task_reverts(self, make_task):
        """Should revert when a 200 response carries an unreadable task."""

        def handler(request):
            return httpx.Response(200, json={"task": {"id": "A", "recurring_streak": "n/a"}})

        task = make_task(id="A", status="active")
        client = TasksApiClient(base_url="http://testserver", transport=httpx.MockTransport(handler))
        task_list = OptimisticTaskList(client, tasks=[task])

        async with client:
            mutation = await task_list.toggle_done("A")

        assert mutation.state == MutationState.REVERTED
        assert mutation.error.startswith("ValueError")
        assert task_list.get("A").status == "active"
        assert task_list.get("A").completed_at is None
        assert [m.state for m in task_list.mutations] == [MutationState.REVERTED]


# ─────────────────────────────────────────────────────────────────────────────
# Loading / Grouping
# ─────────────────────────────────────────────────────────────────────────────


class TestLoadAndGroup:
    """Tests for load / grouped."""

    @pytest.mark.asyncio
    async def test_load_replaces_tasks(self, make_task, make_api):
        """Should take the API's task list."""
        api = make_api([make_task(id="A"), make_task(id="B")])
        task_list = OptimisticTaskList(api)

        await task_list.load()

        assert [t.id for t in task_list.tasks] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_completed_task_moves_to_done_today(self, make_task, today, make_api):
        """Should show a task completed today under Done Today."""
        task = make_task(id="A")
        api = make_api([task])
        task_list = OptimisticTaskList(api, tasks=[task])

        groups = {g.label: [t.id for t in g.tasks] for g in task_list.grouped(today=today)}
        assert groups[NO_DATE] == ["A"]

        await task_list.toggle_done("A")
        groups = {g.label: [t.id for t in g.tasks] for g in task_list.grouped(today=today)}
        assert groups[DONE_TODAY] == ["A"]
