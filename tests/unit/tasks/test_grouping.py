"""Tests for adhder/tasks/grouping.py

Five fixed buckets, first matching rule wins. Done tasks only show on
the day they were completed; dropped and skipped tasks never show.
"""

from datetime import datetime, timedelta

import pytest

from adhder.tasks.grouping import (
    BUCKET_ORDER,
    DONE_TODAY,
    NO_DATE,
    OVERDUE,
    THIS_WEEK,
    TODAY,
    group_tasks,
    move_task,
    non_empty_groups,
    place_task,
    sort_tasks,
    sparse_positions,
)


def local_timestamp(day, hour=9):
    return datetime(day.year, day.month, day.day, hour).astimezone().isoformat()


def by_label(groups):
    return {g.label: [t.id for t in g.tasks] for g in groups}


# ─────────────────────────────────────────────────────────────────────────────
# Placement
# ─────────────────────────────────────────────────────────────────────────────


class TestPlacement:
    """Tests for the bucket decision table."""

    @pytest.mark.parametrize("status", ["dropped", "skipped"])
    def test_dropped_and_skipped_hidden(self, make_task, today, status):
        """Should place dropped/skipped tasks in no bucket, whatever their date."""
        for due in ("2026-03-01", "2026-03-04", "2026-03-06", None):
            assert place_task(make_task(status=status, due_date=due), today) is None

    def test_done_today(self, make_task, today):
        """Should put tasks completed today in Done Today."""
        task = make_task(status="done", due_date="2026-02-01", completed_at=local_timestamp(today))
        assert place_task(task, today) == DONE_TODAY

    def test_done_earlier_hidden(self, make_task, today):
        """Should hide tasks completed on an earlier day."""
        task = make_task(status="done", completed_at=local_timestamp(today - timedelta(days=1), hour=23))
        assert place_task(task, today) is None

    def test_done_without_timestamp_hidden(self, make_task, today):
        """Should hide done tasks with no completion time."""
        assert place_task(make_task(status="done"), today) is None

    @pytest.mark.parametrize(
        "due_date, bucket",
        [
            ("2026-03-03", OVERDUE),
            ("2025-12-31", OVERDUE),
            ("2026-03-04", TODAY),
            ("2026-03-05", THIS_WEEK),
            ("2026-03-08", THIS_WEEK),
            ("2026-03-09", NO_DATE),
            (None, NO_DATE),
            ("garbage", NO_DATE),
        ],
    )
    def test_active_by_due_date(self, make_task, today, due_date, bucket):
        """Should place active tasks by due date relative to today."""
        assert place_task(make_task(due_date=due_date), today) == bucket

    def test_every_active_task_in_exactly_one_bucket(self, make_task, today):
        """Should cover every active task with exactly one bucket."""
        tasks = [make_task(due_date=(today + timedelta(days=d)).isoformat()) for d in range(-10, 20)]
        tasks.append(make_task())
        groups = group_tasks(tasks, today)

        placed = [t.id for g in groups for t in g.tasks]
        assert sorted(placed) == sorted(t.id for t in tasks)


# ─────────────────────────────────────────────────────────────────────────────
# Grouping
# ─────────────────────────────────────────────────────────────────────────────


class TestGroupTasks:
    """Tests for group_tasks."""

    def test_yesterday_today_undated(self, make_task, today):
        """Should split overdue, today and undated tasks into their buckets."""
        a = make_task(id="A", due_date=(today - timedelta(days=1)).isoformat())
        b = make_task(id="B", due_date=today.isoformat())
        c = make_task(id="C")

        assert by_label(group_tasks([a, b, c], today)) == {
            OVERDUE: ["A"],
            TODAY: ["B"],
            THIS_WEEK: [],
            NO_DATE: ["C"],
            DONE_TODAY: [],
        }

    def test_fixed_order_and_styling(self, today):
        """Should always return five buckets in fixed order."""
        groups = group_tasks([], today)
        assert [g.label for g in groups] == list(BUCKET_ORDER)
        assert all(g.color for g in groups)
        assert [g.collapsed_by_default for g in groups] == [False, False, False, False, True]

    def test_non_empty_groups(self, make_task, today):
        """Should drop empty buckets before rendering."""
        groups = non_empty_groups(group_tasks([make_task()], today))
        assert [g.label for g in groups] == [NO_DATE]

    def test_sorts_within_each_bucket(self, make_task, today):
        """Should sort inside buckets, never across them."""
        late = make_task(id="late", due_date="2026-03-02", position=2000)
        early = make_task(id="early", due_date="2026-03-01", position=5000)
        undated = make_task(id="undated", position=0)

        groups = by_label(group_tasks([late, undated, early], today, sort_mode="manual"))
        assert groups[OVERDUE] == ["late", "early"]
        assert groups[NO_DATE] == ["undated"]

        groups = by_label(group_tasks([late, undated, early], today, sort_mode="due_date"))
        assert groups[OVERDUE] == ["early", "late"]


# ─────────────────────────────────────────────────────────────────────────────
# Sorting
# ─────────────────────────────────────────────────────────────────────────────


class TestSortTasks:
    """Tests for sort_tasks."""

    def test_manual_is_stable_ascending(self, make_task):
        """Should order by position with missing positions as 0, keeping ties in order."""
        tasks = [
            make_task(id="p2000", position=2000),
            make_task(id="none-1"),
            make_task(id="p0", position=0),
            make_task(id="p1000", position=1000),
            make_task(id="none-2"),
        ]
        assert [t.id for t in sort_tasks(tasks, "manual")] == ["none-1", "p0", "none-2", "p1000", "p2000"]

    def test_due_date_nulls_last_in_input_order(self, make_task):
        """Should put undated tasks after dated ones, ties in input order."""
        tasks = [
            make_task(id="u1"),
            make_task(id="d2", due_date="2026-03-09"),
            make_task(id="u2"),
            make_task(id="d1", due_date="2026-03-01"),
            make_task(id="d1b", due_date="2026-03-01"),
        ]
        assert [t.id for t in sort_tasks(tasks, "due_date")] == ["d1", "d1b", "d2", "u1", "u2"]

    def test_created_date_newest_first(self, make_task):
        """Should order by creation time, newest first."""
        tasks = [
            make_task(id="old", created_at="2026-01-01T00:00:00"),
            make_task(id="new", created_at="2026-03-01T00:00:00"),
            make_task(id="mid", created_at="2026-02-01T00:00:00"),
        ]
        assert [t.id for t in sort_tasks(tasks, "created_date")] == ["new", "mid", "old"]

    def test_created_date_compares_instants(self, make_task):
        """Should compare timestamps across UTC offsets, not as text."""
        tasks = [
            make_task(id="A", created_at="2026-03-04T10:00:00+00:00"),
            make_task(id="B", created_at="2026-03-04T06:00:00-05:00"),
            make_task(id="C", created_at="2026-03-04T10:30:00Z"),
        ]
        assert [t.id for t in sort_tasks(tasks, "created_date")] == ["B", "C", "A"]

    def test_created_date_unreadable_last(self, make_task):
        """Should put missing or unparsable timestamps last, keeping their order."""
        tasks = [
            make_task(id="blank", created_at=""),
            make_task(id="old", created_at="2026-01-01T00:00:00+00:00"),
            make_task(id="junk", created_at="yesterday-ish"),
            make_task(id="new", created_at="2026-03-01T00:00:00+00:00"),
        ]
        assert [t.id for t in sort_tasks(tasks, "created_date")] == ["new", "old", "blank", "junk"]

    def test_created_date_ties_keep_input_order(self, make_task):
        """Should be stable for equal instants."""
        tasks = [
            make_task(id="first", created_at="2026-03-04T10:00:00+00:00"),
            make_task(id="second", created_at="2026-03-04T11:00:00+01:00"),
        ]
        assert [t.id for t in sort_tasks(tasks, "created_date")] == ["first", "second"]

    def test_does_not_mutate_input(self, make_task):
        """Should return a new list."""
        tasks = [make_task(position=1), make_task(position=0)]
        original = list(tasks)
        sort_tasks(tasks, "manual")
        assert tasks == original

    def test_invalid_mode(self, make_task):
        """Should refuse an unknown mode."""
        with pytest.raises(ValueError):
            sort_tasks([make_task()], "alphabetical")


# ─────────────────────────────────────────────────────────────────────────────
# Reordering
# ─────────────────────────────────────────────────────────────────────────────


class TestReorderHelpers:
    """Tests for sparse_positions / move_task."""

    def test_sparse_positions(self):
        """Should space positions 1000 apart from 0."""
        assert sparse_positions(["C", "A", "B"]) == {"C": 0, "A": 1000, "B": 2000}

    def test_move_task(self):
        """Should move one id to a new index."""
        assert move_task(["A", "B", "C"], 2, 0) == ["C", "A", "B"]
        assert move_task(["A", "B", "C"], 0, 2) == ["B", "C", "A"]

    def test_move_out_of_range(self):
        """Should leave the order alone for a bad index."""
        assert move_task(["A", "B"], 0, 5) == ["A", "B"]
