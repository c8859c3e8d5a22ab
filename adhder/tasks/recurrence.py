"""
Tool: Recurrence Helper
Purpose: Work out when a recurring task comes back

When a recurring task is completed or skipped, the API creates the
next occurrence from the finished one's due date. The client never
computes recurrence itself - it only appends the `nextOccurrence`
the server sends back.

Usage:
    python -m adhder.tasks.recurrence --frequency weekly --due 2026-10-19
    python -m adhder.tasks.recurrence --frequency monthly --due 2026-01-31 --end 2026-06-30

Output:
    JSON with the next due date (null when the series has ended)
"""

import argparse
import calendar
import json
import sys
from datetime import date, timedelta
from typing import Any

from . import RECURRENCE_FREQUENCIES
from .dates import local_today, parse_date
from .models import RecurrenceRule, Task

RECURRENCE_OPTIONS = (
    {"value": "daily", "label": "Daily", "description": "Every day"},
    {"value": "weekdays", "label": "Weekdays", "description": "Mon-Fri"},
    {"value": "weekly", "label": "Weekly", "description": "Same day each week"},
    {"value": "biweekly", "label": "Biweekly", "description": "Every 2 weeks"},
    {"value": "monthly", "label": "Monthly", "description": "Same date each month"},
)


def _add_months(day: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _next_weekday(day: date) -> date:
    day += timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


def compute_next_occurrence(
    rule: RecurrenceRule | dict[str, Any],
    completed_due_date: str | date | None,
    today: date | None = None,
) -> str | None:
    """
    Next due date after a completed (or skipped) occurrence.

    Args:
        rule: Recurrence rule (frequency, interval, optional end_date)
        completed_due_date: Due date of the occurrence just finished;
            today is used when the task had no due date
        today: Pin the clock (defaults to the local date)

    Returns:
        ISO date of the next occurrence, or None if the series ends
        (unknown frequency, or past the rule's end date)
    """
    if isinstance(rule, dict):
        rule = RecurrenceRule.from_dict(rule)
    if rule is None or rule.frequency not in RECURRENCE_FREQUENCIES:
        return None

    base = parse_date(completed_due_date) or today or local_today()
    interval = max(1, rule.interval or 1)

    if rule.frequency == "daily":
        next_date = base + timedelta(days=interval)
    elif rule.frequency == "weekdays":
        next_date = _next_weekday(base)
    elif rule.frequency == "weekly":
        next_date = base + timedelta(days=7 * interval)
    elif rule.frequency == "biweekly":
        next_date = base + timedelta(days=14)
    else:
        next_date = _add_months(base, interval)

    end_date = parse_date(rule.end_date)
    if end_date is not None and next_date > end_date:
        return None

    return next_date.isoformat()


def is_recurrence_ended(rule: RecurrenceRule, today: date | None = None) -> bool:
    end_date = parse_date(rule.end_date)
    if end_date is None:
        return False
    return (today or local_today()) > end_date


def get_recurrence_description(rule: RecurrenceRule | dict[str, Any] | None) -> str:
    """Human-readable label, e.g. "Every 2 weeks". Pure and stable."""
    if isinstance(rule, dict):
        rule = RecurrenceRule.from_dict(rule)
    if rule is None:
        return "Recurring"

    interval = rule.interval or 1
    if rule.frequency == "daily":
        text = "Every day" if interval == 1 else f"Every {interval} days"
    elif rule.frequency == "weekdays":
        text = "Every weekday"
    elif rule.frequency == "weekly":
        text = "Every week" if interval == 1 else f"Every {interval} weeks"
    elif rule.frequency == "biweekly":
        text = "Every 2 weeks"
    elif rule.frequency == "monthly":
        text = "Every month" if interval == 1 else f"Every {interval} months"
    else:
        return "Recurring"

    end_date = parse_date(rule.end_date)
    if end_date is not None:
        text += f" until {end_date:%b} {end_date.day}, {end_date.year}"
    return text


def get_recurrence_label(frequency: str) -> str:
    for option in RECURRENCE_OPTIONS:
        if option["value"] == frequency:
            return option["label"]
    return "Custom"


def build_next_occurrence(task: Task, next_due_date: str, skipped: bool = False) -> dict[str, Any]:
    """
    Row for the next occurrence of a recurring task.

    Completing carries the streak forward (+1); skipping resets it.
    recurrence_parent_id always points at the first task of the series.
    """
    streak = 0 if skipped else task.recurring_streak + 1
    return {
        "user_id": task.user_id,
        "title": task.title,
        "status": "active",
        "due_date": next_due_date,
        "due_time": task.due_time,
        "priority": task.priority,
        "category_id": task.category_id,
        "outcome_id": task.outcome_id,
        "commitment_id": task.commitment_id,
        "estimated_minutes": task.estimated_minutes,
        "is_recurring": True,
        "recurrence_rule": task.recurrence_rule.to_dict() if task.recurrence_rule else None,
        "recurrence_parent_id": task.recurrence_parent_id or task.id,
        "recurring_streak": streak,
        "position": task.position,
    }


def add_recurrence_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--frequency", required=True, choices=RECURRENCE_FREQUENCIES)
    parser.add_argument("--interval", type=int, default=1, help="Every N periods")
    parser.add_argument("--due", help="Due date of the finished occurrence (YYYY-MM-DD)")
    parser.add_argument("--end", help="Series end date (YYYY-MM-DD)")


def recurrence_result(args: argparse.Namespace) -> dict[str, Any]:
    """JSON result for the recurrence command line."""
    rule = RecurrenceRule(frequency=args.frequency, interval=args.interval, end_date=args.end)
    next_due = compute_next_occurrence(rule, args.due)
    return {
        "success": True,
        "data": {
            "next_due_date": next_due,
            "ended": next_due is None,
            "description": get_recurrence_description(rule),
        },
    }


def main():
    parser = argparse.ArgumentParser(description="Recurrence Helper - next occurrence of a recurring task")
    add_recurrence_arguments(parser)
    print(json.dumps(recurrence_result(parser.parse_args()), indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
