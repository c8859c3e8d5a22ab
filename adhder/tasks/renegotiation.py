"""
Tool: Renegotiation Engine
Purpose: Shame-safe handling of overdue tasks

An overdue task is not a failure, it is a plan that needs adjusting.
The engine offers four ways out (reschedule, split, park, drop), asks
for a reason from a fixed list, and never guesses the reason itself.
Split suggestions come from plain text and duration heuristics over the
task title - no model calls.

Submission is confirm-then-apply: nothing changes locally until the
API accepts the request.

Usage:
    python -m adhder.tasks.renegotiation --action split --title "write report and send to team" --minutes 90
    python -m adhder.tasks.renegotiation --action suggest --reason low_energy --count 2

Output:
    JSON with suggestions
"""

import argparse
import json
import logging
import re
import sys
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable

from ..errors import ApiError
from . import MAX_TITLE_LENGTH
from .dates import days_overdue, local_today, now_iso, parse_date
from .models import Task

logger = logging.getLogger(__name__)

RENEGOTIATION_ACTIONS = ("reschedule", "split", "park", "drop")

REASON_CODES = (
    "underestimated",
    "interruption",
    "low_energy",
    "dependencies_blocked",
    "changed_priorities",
    "forgot",
    "life_happened",
    "other",
)

REASON_LABELS = {
    "underestimated": "I underestimated the effort",
    "interruption": "Got interrupted or distracted",
    "low_energy": "Didn't have the energy",
    "dependencies_blocked": "Waiting on something else",
    "changed_priorities": "Other things took priority",
    "forgot": "It slipped my mind",
    "life_happened": "Life happened",
    "other": "Something else",
}

ACTION_MESSAGES = {
    "reschedule": "Plans change, and that's okay. Let's find a better time.",
    "split": "Sometimes big tasks need to be broken down. That's smart planning.",
    "park": "It's wise to focus on what matters most right now.",
    "drop": "Letting go of tasks that no longer serve you is a sign of clarity.",
}

PATTERN_THRESHOLD = 3
PATTERN_DAYS = 14
HEAVY_RENEGOTIATION_COUNT = 5

QUICK_RESCHEDULE_TIME = time(9, 0)

MAX_SUBTASKS = 10
DEFAULT_ESTIMATE_MINUTES = 60
MIN_PART_MINUTES = 15


# =============================================================================
# Overdue detection
# =============================================================================


@dataclass
class OverdueTask:
    id: str
    title: str
    due_date: str
    days_overdue: int
    renegotiation_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def needs_renegotiation(task: Task, today: date | None = None, threshold_days: int = 1) -> bool:
    """Active task whose due date is at least `threshold_days` in the past."""
    if task.status != "active" or not task.due_date:
        return False
    if parse_date(task.due_date) is None:
        return False
    return days_overdue(task.due_date, today) >= max(1, threshold_days)


def filter_overdue_tasks(
    tasks: Iterable[Task],
    today: date | None = None,
    threshold_days: int = 1,
) -> list[OverdueTask]:
    """Tasks needing renegotiation, most overdue first."""
    today = today or local_today()
    overdue = [
        OverdueTask(
            id=task.id,
            title=task.title,
            due_date=task.due_date or "",
            days_overdue=days_overdue(task.due_date, today),
            renegotiation_count=task.renegotiation_count,
        )
        for task in tasks
        if needs_renegotiation(task, today, threshold_days)
    ]
    return sorted(overdue, key=lambda t: t.days_overdue, reverse=True)


def format_days_overdue(days: int) -> str:
    if days <= 0:
        return "Due today"
    if days == 1:
        return "Since yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "Over a week ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return "Over a month ago"


# =============================================================================
# Reschedule suggestions
# =============================================================================


@dataclass
class RescheduleOption:
    id: str
    label: str
    due_at: datetime | None = None

    @property
    def due_date(self) -> str | None:
        return self.due_at.date().isoformat() if self.due_at else None


def _at_nine(day: date) -> datetime:
    return datetime.combine(day, QUICK_RESCHEDULE_TIME)


def quick_reschedule_options(now: datetime | None = None) -> list[RescheduleOption]:
    """Tomorrow and next week at 09:00 local, plus a custom pick."""
    today = (now or datetime.now()).date()
    return [
        RescheduleOption("tomorrow", "Tomorrow", _at_nine(today + timedelta(days=1))),
        RescheduleOption("next_week", "Next week", _at_nine(today + timedelta(days=7))),
        RescheduleOption("custom", "Pick a date"),
    ]


def resolve_reschedule_date(
    option_id: str,
    now: datetime | None = None,
    custom_date: str | None = None,
) -> str:
    """
    ISO due date for a quick-pick option.

    Raises:
        ValueError: unknown option, or a custom date that is missing,
            malformed or in the past
    """
    now = now or datetime.now()
    if option_id == "custom":
        chosen = parse_date(custom_date)
        if chosen is None:
            raise ValueError("Invalid date format")
        if chosen < now.date():
            raise ValueError("New due date cannot be in the past")
        return chosen.isoformat()

    for option in quick_reschedule_options(now):
        if option.id == option_id and option.due_date:
            return option.due_date
    raise ValueError(f"Unknown reschedule option: {option_id}")


@dataclass
class RescheduleSuggestion:
    due_date: str
    label: str
    reason: str


def _next_weekend(today: date) -> date:
    # Saturday of this week, or of next week when it is already the weekend
    weekday = today.weekday()
    if weekday >= 5:
        return today + timedelta(days=12 - weekday)
    return today + timedelta(days=5 - weekday)


def suggest_new_due_dates(
    reason: str,
    renegotiation_count: int = 0,
    now: datetime | None = None,
) -> list[RescheduleSuggestion]:
    """Reason-aware date presets. Tomorrow is always first."""
    today = (now or datetime.now()).date()
    suggestions = [
        RescheduleSuggestion((today + timedelta(days=1)).isoformat(), "Tomorrow", "A fresh start"),
    ]

    if reason == "low_energy":
        suggestions.append(
            RescheduleSuggestion(_next_weekend(today).isoformat(), "This weekend", "Time to recharge")
        )
    elif reason == "underestimated":
        suggestions.append(
            RescheduleSuggestion((today + timedelta(days=7)).isoformat(), "Next week", "More time to tackle it")
        )
    elif reason == "dependencies_blocked":
        suggestions.append(
            RescheduleSuggestion((today + timedelta(days=3)).isoformat(), "In 3 days", "Time for blockers to clear")
        )
    else:
        suggestions.append(
            RescheduleSuggestion((today + timedelta(days=7)).isoformat(), "Next week", "A realistic buffer")
        )

    if renegotiation_count >= 2:
        suggestions.append(
            RescheduleSuggestion((today + timedelta(days=14)).isoformat(), "In 2 weeks", "Taking pressure off")
        )

    return suggestions


# =============================================================================
# Split suggestions
# =============================================================================


@dataclass
class SplitSuggestion:
    title: str
    estimated_minutes: int
    due_date: str

    def to_subtask(self) -> dict[str, Any]:
        return {"title": self.title, "estimated_minutes": self.estimated_minutes, "due_date": self.due_date}


# Keyword templates: (keywords, step titles)
SPLIT_TEMPLATES = (
    (("tax",), ("Find income statements and receipts", "Open the tax portal and log in", "Fill in and submit the return")),
    (("email", "reply"), ("Jot down the key points", "Write the draft", "Review and send")),
    (("call", "phone"), ("Find the number and a good time", "Write down what to say", "Make the call")),
    (("clean", "tidy"), ("Clear one surface", "Put things back where they live", "Quick final sweep")),
    (("report", "essay", "write"), ("Outline the main points", "Write the first draft", "Edit and finish")),
)

CONJUNCTIONS = re.compile(r"\s*(?:,|;|\band then\b|\bthen\b|\band\b|&)\s*", re.IGNORECASE)


def _split_on_conjunctions(title: str) -> list[str]:
    parts = [p.strip(" .") for p in CONJUNCTIONS.split(title)]
    return [p[0].upper() + p[1:] for p in parts if len(p) > 1]


def _template_for(title: str) -> tuple[str, ...] | None:
    lowered = title.lower()
    for keywords, steps in SPLIT_TEMPLATES:
        if any(re.search(rf"\b{k}", lowered) for k in keywords):
            return steps
    return None


def generate_split_suggestions(
    title: str,
    estimated_minutes: int | None = None,
    now: datetime | None = None,
) -> list[SplitSuggestion]:
    """
    Break a task into smaller sub-steps.

    Tried in order:
        1. The title already lists several things ("a, b and c")
        2. A keyword template matches ("call", "email", "report", ...)
        3. Duration-based parts: setup/prep + main work, plus a wrap-up
           when the task is two hours or more

    Minutes are split evenly (at least 15 each). Due dates run on
    consecutive days starting tomorrow.
    """
    title = (title or "").strip() or "Task"
    base_minutes = estimated_minutes or DEFAULT_ESTIMATE_MINUTES
    today = (now or datetime.now()).date()

    parts = _split_on_conjunctions(title)
    if len(parts) >= 2:
        titles = parts[:MAX_SUBTASKS]
    else:
        template = _template_for(title)
        if template:
            titles = [f"{step} ({title})" for step in template]
        elif base_minutes >= 120:
            titles = [f"{title} - Part 1 (setup/prep)", f"{title} - Part 2 (main work)", f"{title} - Part 3 (wrap-up)"]
        else:
            titles = [f"{title} - Part 1 (setup/prep)", f"{title} - Part 2 (main work)"]

    minutes = max(MIN_PART_MINUTES, base_minutes // len(titles))
    return [
        SplitSuggestion(
            title=t[:MAX_TITLE_LENGTH],
            estimated_minutes=minutes,
            due_date=(today + timedelta(days=index + 1)).isoformat(),
        )
        for index, t in enumerate(titles)
    ]


# =============================================================================
# Pattern detection
# =============================================================================


@dataclass
class PatternAnalysis:
    has_pattern: bool
    recommended_actions: list[str]
    most_common_reason: str | None = None
    suggestion: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


PATTERN_SUGGESTIONS = {
    "underestimated": "This keeps taking longer than expected. Consider breaking it into smaller tasks.",
    "low_energy": "Energy is often a blocker. Try scheduling this during your peak energy hours.",
    "dependencies_blocked": "This is frequently blocked. Focus on clearing dependencies first.",
    "changed_priorities": "Priorities keep shifting around this task. Consider if it's still important.",
    "interruption": "Interruptions are common. Try time-blocking or finding a quiet space.",
    "forgot": "This slips your mind often. Set up reminders or put it in a more visible place.",
    "life_happened": "Life happens! Consider building more buffer into your planning.",
}


def get_pattern_suggestion(reason: str, renegotiation_count: int) -> str:
    if renegotiation_count >= HEAVY_RENEGOTIATION_COUNT:
        return (
            "This task has been renegotiated many times. Consider if it should be "
            "dropped, delegated, or converted to a recurring habit."
        )
    return PATTERN_SUGGESTIONS.get(reason, "Consider whether this task is still serving you.")


def recommended_actions(reason: str, renegotiation_count: int) -> list[str]:
    if renegotiation_count >= HEAVY_RENEGOTIATION_COUNT:
        return ["drop", "park", "split", "reschedule"]
    return {
        "underestimated": ["split", "reschedule", "park", "drop"],
        "changed_priorities": ["drop", "park", "reschedule", "split"],
        "dependencies_blocked": ["park", "reschedule", "split", "drop"],
    }.get(reason, ["reschedule", "split", "park", "drop"])


def analyze_renegotiation_pattern(
    renegotiation_count: int,
    recent_reasons: Iterable[str],
    threshold: int = PATTERN_THRESHOLD,
) -> PatternAnalysis:
    """Flag a task that keeps getting renegotiated and suggest what to try."""
    if renegotiation_count < threshold:
        return PatternAnalysis(has_pattern=False, recommended_actions=list(RENEGOTIATION_ACTIONS))

    counts = Counter(r for r in recent_reasons if r in REASON_CODES)
    most_common = counts.most_common(1)[0][0] if counts else "other"
    return PatternAnalysis(
        has_pattern=True,
        recommended_actions=recommended_actions(most_common, renegotiation_count),
        most_common_reason=most_common,
        suggestion=get_pattern_suggestion(most_common, renegotiation_count),
    )


# =============================================================================
# Requests and validation
# =============================================================================


@dataclass
class RenegotiationRequest:
    task_id: str
    action: str
    reason_code: str
    reason_text: str | None = None
    new_due_date: str | None = None
    subtasks: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RenegotiationRequest":
        return cls(
            task_id=str(data.get("task_id") or ""),
            action=str(data.get("action") or ""),
            reason_code=str(data.get("reason_code") or ""),
            reason_text=data.get("reason_text") or None,
            new_due_date=data.get("new_due_date") or None,
            subtasks=list(data.get("subtasks") or []),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "task_id": self.task_id,
            "action": self.action,
            "reason_code": self.reason_code,
        }
        if self.reason_text:
            payload["reason_text"] = self.reason_text
        if self.action == "reschedule":
            payload["new_due_date"] = self.new_due_date
        if self.action == "split":
            payload["subtasks"] = self.subtasks
        return payload


def validate_subtasks(subtasks: Any) -> list[str]:
    if not isinstance(subtasks, list) or not subtasks:
        return ["At least one subtask is required"]
    if len(subtasks) > MAX_SUBTASKS:
        return [f"Maximum {MAX_SUBTASKS} subtasks allowed"]
    for subtask in subtasks:
        title = subtask.get("title") if isinstance(subtask, dict) else None
        if not isinstance(title, str) or not title.strip():
            return ["All subtasks must have a title"]
        if len(title) > MAX_TITLE_LENGTH:
            return [f"Subtask titles must be under {MAX_TITLE_LENGTH} characters"]
    return []


def validate_renegotiation_request(request: RenegotiationRequest) -> list[str]:
    """All problems with a request, empty if it can be sent."""
    errors = []

    if not request.task_id:
        errors.append("Task is required")

    if not request.action:
        errors.append("Action is required")
    elif request.action not in RENEGOTIATION_ACTIONS:
        errors.append("Invalid action")

    if not request.reason_code:
        errors.append("Reason is required")
    elif request.reason_code not in REASON_CODES:
        errors.append("Invalid reason")
    elif request.reason_code == "other" and not (request.reason_text or "").strip():
        errors.append("Please describe the reason")

    if request.action == "reschedule":
        if not request.new_due_date:
            errors.append("New due date is required for rescheduling")
        elif parse_date(request.new_due_date) is None:
            errors.append("Invalid date format")

    if request.action == "split":
        errors.extend(validate_subtasks(request.subtasks))

    return errors


# =============================================================================
# Applying a renegotiation (server side)
# =============================================================================


@dataclass
class RenegotiationPlan:
    """Row changes that carry out one renegotiation."""

    task_update: dict[str, Any]
    subtasks: list[dict[str, Any]]
    record: dict[str, Any]


def plan_renegotiation(task: Task, request: RenegotiationRequest, now: str | None = None) -> RenegotiationPlan:
    """
    Translate a validated request into row changes.

    reschedule: back to active with the new date
    park: stays active, due date cleared
    drop: dropped, due date cleared
    split: original marked done (re-scoped), subtasks created
    """
    now = now or now_iso()
    update: dict[str, Any] = {
        "renegotiation_count": task.renegotiation_count + 1,
        "original_due_date": task.original_due_date or task.due_date,
        "updated_at": now,
    }
    subtasks: list[dict[str, Any]] = []

    if request.action == "reschedule":
        update.update(status="active", due_date=request.new_due_date, completed_at=None)
    elif request.action == "park":
        update.update(status="active", due_date=None, completed_at=None)
    elif request.action == "drop":
        update.update(status="dropped", due_date=None, dropped_at=now, completed_at=None)
    elif request.action == "split":
        update.update(status="done", completed_at=now)
        subtasks = [
            {
                "user_id": task.user_id,
                "title": st["title"].strip(),
                "status": "active",
                "due_date": st.get("due_date") or None,
                "estimated_minutes": st.get("estimated_minutes") or 30,
                "priority": task.priority,
                "category_id": task.category_id,
                "outcome_id": task.outcome_id,
                "commitment_id": task.commitment_id,
                "parent_task_id": task.id,
            }
            for st in request.subtasks
        ]
    else:
        raise ValueError(f"Invalid action: {request.action}")

    record = {
        "task_id": task.id,
        "user_id": task.user_id,
        "action": request.action,
        "from_due_date": task.due_date,
        "to_due_date": update.get("due_date", task.due_date),
        "reason_code": request.reason_code,
        "reason_text": request.reason_text,
        "split_into_task_ids": None,
    }
    return RenegotiationPlan(task_update=update, subtasks=subtasks, record=record)


# =============================================================================
# Submitting (client side)
# =============================================================================


@dataclass
class SubmissionResult:
    ok: bool
    result: dict[str, Any] | None = None
    error: str | None = None


async def submit_renegotiation(api: Any, request: RenegotiationRequest) -> SubmissionResult:
    """
    Validate and send a renegotiation.

    Validation problems are reported without calling the API. API
    failures come back as a user-visible message; local task state is
    never modified here.
    """
    errors = validate_renegotiation_request(request)
    if errors:
        return SubmissionResult(ok=False, error=", ".join(errors))

    try:
        result = await api.renegotiate(request.to_payload())
    except ApiError as e:
        return SubmissionResult(ok=False, error=e.message or "Failed to renegotiate task")
    except Exception as e:
        logger.warning(f"Renegotiation of {request.task_id} failed: {e}")
        return SubmissionResult(ok=False, error="Failed to renegotiate task")

    return SubmissionResult(ok=True, result=result)


def split_result(title: str, estimated_minutes: int | None = None) -> dict[str, Any]:
    """JSON result for the split command line."""
    return {"success": True, "data": [asdict(s) for s in generate_split_suggestions(title, estimated_minutes)]}


def main():
    parser = argparse.ArgumentParser(description="Renegotiation Engine - suggestions for overdue tasks")
    parser.add_argument("--action", required=True, choices=["split", "suggest", "options"])
    parser.add_argument("--title", help="Task title (for split)")
    parser.add_argument("--minutes", type=int, help="Estimated minutes (for split)")
    parser.add_argument("--reason", choices=REASON_CODES, default="other", help="Reason code (for suggest)")
    parser.add_argument("--count", type=int, default=0, help="Times already renegotiated")

    args = parser.parse_args()

    if args.action == "split":
        if not args.title:
            print(json.dumps({"success": False, "error": "--title required"}))
            sys.exit(1)
        result = split_result(args.title, args.minutes)
    elif args.action == "suggest":
        result = {"success": True, "data": [asdict(s) for s in suggest_new_due_dates(args.reason, args.count)]}
    else:
        result = {
            "success": True,
            "data": {
                "reschedule": [
                    {"id": o.id, "label": o.label, "due_date": o.due_date} for o in quick_reschedule_options()
                ],
                "reasons": REASON_LABELS,
                "actions": ACTION_MESSAGES,
            },
        }

    print(json.dumps(result, indent=2))
    sys.exit(0)


if __name__ == "__main__":
    main()
