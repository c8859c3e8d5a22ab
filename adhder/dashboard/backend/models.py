"""
Pydantic models for Task API request/response types.

Request bodies are validated here; business rules that need the stored
row (status transitions, recurrence, conflicts) live in the routes.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...tasks import MAX_TITLE_LENGTH
from ...tasks.dates import parse_date


# =============================================================================
# Enums
# =============================================================================


class TaskStatus(str, Enum):
    """Task lifecycle status. Tasks are never hard-deleted through status."""

    ACTIVE = "active"
    DONE = "done"
    DROPPED = "dropped"
    SKIPPED = "skipped"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class OutcomeHorizon(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class OutcomeStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ARCHIVED = "archived"


def _check_date(value: str | None) -> str | None:
    if value in (None, ""):
        return None
    day = parse_date(value)
    if day is None:
        raise ValueError("Invalid date format")
    return day.isoformat()


# =============================================================================
# Task Models
# =============================================================================


class RecurrenceRuleModel(BaseModel):
    frequency: Frequency
    interval: int = Field(default=1, ge=1, le=365, description="Every N periods")
    end_date: str | None = Field(None, description="Last date an occurrence may fall on")

    @field_validator("end_date")
    @classmethod
    def _end_date(cls, value: str | None) -> str | None:
        return _check_date(value)


class TaskCreate(BaseModel):
    """Body of POST /api/tasks."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., description="Task title")
    due_date: str | None = None
    due_time: str | None = None
    priority: Priority | None = None
    category_id: str | None = None
    position: int | None = None
    is_recurring: bool = False
    recurrence_rule: RecurrenceRuleModel | None = None
    estimated_minutes: int | None = Field(None, ge=1, le=24 * 60)
    outcome_id: str | None = None
    commitment_id: str | None = None

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        if len(value) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title must be {MAX_TITLE_LENGTH} characters or fewer")
        return value

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, value: str | None) -> str | None:
        return _check_date(value)


class TaskUpdate(BaseModel):
    """Body of PATCH /api/tasks/{id}. Only fields that are sent are applied."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    status: TaskStatus | None = None
    due_date: str | None = None
    due_time: str | None = None
    priority: Priority | None = None
    category_id: str | None = None
    position: int | None = None
    is_recurring: bool | None = None
    recurrence_rule: RecurrenceRuleModel | None = None
    estimated_minutes: int | None = Field(None, ge=1, le=24 * 60)
    outcome_id: str | None = None
    commitment_id: str | None = None

    @field_validator("title")
    @classmethod
    def _title(cls, value: str | None) -> str | None:
        if value is None:
            raise ValueError("Title cannot be empty")
        value = value.strip()
        if not value:
            raise ValueError("Title cannot be empty")
        if len(value) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title must be {MAX_TITLE_LENGTH} characters or fewer")
        return value

    @field_validator("due_date")
    @classmethod
    def _due_date(cls, value: str | None) -> str | None:
        return _check_date(value)


class ReorderItem(BaseModel):
    id: str
    position: int


class ReorderRequest(BaseModel):
    tasks: list[ReorderItem] = Field(..., min_length=1, max_length=500)


class BulkRelinkRequest(BaseModel):
    task_ids: list[str] = Field(..., min_length=1, max_length=100)
    target_outcome_id: str | None = None
    target_commitment_id: str | None = None


# =============================================================================
# Renegotiation Models
# =============================================================================


class RenegotiationCreate(BaseModel):
    """
    Body of POST /api/renegotiations.

    Fields are loose strings here; the renegotiation engine reports
    the specific problems so the client sees the same messages it
    would get from local validation.
    """

    task_id: str = ""
    action: str = ""
    reason_code: str = ""
    reason_text: str | None = None
    new_due_date: str | None = None
    subtasks: list[dict[str, Any]] | None = None


class QuickRescheduleCreate(BaseModel):
    """
    Body of POST /api/renegotiations/quick-reschedule.

    Either new_due_date or a quick-pick option ("tomorrow", "next_week")
    names the new date. An unknown or missing reason_code becomes "other".
    """

    task_id: str = ""
    new_due_date: str | None = None
    option: str | None = None
    reason_code: str | None = None


# =============================================================================
# Outcome / Commitment / Category Models
# =============================================================================


class OutcomeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(None, max_length=2000)
    horizon: OutcomeHorizon
    priority_rank: int = 0


class OutcomeUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str | None = Field(None, max_length=2000)
    horizon: OutcomeHorizon | None = None
    status: OutcomeStatus | None = None
    priority_rank: int | None = None


class CommitmentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    outcome_id: str | None = None
    description: str | None = Field(None, max_length=2000)


class CommitmentUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    outcome_id: str | None = None
    description: str | None = Field(None, max_length=2000)
    status: OutcomeStatus | None = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#8b8ba7", pattern=r"^#[0-9a-fA-F]{6}$")
    icon: str | None = Field(None, max_length=8)


# =============================================================================
# Response Models
# =============================================================================


class HealthCheck(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall health status")
    version: str
    timestamp: datetime
    services: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: str
    code: str
