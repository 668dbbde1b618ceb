"""Pydantic schemas for the commit planner, the engine and the CLI.

These schemas define the contracts between:
- configuration files / command-line options and the planner
- the planner and the execution engine
- the engine and the version-control backend
"""

from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Callable

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


# Invoked after each plan entry's outcome is known: (attempted, total, message)
ProgressCallback = Callable[[int, int, str], None]

MAX_COMMITS_PER_DAY = 50

Weekday = Annotated[int, Field(ge=0, le=6)]


# =============================================================================
# Enums
# =============================================================================

class RunOutcome(str, Enum):
    """Overall outcome of a generation run."""
    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


# =============================================================================
# Configuration Schemas
# =============================================================================

class CommitsPerDay(BaseModel):
    """Inclusive bounds for the number of commits drawn per active day."""
    model_config = ConfigDict(frozen=True)

    min: int = Field(default=1, ge=0, le=MAX_COMMITS_PER_DAY)
    max: int = Field(default=5, ge=0, le=MAX_COMMITS_PER_DAY)

    @model_validator(mode="after")
    def _check_bounds(self) -> CommitsPerDay:
        if self.min > self.max:
            raise ValueError(f"commits_per_day.min ({self.min}) must be <= max ({self.max})")
        return self


class TimeWindow(BaseModel):
    """Time-of-day window (minute resolution) in which commits are placed."""
    model_config = ConfigDict(frozen=True)

    start: time = Field(default=time(9, 0))
    end: time = Field(default=time(18, 0))

    @field_validator("start", "end", mode="before")
    @classmethod
    def _minutes_to_time(cls, value: object) -> object:
        # YAML 1.1 reads unquoted 18:00 as the sexagesimal integer 1080
        if isinstance(value, int) and not isinstance(value, bool):
            if not 0 <= value < 24 * 60:
                raise ValueError(f"minute of day out of range: {value}")
            return time(value // 60, value % 60)
        return value

    @field_validator("start", "end", mode="after")
    @classmethod
    def _truncate_to_minute(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0)

    @model_validator(mode="after")
    def _check_order(self) -> TimeWindow:
        if self.start > self.end:
            raise ValueError(
                f"time_window.start ({self.start:%H:%M}) must be <= end ({self.end:%H:%M})"
            )
        return self

    @field_serializer("start", "end")
    def _serialize_time(self, value: time) -> str:
        return value.strftime("%H:%M")

    @property
    def start_minute(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minute(self) -> int:
        return self.end.hour * 60 + self.end.minute


class GenerationConfig(BaseModel):
    """Inputs to planning and execution. Never mutated once built."""
    model_config = ConfigDict(frozen=True)

    start_date: date = Field(..., description="First calendar day (inclusive)")
    end_date: date = Field(..., description="Last calendar day (inclusive)")
    commits_per_day: CommitsPerDay = Field(default_factory=CommitsPerDay)
    message_template: str = Field(default="auto commit: {{date}}", description="Message with {{placeholders}}")
    skip_weekdays: list[Weekday] = Field(default_factory=list, description="0 = Sunday ... 6 = Saturday")
    skip_probability: float = Field(default=0.0, ge=0.0, le=1.0, description="Per-day chance to skip")
    time_window: TimeWindow = Field(default_factory=TimeWindow)
    target_path: str = Field(default=".backdate-log", min_length=1, description="Repo-relative file to append to")
    auto_push: bool = Field(default=False)
    branch: str | None = Field(default=None, description="Branch to push (defaults to current)")

    @field_validator("skip_weekdays", mode="after")
    @classmethod
    def _normalize_weekdays(cls, value: list[int]) -> list[int]:
        return sorted(set(value))


# =============================================================================
# Plan Schemas
# =============================================================================

class PlanEntry(BaseModel):
    """One intended commit, fully specified before any repository mutation."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    sequence_index: int = Field(..., ge=0)
    message: str

    def sort_key(self) -> tuple[datetime, int]:
        return (self.timestamp, self.sequence_index)


class CommitEstimate(BaseModel):
    """Closed-form commit count preview (no sampling)."""
    min: int
    expected: int
    max: int


class DateStats(BaseModel):
    """Calendar breakdown of a configured range."""
    total_days: int
    weekdays: int
    weekends: int
    active_days: int
    expected_active_days: float


# =============================================================================
# Result Schemas
# =============================================================================

class GenerationResult(BaseModel):
    """Produced once per generation run."""
    model_config = ConfigDict(frozen=True)

    total_planned: int
    applied_count: int
    duration_seconds: float
    start_date: date
    end_date: date
    errors: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    pushed: bool = False

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def outcome(self) -> RunOutcome:
        if not self.errors:
            return RunOutcome.SUCCESS
        if self.applied_count > 0:
            return RunOutcome.COMPLETED_WITH_ERRORS
        return RunOutcome.FAILED

    @property
    def commits_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.applied_count / self.duration_seconds


class PreflightResult(BaseModel):
    """Result of the checks run before a generation."""
    passed: bool = Field(..., description="Whether generation may proceed")
    checks: dict[str, bool] = Field(default_factory=dict, description="Individual check results")
    errors: list[str] = Field(default_factory=list, description="Blocking problems")
    warnings: list[str] = Field(default_factory=list, description="Non-blocking concerns")


# =============================================================================
# Repository Schemas
# =============================================================================

class CommitInfo(BaseModel):
    """A commit as reported by the backend's history queries."""
    id: str
    timestamp: datetime
    message: str


class RepoStatus(BaseModel):
    """Snapshot of the repository used by preflight and `status`."""
    is_repo: bool
    current_branch: str | None = None
    has_uncommitted_changes: bool = False
    remote_url: str | None = None
    is_connected: bool = False
    commit_count: int = 0
