"""Domain models shared by the pipeline, stores and API."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

PipelineStage = Literal["created", "categorized", "prioritized", "completed", "failed"]
WorkflowStatus = Literal["backlog", "in-progress", "completed"]
EventStatus = Literal["pending", "running", "retrying", "completed", "failed"]
PriorityLevel = Literal["critical", "high", "medium", "low"]
Complexity = Literal["trivial", "simple", "moderate", "complex", "very_complex"]

PIPELINE_STAGE_ORDER: tuple[str, ...] = ("created", "categorized", "prioritized", "completed")
WORKFLOW_STATUSES: tuple[str, ...] = ("backlog", "in-progress", "completed")

# stage_name used for failures raised outside any registered stage
PIPELINE_STAGE_NAME = "pipeline"


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_task_id() -> str:
    return str(uuid4())


def new_run_id() -> str:
    return f"pipeline-{uuid4().hex}"


class Categorization(BaseModel):
    category: str
    subcategory: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str


class Prioritization(BaseModel):
    priority: PriorityLevel
    score: float = Field(ge=1, le=10)


class ActionStep(BaseModel):
    order: int = Field(gt=0)
    action: str


class ActionPlan(BaseModel):
    steps: list[ActionStep] = Field(min_length=1)
    complexity: Complexity
    summary: str


class ProgressEvent(BaseModel):
    """Immutable notification of a stage or record status change."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    stage_name: str
    status: EventStatus
    message: str
    attempt: int = Field(default=1, ge=1)
    data: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class TaskRecord(BaseModel):
    """The analyzable unit produced by Parse and enriched by later stages."""

    id: str = Field(default_factory=new_task_id)
    pipeline_stage: PipelineStage = "created"
    workflow_status: WorkflowStatus = "backlog"
    title: str
    description: str = ""
    domain: str = ""
    urls: list[str] = Field(default_factory=list)
    ambiguities: list[str] = Field(default_factory=list)
    category: Categorization | None = None
    priority: Prioritization | None = None
    action_plan: ActionPlan | None = None
    error: str | None = None
    events: list[ProgressEvent] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_failed(self) -> bool:
        return self.pipeline_stage == "failed"

    def touch(self) -> None:
        self.updated_at = next_timestamp(self.updated_at)

    def advance_to(self, stage: PipelineStage) -> None:
        if self.is_failed:
            raise ValueError(f"Task {self.id} has failed and cannot advance to {stage}")
        if stage == "failed":
            raise ValueError("Use mark_failed() to fail a task")
        # never regress; re-processing a record keeps its furthest stage
        if PIPELINE_STAGE_ORDER.index(stage) > PIPELINE_STAGE_ORDER.index(self.pipeline_stage):
            self.pipeline_stage = stage
        self.touch()

    def mark_failed(self, error: str) -> None:
        self.pipeline_stage = "failed"
        self.error = error
        self.touch()

    def record_event(self, event: ProgressEvent) -> None:
        self.events.append(event)


class TaskPage(BaseModel):
    items: list[TaskRecord]
    total: int
    page: int
    page_size: int
    total_pages: int


def next_timestamp(previous: datetime | None) -> datetime:
    """Current UTC time, nudged forward so it is strictly after ``previous``."""
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now
