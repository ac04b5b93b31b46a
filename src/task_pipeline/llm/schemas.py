"""Strict Pydantic schemas for structured provider output."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class ParsedTask(StrictModel):
    title: str = Field(min_length=1, description="Concise, actionable task title")
    domain: str = Field(
        description="Technical domain (e.g. frontend, backend, infrastructure, design)"
    )
    urls: list[str] = Field(default_factory=list, description="URLs mentioned in the task")
    ambiguities: list[str] = Field(
        default_factory=list, description="Unclear aspects of the task"
    )


class ParsedTaskList(StrictModel):
    tasks: list[ParsedTask] = Field(
        min_length=1, description="Parsed tasks extracted from the input"
    )


class CategorizedTask(StrictModel):
    category: str = Field(description="Primary category, e.g. Frontend, Backend, DevOps")
    subcategory: str = Field(description="More specific subcategory")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence score 0-1")
    reasoning: str = Field(description="Brief explanation for the categorization")


class PrioritizedTask(StrictModel):
    priority: Literal["critical", "high", "medium", "low"]
    score: float = Field(ge=1, le=10, description="Numeric priority score 1-10")


class ActionStepOutput(StrictModel):
    order: int = Field(gt=0, description="Step order number")
    action: str = Field(description="Concise action title")


class ActionPlanOutput(StrictModel):
    steps: list[ActionStepOutput] = Field(min_length=1, description="Ordered action items")
    complexity: Literal["trivial", "simple", "moderate", "complex", "very_complex"]
    summary: str = Field(description="Brief summary of the action plan")


PARSED_TASK_LIST = "parsed_task_list"
CATEGORIZED_TASK = "categorized_task"
PRIORITIZED_TASK = "prioritized_task"
ACTION_PLAN = "action_plan"
