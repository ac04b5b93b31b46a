"""Request bodies for the HTTP surface and the partial-update merge."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from task_pipeline.models import (
    ActionPlan,
    ActionStep,
    Categorization,
    Complexity,
    PriorityLevel,
    Prioritization,
    TaskRecord,
    WorkflowStatus,
)


class PatchError(ValueError):
    pass


class CreateTasksRequest(BaseModel):
    tasks: list[str] = Field(min_length=1)

    @field_validator("tasks")
    @classmethod
    def _reject_blank(cls, value: list[str]) -> list[str]:
        if any(not item.strip() for item in value):
            raise ValueError("task entries must not be blank")
        return value

    def raw_input(self) -> str:
        return "\n".join(item.strip() for item in self.tasks)


class CategorizationPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str | None = None
    subcategory: str | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    reasoning: str | None = None


class PrioritizationPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    priority: PriorityLevel | None = None
    score: float | None = Field(default=None, ge=1, le=10)


class ActionPlanPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    steps: list[ActionStep] | None = Field(default=None, min_length=1)
    complexity: Complexity | None = None
    summary: str | None = None


class TaskPatchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    workflow_status: WorkflowStatus | None = None
    description: str | None = None
    domain: str | None = None
    category: CategorizationPatch | None = None
    priority: PrioritizationPatch | None = None
    action_plan: ActionPlanPatch | None = None


_NESTED: dict[str, type[BaseModel]] = {
    "category": Categorization,
    "priority": Prioritization,
    "action_plan": ActionPlan,
}


def merge_patch(record: TaskRecord, request: TaskPatchRequest) -> dict[str, Any]:
    """Turn a partial request into a field-level patch for the store.

    Nested objects are merged onto the record's current value; a nested patch
    against an absent value must carry every required field.
    """
    patch: dict[str, Any] = {}
    for key, value in request.model_dump(exclude_unset=True).items():
        if key not in _NESTED:
            if value is None:
                raise PatchError(f"Field '{key}' cannot be null")
            patch[key] = value
            continue

        if value is None:
            patch[key] = None
            continue

        model = _NESTED[key]
        current = getattr(record, key)
        partial = {name: item for name, item in value.items() if item is not None}
        merged = {**current.model_dump(), **partial} if current is not None else partial
        try:
            patch[key] = model.model_validate(merged)
        except ValidationError as exc:
            missing = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
            raise PatchError(
                f"Incomplete {key} patch; missing or invalid: {', '.join(missing)}"
            ) from exc
    return patch
