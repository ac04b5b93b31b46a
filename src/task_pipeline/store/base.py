"""Store interface and the list/patch semantics shared by every backend."""

from __future__ import annotations

import math
from typing import Any, Protocol

from task_pipeline.models import TaskPage, TaskRecord, next_timestamp

# fields a patch may overwrite; id and created_at are fixed at creation
PATCHABLE_FIELDS = frozenset(
    {
        "pipeline_stage",
        "workflow_status",
        "title",
        "description",
        "domain",
        "urls",
        "ambiguities",
        "category",
        "priority",
        "action_plan",
        "error",
        "events",
    }
)


class TaskStore(Protocol):
    def migrate(self) -> None: ...

    def save(self, record: TaskRecord) -> TaskRecord: ...

    def get(self, task_id: str) -> TaskRecord | None: ...

    def list(
        self,
        page: int = 1,
        page_size: int = 10,
        category: str | None = None,
        priority: str | None = None,
    ) -> TaskPage: ...

    def update(self, task_id: str, patch: dict[str, Any]) -> TaskRecord: ...

    def delete(self, task_id: str) -> bool: ...


def apply_patch(record: TaskRecord, patch: dict[str, Any]) -> TaskRecord:
    """Overwrite patched fields and refresh ``updated_at``; ``id`` never changes."""
    unknown = set(patch) - PATCHABLE_FIELDS - {"id", "created_at", "updated_at"}
    if unknown:
        raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

    data = record.model_dump()
    for key, value in patch.items():
        if key in PATCHABLE_FIELDS:
            data[key] = value
    data["updated_at"] = next_timestamp(record.updated_at)
    return TaskRecord.model_validate(data)


def category_key(record: TaskRecord) -> str | None:
    return record.category.category.lower() if record.category is not None else None


def priority_key(record: TaskRecord) -> str | None:
    return record.priority.priority.lower() if record.priority is not None else None


def matches_filters(
    record: TaskRecord,
    category: str | None,
    priority: str | None,
) -> bool:
    if category and category_key(record) != category.lower():
        return False
    if priority and priority_key(record) != priority.lower():
        return False
    return True


def page_offset(page: int, page_size: int) -> int:
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    return (page - 1) * page_size


def build_page(items: list[TaskRecord], *, total: int, page: int, page_size: int) -> TaskPage:
    return TaskPage(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=max(1, math.ceil(total / page_size)),
    )
