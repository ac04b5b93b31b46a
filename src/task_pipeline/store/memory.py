"""In-memory store for tests and throwaway runs."""

from __future__ import annotations

import threading
from typing import Any

from task_pipeline.models import TaskPage, TaskRecord
from task_pipeline.store.base import apply_patch, build_page, matches_filters, page_offset


class InMemoryTaskStore:
    """Dict-backed store; records are copied in and out so callers never share state."""

    def __init__(self) -> None:
        self._tasks: dict[str, TaskRecord] = {}
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def save(self, record: TaskRecord) -> TaskRecord:
        stored = record.model_copy(deep=True)
        with self._lock:
            self._tasks[stored.id] = stored
        return stored.model_copy(deep=True)

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            record = self._tasks.get(task_id)
        return record.model_copy(deep=True) if record is not None else None

    def list(
        self,
        page: int = 1,
        page_size: int = 10,
        category: str | None = None,
        priority: str | None = None,
    ) -> TaskPage:
        offset = page_offset(page, page_size)
        with self._lock:
            matching = [
                record
                for record in self._tasks.values()
                if matches_filters(record, category, priority)
            ]
        matching.sort(key=lambda record: record.created_at, reverse=True)
        items = [record.model_copy(deep=True) for record in matching[offset : offset + page_size]]
        return build_page(items, total=len(matching), page=page, page_size=page_size)

    def update(self, task_id: str, patch: dict[str, Any]) -> TaskRecord:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None:
                raise KeyError(f"Task {task_id} does not exist")
            updated = apply_patch(current, patch)
            self._tasks[task_id] = updated
        return updated.model_copy(deep=True)

    def delete(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None
