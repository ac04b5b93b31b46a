"""Shared state container passed through one pipeline run."""

from __future__ import annotations

from typing import Any, TypeVar

T = TypeVar("T")


class StateKeys:
    RAW_INPUT = "raw_input"
    # list[TaskRecord], replaced wholesale by each stage
    TASKS = "tasks"
    RUN_ID = "run_id"
    # stage name -> pending | completed | failed, written when the run ends
    STAGE_STATUS = "stage_status"
    FAILED_STAGE = "failed_stage"


class StateStore:
    """Typed key-value holder owned by exactly one run."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: T | None = None) -> Any | T | None:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def has(self, key: str) -> bool:
        return key in self._values

    def snapshot(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values
