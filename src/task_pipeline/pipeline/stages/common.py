"""Per-record loop shared by the stages that enrich existing task records."""

from __future__ import annotations

import logging
from typing import Any, Callable

from task_pipeline.models import EventStatus, ProgressEvent, TaskRecord
from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.state import StateKeys, StateStore

logger = logging.getLogger(__name__)

# (completed message, completed event data)
RecordOutcome = tuple[str, dict[str, Any]]


def require_tasks(state: StateStore) -> list[TaskRecord]:
    tasks = state.get(StateKeys.TASKS)
    if not tasks:
        raise RuntimeError("No tasks found in state")
    return list(tasks)


def task_event(
    record: TaskRecord,
    *,
    stage_name: str,
    status: EventStatus,
    message: str,
    data: dict[str, Any] | None = None,
) -> ProgressEvent:
    """Build a task-scoped event and append it to the record's own log."""
    event = ProgressEvent(
        task_id=record.id,
        stage_name=stage_name,
        status=status,
        message=message,
        attempt=1,
        data=data,
    )
    record.record_event(event)
    return event


def run_per_task(
    tasks: list[TaskRecord],
    *,
    stage_name: str,
    emit: EventSink,
    running_message: Callable[[TaskRecord], str],
    process: Callable[[TaskRecord], RecordOutcome],
    failure_label: str,
) -> int:
    """Process every non-failed record once; return how many succeeded.

    A record whose ``process`` call raises is marked failed and the loop moves on.
    """
    succeeded = 0
    for record in tasks:
        if record.is_failed:
            continue

        logger.debug("stage=%s event=task_start task_id=%s", stage_name, record.id)
        emit(
            task_event(
                record,
                stage_name=stage_name,
                status="running",
                message=running_message(record),
            )
        )

        try:
            message, data = process(record)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "stage=%s event=task_failed task_id=%s error=%s", stage_name, record.id, exc
            )
            record.mark_failed(f"{failure_label} failed: {exc}")
            emit(
                task_event(
                    record,
                    stage_name=stage_name,
                    status="failed",
                    message=f"{failure_label} failed: {exc}",
                )
            )
            continue

        succeeded += 1
        emit(
            task_event(
                record,
                stage_name=stage_name,
                status="completed",
                message=message,
                data=data,
            )
        )
    return succeeded


def summary(succeeded: int, total: int) -> str:
    return f"{succeeded}/{total} succeeded."
