"""Categorize stage: one provider call per task record."""

from __future__ import annotations

import logging

from task_pipeline.llm.prompts import categorize_prompt
from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.llm.schemas import CATEGORIZED_TASK, CategorizedTask
from task_pipeline.models import Categorization, TaskRecord
from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.stage import DEFAULT_MAX_RETRIES
from task_pipeline.pipeline.stages.common import (
    RecordOutcome,
    require_tasks,
    run_per_task,
    summary,
)
from task_pipeline.pipeline.state import StateKeys, StateStore

logger = logging.getLogger(__name__)


class CategorizeStage:
    name = "categorize"
    label = "Categorizing tasks"

    def __init__(
        self, provider: ReasoningProvider, *, max_retries: int = DEFAULT_MAX_RETRIES
    ) -> None:
        self.provider = provider
        self.max_retries = max_retries

    def execute(self, state: StateStore, emit: EventSink) -> str:
        tasks = require_tasks(state)
        succeeded = run_per_task(
            tasks,
            stage_name=self.name,
            emit=emit,
            running_message=lambda task: f"Categorizing: {task.title}",
            process=self._categorize,
            failure_label="Categorization",
        )
        state.set(StateKeys.TASKS, tasks)
        logger.info("stage=categorize event=done succeeded=%d total=%d", succeeded, len(tasks))
        return summary(succeeded, len(tasks))

    def _categorize(self, task: TaskRecord) -> RecordOutcome:
        parsed = self.provider.request_structured(
            categorize_prompt(task), CategorizedTask, CATEGORIZED_TASK
        ).parsed
        task.category = Categorization.model_validate(parsed.model_dump())
        task.advance_to("categorized")
        return (
            f"Categorized as {parsed.category} ({round(parsed.confidence * 100)}% confidence)",
            {
                "category": parsed.category,
                "subcategory": parsed.subcategory,
                "confidence": parsed.confidence,
            },
        )
