"""Prioritize stage."""

from __future__ import annotations

import logging

from task_pipeline.llm.prompts import prioritize_prompt
from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.llm.schemas import PRIORITIZED_TASK, PrioritizedTask
from task_pipeline.models import Prioritization, TaskRecord
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


class PrioritizeStage:
    name = "prioritize"
    label = "Assessing priority"

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
            running_message=lambda task: f"Assessing priority: {task.title}",
            process=self._prioritize,
            failure_label="Prioritization",
        )
        state.set(StateKeys.TASKS, tasks)
        logger.info("stage=prioritize event=done succeeded=%d total=%d", succeeded, len(tasks))
        return summary(succeeded, len(tasks))

    def _prioritize(self, task: TaskRecord) -> RecordOutcome:
        parsed = self.provider.request_structured(
            prioritize_prompt(task), PrioritizedTask, PRIORITIZED_TASK
        ).parsed
        task.priority = Prioritization(priority=parsed.priority, score=parsed.score)
        task.advance_to("prioritized")
        return (
            f"Priority: {parsed.priority} (score {parsed.score:g}/10)",
            {"priority": parsed.priority, "score": parsed.score},
        )
