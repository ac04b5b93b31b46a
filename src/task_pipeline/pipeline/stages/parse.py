"""Parse stage: raw text into the initial task record list."""

from __future__ import annotations

import logging

from task_pipeline.llm.prompts import parse_prompt
from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.llm.schemas import PARSED_TASK_LIST, ParsedTaskList
from task_pipeline.models import PIPELINE_STAGE_NAME, ProgressEvent, TaskRecord, utc_now
from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.stage import DEFAULT_MAX_RETRIES
from task_pipeline.pipeline.state import StateKeys, StateStore

logger = logging.getLogger(__name__)


class ParseStage:
    name = "parse"
    label = "Parsing tasks"

    def __init__(
        self, provider: ReasoningProvider, *, max_retries: int = DEFAULT_MAX_RETRIES
    ) -> None:
        self.provider = provider
        self.max_retries = max_retries

    def execute(self, state: StateStore, emit: EventSink) -> str:
        raw_input = state.get(StateKeys.RAW_INPUT)
        if not isinstance(raw_input, str) or not raw_input.strip():
            raise RuntimeError("No raw input found in state")

        response = self.provider.request_structured(
            parse_prompt(raw_input), ParsedTaskList, PARSED_TASK_LIST
        )

        now = utc_now()
        tasks = [
            TaskRecord(
                title=item.title,
                domain=item.domain,
                urls=list(item.urls),
                ambiguities=list(item.ambiguities),
                created_at=now,
                updated_at=now,
            )
            for item in response.parsed.tasks
        ]
        state.set(StateKeys.TASKS, tasks)

        task_ids = [task.id for task in tasks]
        emit(
            ProgressEvent(
                task_id=str(state.get(StateKeys.RUN_ID, PIPELINE_STAGE_NAME)),
                stage_name=self.name,
                status="running",
                message=f"Parsed {len(tasks)} task(s)",
                attempt=1,
                data={"task_ids": task_ids, "task_count": len(tasks)},
            )
        )
        logger.info("stage=parse event=parsed task_count=%d", len(tasks))
        return f"Parsed {len(tasks)} task(s) from input"
