"""Action-Plan stage with an optional tool-use pass for records that cite URLs."""

from __future__ import annotations

import logging

from task_pipeline.llm.prompts import action_plan_prompt, tool_pass_prompt
from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.llm.schemas import ACTION_PLAN, ActionPlanOutput
from task_pipeline.models import ActionPlan, TaskRecord
from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.stage import DEFAULT_MAX_RETRIES
from task_pipeline.pipeline.stages.common import (
    RecordOutcome,
    require_tasks,
    run_per_task,
    summary,
    task_event,
)
from task_pipeline.pipeline.state import StateKeys, StateStore
from task_pipeline.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ActionPlanStage:
    name = "action-plan"
    label = "Generating action plans"

    def __init__(
        self,
        provider: ReasoningProvider,
        tool_registry: ToolRegistry | None = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.provider = provider
        self.tool_registry = tool_registry
        self.max_retries = max_retries

    def execute(self, state: StateStore, emit: EventSink) -> str:
        tasks = require_tasks(state)
        succeeded = run_per_task(
            tasks,
            stage_name=self.name,
            emit=emit,
            running_message=lambda task: f"Generating action plan: {task.title}",
            process=lambda task: self._plan(task, emit),
            failure_label="Action plan",
        )
        state.set(StateKeys.TASKS, tasks)
        logger.info("stage=action-plan event=done succeeded=%d total=%d", succeeded, len(tasks))
        return summary(succeeded, len(tasks))

    def _plan(self, task: TaskRecord, emit: EventSink) -> RecordOutcome:
        tool_context = ""
        if self.tool_registry is not None and task.urls:
            tool_context = self._tool_pass(task, emit)

        parsed = self.provider.request_structured(
            action_plan_prompt(task, tool_context=tool_context), ActionPlanOutput, ACTION_PLAN
        ).parsed
        task.action_plan = ActionPlan.model_validate(parsed.model_dump())
        task.advance_to("completed")
        return (
            f"Action plan: {len(parsed.steps)} steps, complexity: {parsed.complexity}",
            {"step_count": len(parsed.steps), "complexity": parsed.complexity},
        )

    def _tool_pass(self, task: TaskRecord, emit: EventSink) -> str:
        """Let the provider pick tools for the record's URLs; failures yield no context."""
        registry = self.tool_registry
        if registry is None or len(registry) == 0:
            return ""

        try:
            emit(
                task_event(
                    task,
                    stage_name=self.name,
                    status="running",
                    message="Checking external resources...",
                )
            )
            response = self.provider.request_with_tools(
                tool_pass_prompt(task), registry.definitions()
            )
            results: list[str] = []
            for call in response.tool_calls:
                emit(
                    task_event(
                        task,
                        stage_name=self.name,
                        status="running",
                        message=f"Using tool: {call.name}",
                        data={"tool": call.name},
                    )
                )
                results.append(f"{call.name}: {registry.execute(call.name, call.input)}")
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "stage=action-plan event=tool_pass_failed task_id=%s error=%s", task.id, exc
            )
            return ""
        return "\n".join(results)
