"""Standard pipeline: Parse, Categorize, Prioritize and Action-Plan."""

from __future__ import annotations

from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.pipeline.machine import StateMachine
from task_pipeline.pipeline.stage import DEFAULT_MAX_RETRIES
from task_pipeline.pipeline.stages import (
    ActionPlanStage,
    CategorizeStage,
    ParseStage,
    PrioritizeStage,
)
from task_pipeline.tools.registry import ToolRegistry


def build_task_pipeline(
    provider: ReasoningProvider,
    tool_registry: ToolRegistry | None = None,
    *,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> StateMachine:
    return (
        StateMachine()
        .add_stage(ParseStage(provider, max_retries=max_retries))
        .add_stage(CategorizeStage(provider, max_retries=max_retries))
        .add_stage(PrioritizeStage(provider, max_retries=max_retries))
        .add_stage(ActionPlanStage(provider, tool_registry, max_retries=max_retries))
    )
