"""Concrete pipeline stages."""

from task_pipeline.pipeline.stages.action_plan import ActionPlanStage
from task_pipeline.pipeline.stages.categorize import CategorizeStage
from task_pipeline.pipeline.stages.parse import ParseStage
from task_pipeline.pipeline.stages.prioritize import PrioritizeStage

__all__ = ["ActionPlanStage", "CategorizeStage", "ParseStage", "PrioritizeStage"]
