"""Agent tools available to the Action-Plan stage."""

from task_pipeline.tools.registry import ToolRegistry, ToolSpec
from task_pipeline.tools.url_health_check import build_url_health_check_tool


def build_tool_registry(*, enabled: bool = True, url_check_timeout_s: float = 5.0) -> ToolRegistry:
    registry = ToolRegistry()
    if enabled:
        registry.register(build_url_health_check_tool(timeout_s=url_check_timeout_s))
    return registry


__all__ = [
    "ToolRegistry",
    "ToolSpec",
    "build_tool_registry",
    "build_url_health_check_tool",
]
