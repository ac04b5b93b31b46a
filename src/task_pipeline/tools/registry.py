"""Registry of agent tools the Action-Plan stage can offer to the provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from task_pipeline.llm.correction import json_schema_for
from task_pipeline.llm.provider import ToolDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[BaseModel]
    fn: Callable[[BaseModel], str]


class ToolRegistry:
    """Execute registered tools by name; failures come back as result text."""

    def __init__(self, specs: list[ToolSpec] | None = None) -> None:
        self._tools: dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> ToolRegistry:
        self._tools[spec.name] = spec
        return self

    def names(self) -> list[str]:
        return sorted(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name=spec.name,
                description=spec.description,
                input_schema=json_schema_for(spec.input_model),
            )
            for spec in self._tools.values()
        ]

    def execute(self, tool_name: str, tool_input: dict[str, Any]) -> str:
        spec = self._tools.get(tool_name)
        if spec is None:
            logger.error("tool event=unknown tool=%s", tool_name)
            return f"Unknown tool: {tool_name}"

        try:
            payload = spec.input_model.model_validate(tool_input)
            logger.info("tool event=invoked tool=%s input=%s", tool_name, tool_input)
            result = spec.fn(payload)
        except ValidationError as exc:
            logger.error("tool event=invalid_input tool=%s error=%s", tool_name, exc)
            return f"Tool error: invalid input for {tool_name}: {exc.error_count()} error(s)"
        except Exception as exc:  # noqa: BLE001
            logger.error("tool event=failed tool=%s error=%s", tool_name, exc)
            return f"Tool error: {exc}"

        logger.info("tool event=result tool=%s result=%s", tool_name, result)
        return result

    def __len__(self) -> int:
        return len(self._tools)
