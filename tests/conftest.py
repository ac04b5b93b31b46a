from __future__ import annotations

import json
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from task_pipeline.api.main import create_app
from task_pipeline.config.settings import Settings
from task_pipeline.llm.deterministic import DeterministicProvider
from task_pipeline.llm.provider import (
    Message,
    RequestOptions,
    StructuredResponse,
    ToolDefinition,
    ToolResponse,
)
from task_pipeline.models import ProgressEvent
from task_pipeline.store.memory import InMemoryTaskStore
from task_pipeline.tools.registry import ToolRegistry

# schema name -> callable(prompt text) returning a payload dict, or raising
Override = Callable[[str], dict[str, Any]]


class ScriptedProvider:
    """Deterministic answers unless a schema is overridden; records every call."""

    name = "scripted"

    def __init__(
        self,
        overrides: dict[str, Override] | None = None,
        tool_override: Callable[[str, list[ToolDefinition]], ToolResponse] | None = None,
    ) -> None:
        self._inner = DeterministicProvider()
        self.overrides = dict(overrides or {})
        self.tool_override = tool_override
        self.calls: list[tuple[str, str]] = []
        self.tool_calls: list[str] = []

    def request_structured(
        self,
        messages: list[Message],
        schema: Any,
        schema_name: str,
        options: RequestOptions | None = None,
    ) -> StructuredResponse[Any]:
        prompt = messages[-1].content
        self.calls.append((schema_name, prompt))
        override = self.overrides.get(schema_name)
        if override is None:
            return self._inner.request_structured(messages, schema, schema_name, options)
        payload = override(prompt)
        return StructuredResponse(parsed=schema.model_validate(payload), raw_text=json.dumps(payload))

    def request_with_tools(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: RequestOptions | None = None,
    ) -> ToolResponse:
        prompt = messages[-1].content
        self.tool_calls.append(prompt)
        if self.tool_override is not None:
            return self.tool_override(prompt, tools)
        return self._inner.request_with_tools(messages, tools, options)

    def count(self, schema_name: str) -> int:
        return sum(1 for name, _ in self.calls if name == schema_name)


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def statuses(self, stage_name: str, task_id: str) -> list[str]:
        return [
            event.status
            for event in self.events
            if event.stage_name == stage_name and event.task_id == task_id
        ]


def parse_sse(body: str) -> tuple[list[dict[str, Any]], bool]:
    """Split an SSE body into event payloads and whether the end marker was seen."""
    events: list[dict[str, Any]] = []
    done = False
    for chunk in body.split("\n\n"):
        chunk = chunk.strip()
        if not chunk:
            continue
        assert chunk.startswith("data: ")
        data = chunk[len("data: ") :]
        if data == "[DONE]":
            done = True
            continue
        assert not done, "event delivered after end marker"
        events.append(json.loads(data))
    return events, done


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def memory_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        store_backend="memory",
        llm_provider="deterministic",
        tools_enabled=False,
        stage_max_retries=2,
    )


@pytest.fixture
def make_client(
    memory_store: InMemoryTaskStore, app_settings: Settings
) -> Callable[..., TestClient]:
    def _make(
        provider: Any | None = None,
        tool_registry: ToolRegistry | None = None,
        settings: Settings | None = None,
    ) -> TestClient:
        app = create_app(
            store=memory_store,
            provider=provider or ScriptedProvider(),
            tool_registry=tool_registry if tool_registry is not None else ToolRegistry(),
            settings_override=settings or app_settings,
        )
        return TestClient(app)

    return _make


@pytest.fixture
def provider_factory() -> type[ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def sse() -> Callable[[str], tuple[list[dict[str, Any]], bool]]:
    return parse_sse
