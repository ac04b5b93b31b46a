"""Reasoning provider contract consumed by pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, Protocol, TypeVar

from pydantic import BaseModel

TModel = TypeVar("TModel", bound=BaseModel)


@dataclass(frozen=True)
class Message:
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class RequestOptions:
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StructuredResponse(Generic[TModel]):
    parsed: TModel
    raw_text: str


@dataclass(frozen=True)
class ToolResponse:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)


class LLMValidationError(Exception):
    """Provider output did not match the requested schema."""

    def __init__(
        self,
        message: str,
        raw_output: str,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.raw_output = raw_output
        self.errors = errors


class LLMProviderError(Exception):
    """Infrastructure failure talking to the provider (network, auth, rate limit)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ReasoningProvider(Protocol):
    """Interface for structured and tool-using LLM completions."""

    name: str

    def request_structured(
        self,
        messages: list[Message],
        schema: type[TModel],
        schema_name: str,
        options: RequestOptions | None = None,
    ) -> StructuredResponse[TModel]: ...

    def request_with_tools(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: RequestOptions | None = None,
    ) -> ToolResponse: ...


def is_retryable_status(status_code: int | None) -> bool:
    if status_code is None:
        return False
    return status_code == 429 or status_code >= 500
