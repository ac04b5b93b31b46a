"""Reasoning provider contract and vendor adapters."""

from task_pipeline.llm.factory import build_provider
from task_pipeline.llm.provider import (
    LLMProviderError,
    LLMValidationError,
    Message,
    ReasoningProvider,
    RequestOptions,
    StructuredResponse,
    ToolCall,
    ToolDefinition,
    ToolResponse,
)

__all__ = [
    "LLMProviderError",
    "LLMValidationError",
    "Message",
    "ReasoningProvider",
    "RequestOptions",
    "StructuredResponse",
    "ToolCall",
    "ToolDefinition",
    "ToolResponse",
    "build_provider",
]
