"""Anthropic Messages API adapter.

Structured output is forced through a single tool whose input schema is the
requested Pydantic schema; the tool call input is the parsed value. When the
model answers with text instead, the first JSON object in the text is used.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from task_pipeline.llm.correction import (
    json_schema_for,
    request_with_self_correction,
    validate_payload,
    validate_text,
)
from task_pipeline.llm.http import post_json_with_retry
from task_pipeline.llm.provider import (
    LLMProviderError,
    Message,
    RequestOptions,
    StructuredResponse,
    TModel,
    ToolCall,
    ToolDefinition,
    ToolResponse,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider:
    name = "anthropic"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        base_url: str = "https://api.anthropic.com/v1",
        timeout_s: float = 30.0,
        max_retries: int = 1,
        backoff_s: float = 0.5,
        max_corrections: int = 2,
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ) -> None:
        if not api_key:
            raise LLMProviderError("ANTHROPIC_API_KEY is missing", retryable=False)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)
        self.max_corrections = max(0, max_corrections)
        self.temperature = temperature
        self.max_tokens = max_tokens

    def request_structured(
        self,
        messages: list[Message],
        schema: type[TModel],
        schema_name: str,
        options: RequestOptions | None = None,
    ) -> StructuredResponse[TModel]:
        tool = {
            "name": schema_name,
            "description": f"Output the result as structured JSON matching the {schema_name} schema.",
            "input_schema": json_schema_for(schema),
        }

        def _attempt(conversation: list[Message]) -> StructuredResponse[TModel]:
            logger.info(
                "llm request provider=anthropic model=%s schema=%s", self.model, schema_name
            )
            body = self._body(conversation, options)
            body["tools"] = [tool]
            body["tool_choice"] = {"type": "tool", "name": schema_name}
            response_json = self._post(body)
            _log_usage(response_json, model=self.model)

            blocks = _content_blocks(response_json)
            tool_use = next((block for block in blocks if block.get("type") == "tool_use"), None)
            if tool_use is None:
                return validate_text(_joined_text(blocks), schema, schema_name=schema_name)

            payload = tool_use.get("input")
            raw_text = json.dumps(payload)
            return validate_payload(payload, schema, schema_name=schema_name, raw_text=raw_text)

        return request_with_self_correction(
            _attempt,
            messages,
            schema_name=schema_name,
            max_corrections=self.max_corrections,
        )

    def request_with_tools(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: RequestOptions | None = None,
    ) -> ToolResponse:
        body = self._body(messages, options)
        if tools:
            body["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.input_schema,
                }
                for tool in tools
            ]
        blocks = _content_blocks(self._post(body))
        calls = [
            ToolCall(
                id=str(block.get("id") or f"toolu_{idx}"),
                name=str(block["name"]),
                input=block.get("input") if isinstance(block.get("input"), dict) else {},
            )
            for idx, block in enumerate(blocks)
            if block.get("type") == "tool_use" and block.get("name")
        ]
        return ToolResponse(text=_joined_text(blocks), tool_calls=calls)

    def _body(self, messages: list[Message], options: RequestOptions | None) -> dict[str, Any]:
        opts = options or RequestOptions()
        return {
            "model": self.model,
            "max_tokens": opts.max_tokens or self.max_tokens,
            "temperature": opts.temperature if opts.temperature is not None else self.temperature,
            "messages": [{"role": item.role, "content": item.content} for item in messages],
        }

    def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        return post_json_with_retry(
            url=f"{self.base_url}/messages",
            headers={"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION},
            body=body,
            timeout_s=self.timeout_s,
            max_retries=self.max_retries,
            backoff_s=self.backoff_s,
            provider=self.name,
        )


def _content_blocks(response_json: dict[str, Any]) -> list[dict[str, Any]]:
    content = response_json.get("content")
    if not isinstance(content, list):
        raise LLMProviderError("Anthropic response missing content")
    return [block for block in content if isinstance(block, dict)]


def _joined_text(blocks: list[dict[str, Any]]) -> str:
    return "".join(
        block["text"]
        for block in blocks
        if block.get("type") == "text" and isinstance(block.get("text"), str)
    ).strip()


def _log_usage(response_json: dict[str, Any], *, model: str) -> None:
    usage = response_json.get("usage")
    if isinstance(usage, dict):
        logger.info(
            "llm response provider=anthropic model=%s input_tokens=%s output_tokens=%s",
            model,
            usage.get("input_tokens"),
            usage.get("output_tokens"),
        )
