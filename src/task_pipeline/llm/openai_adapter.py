"""OpenAI Chat Completions adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

from task_pipeline.llm.correction import (
    json_schema_for,
    request_with_self_correction,
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


class OpenAIProvider:
    """Structured output through ``response_format=json_schema``."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        timeout_s: float = 30.0,
        max_retries: int = 1,
        backoff_s: float = 0.5,
        max_corrections: int = 2,
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ) -> None:
        if not api_key:
            raise LLMProviderError("OPENAI_API_KEY is missing", retryable=False)
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
        response_format = {
            "type": "json_schema",
            "json_schema": {
                "name": schema_name,
                # strict mode would require additionalProperties=false on every
                # nested object, which default-valued list fields violate.
                "strict": False,
                "schema": json_schema_for(schema),
            },
        }

        def _attempt(conversation: list[Message]) -> StructuredResponse[TModel]:
            logger.info("llm request provider=openai model=%s schema=%s", self.model, schema_name)
            body = self._body(conversation, options)
            body["response_format"] = response_format
            response_json = self._post(body)
            text = _message_text(_first_message(response_json))
            return validate_text(text, schema, schema_name=schema_name)

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
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in tools
            ]
        message = _first_message(self._post(body))
        return ToolResponse(text=_message_text(message), tool_calls=_tool_calls(message))

    def _body(self, messages: list[Message], options: RequestOptions | None) -> dict[str, Any]:
        opts = options or RequestOptions()
        return {
            "model": self.model,
            "temperature": opts.temperature if opts.temperature is not None else self.temperature,
            "max_tokens": opts.max_tokens or self.max_tokens,
            "messages": [{"role": item.role, "content": item.content} for item in messages],
        }

    def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        return post_json_with_retry(
            url=f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            body=body,
            timeout_s=self.timeout_s,
            max_retries=self.max_retries,
            backoff_s=self.backoff_s,
            provider=self.name,
        )


def _first_message(response_json: dict[str, Any]) -> dict[str, Any]:
    choices = response_json.get("choices", [])
    if not choices:
        raise LLMProviderError("OpenAI response missing choices")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise LLMProviderError("OpenAI response missing message")
    return message


def _message_text(message: dict[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [
            item["text"]
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        return "".join(parts).strip()
    return ""


def _tool_calls(message: dict[str, Any]) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for idx, raw in enumerate(message.get("tool_calls") or []):
        if not isinstance(raw, dict):
            continue
        function = raw.get("function")
        if not isinstance(function, dict) or not function.get("name"):
            continue
        arguments = function.get("arguments") or "{}"
        try:
            parsed = json.loads(arguments) if isinstance(arguments, str) else arguments
        except json.JSONDecodeError:
            parsed = {}
        calls.append(
            ToolCall(
                id=str(raw.get("id") or f"call_{idx}"),
                name=str(function["name"]),
                input=parsed if isinstance(parsed, dict) else {},
            )
        )
    return calls
