"""Schema validation and bounded self-correction shared by HTTP adapters."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from task_pipeline.llm.prompts import correction_prompt
from task_pipeline.llm.provider import (
    LLMValidationError,
    Message,
    StructuredResponse,
    TModel,
)

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def request_with_self_correction(
    attempt: Callable[[list[Message]], StructuredResponse[TModel]],
    messages: list[Message],
    *,
    schema_name: str,
    max_corrections: int,
) -> StructuredResponse[TModel]:
    """Run ``attempt``; on a schema mismatch feed the errors back and try again."""
    current = list(messages)
    last_error: LLMValidationError | None = None

    for correction in range(max_corrections + 1):
        try:
            return attempt(current)
        except LLMValidationError as exc:
            if not exc.errors:
                raise
            last_error = exc
            if correction < max_corrections:
                logger.info(
                    "llm self_correction schema=%s attempt=%d/%d",
                    schema_name,
                    correction + 1,
                    max_corrections,
                )
                current = [
                    *current,
                    Message(role="assistant", content=exc.raw_output),
                    Message(role="user", content=correction_prompt(schema_name, exc.errors)),
                ]

    if last_error is None:
        raise RuntimeError("Structured request failed without a validation error")
    raise last_error


def validate_payload(
    payload: Any,
    schema: type[TModel],
    *,
    schema_name: str,
    raw_text: str,
) -> StructuredResponse[TModel]:
    try:
        parsed = schema.model_validate(payload)
    except ValidationError as exc:
        raise LLMValidationError(
            f"Schema validation failed for {schema_name}: {exc.error_count()} error(s)",
            raw_text,
            _plain_errors(exc),
        ) from exc
    return StructuredResponse(parsed=parsed, raw_text=raw_text)


def validate_text(
    text: str,
    schema: type[TModel],
    *,
    schema_name: str,
) -> StructuredResponse[TModel]:
    """Validate a JSON document, or the first JSON object embedded in prose."""
    stripped = text.strip()
    if not stripped:
        raise LLMValidationError(f"Empty response for {schema_name}", text)
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(stripped)
        if match is None:
            raise LLMValidationError(f"No JSON found in response for {schema_name}", text)
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            raise LLMValidationError(
                f"Failed to parse JSON from response for {schema_name}", text
            ) from exc
    return validate_payload(payload, schema, schema_name=schema_name, raw_text=text)


def json_schema_for(schema: type[BaseModel]) -> dict[str, Any]:
    payload = schema.model_json_schema()
    payload.pop("$schema", None)
    return payload


def _plain_errors(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(item.get("loc", ())), "msg": item.get("msg", ""), "type": item.get("type")}
        for item in exc.errors()
    ]
