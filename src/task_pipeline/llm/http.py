"""JSON-over-HTTPS transport with retry for provider adapters."""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib import error, request

from task_pipeline.llm.provider import LLMProviderError, is_retryable_status

logger = logging.getLogger(__name__)


def post_json_with_retry(
    *,
    url: str,
    headers: dict[str, str],
    body: dict[str, Any],
    timeout_s: float,
    max_retries: int,
    backoff_s: float,
    provider: str,
) -> dict[str, Any]:
    last_error: LLMProviderError | None = None
    for attempt in range(max_retries + 1):
        try:
            return post_json(url=url, headers=headers, body=body, timeout_s=timeout_s)
        except LLMProviderError as exc:
            last_error = exc
            logger.warning(
                "llm request failed provider=%s attempt=%d/%d status=%s retryable=%s reason=%s",
                provider,
                attempt + 1,
                max_retries + 1,
                exc.status_code,
                exc.retryable,
                exc,
            )
            if not exc.retryable:
                raise
            if attempt < max_retries and backoff_s > 0:
                time.sleep(backoff_s * (attempt + 1))

    if last_error is None:
        raise LLMProviderError("LLM request failed with unknown error")
    raise last_error


def post_json(
    *,
    url: str,
    headers: dict[str, str],
    body: dict[str, Any],
    timeout_s: float,
) -> dict[str, Any]:
    req = request.Request(
        url=url,
        data=json.dumps(body).encode("utf-8"),
        method="POST",
        headers={"Content-Type": "application/json", **headers},
    )
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        message = exc.read().decode("utf-8", errors="replace")
        raise LLMProviderError(
            f"LLM request failed with status {exc.code}: {message[:400]}",
            status_code=exc.code,
            retryable=is_retryable_status(exc.code),
        ) from exc
    except error.URLError as exc:
        raise LLMProviderError(f"LLM request failed: {exc.reason}", retryable=True) from exc
    except TimeoutError as exc:
        raise LLMProviderError(
            f"LLM request timed out after {timeout_s:.1f}s", retryable=True
        ) from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LLMProviderError("LLM returned non-JSON response", retryable=True) from exc
    if not isinstance(parsed, dict):
        raise LLMProviderError("LLM response must be a JSON object")
    return parsed
