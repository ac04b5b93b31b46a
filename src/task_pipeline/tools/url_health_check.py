"""URL reachability tool backed by an HTTP HEAD request."""

from __future__ import annotations

import json
import logging
from urllib import error, parse, request

from pydantic import BaseModel, ConfigDict, Field

from task_pipeline.tools.registry import ToolSpec

logger = logging.getLogger(__name__)

TOOL_NAME = "url_health_check"
ALLOWED_SCHEMES = {"http", "https"}


class UrlHealthCheckInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1, description="The URL to check")


def build_url_health_check_tool(*, timeout_s: float = 5.0) -> ToolSpec:
    def _check(payload: UrlHealthCheckInput) -> str:
        return check_url(payload.url, timeout_s=timeout_s)

    return ToolSpec(
        name=TOOL_NAME,
        description=(
            "Check if a URL is accessible. Returns the HTTP status code and whether "
            "the URL is reachable."
        ),
        input_model=UrlHealthCheckInput,
        fn=_check,
    )


def check_url(url: str, *, timeout_s: float) -> str:
    if parse.urlsplit(url).scheme.lower() not in ALLOWED_SCHEMES:
        logger.warning("tool event=url_check_rejected url=%s", url)
        return json.dumps({"url": url, "ok": False, "error": "unsupported scheme"})

    req = request.Request(url=url, method="HEAD")
    try:
        # urlopen follows redirects for HEAD requests
        with request.urlopen(req, timeout=timeout_s) as response:
            status = int(response.status)
            result = {
                "url": url,
                "status": status,
                "ok": 200 <= status < 300,
                "status_text": str(response.reason or ""),
            }
    except error.HTTPError as exc:
        result = {"url": url, "status": exc.code, "ok": False, "status_text": str(exc.reason)}
    except (error.URLError, TimeoutError, ValueError) as exc:
        reason = exc.reason if isinstance(exc, error.URLError) else exc
        result = {"url": url, "ok": False, "error": str(reason)}
        logger.warning("tool event=url_check_failed url=%s error=%s", url, reason)
        return json.dumps(result)

    logger.info("tool event=url_checked url=%s status=%s", url, result.get("status"))
    return json.dumps(result)
