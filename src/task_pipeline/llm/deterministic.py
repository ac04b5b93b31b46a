"""Offline heuristic provider used when no LLM vendor is configured."""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from pydantic import BaseModel

from task_pipeline.llm.correction import validate_payload
from task_pipeline.llm.prompts import RAW_INPUT_MARKER, TASK_MARKER, URLS_MARKER
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
from task_pipeline.llm.schemas import (
    ActionPlanOutput,
    CategorizedTask,
    ParsedTaskList,
    PrioritizedTask,
)

URL_PATTERN = re.compile(r"https?://[^\s,;<>\"')]+")
_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]+|\d+[.)]|[a-z][.)])\s+", re.IGNORECASE)

CATEGORY_RULES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("DevOps", "CI/CD", ("ci/cd", "pipeline", "deploy", "release", "docker", "kubernetes")),
    ("Security", "Application Security", ("security", "auth", "oauth", "vulnerab", "secret")),
    ("Data", "Database", ("database", "postgres", "mysql", "sql", "migrat", "etl", "schema")),
    ("Infrastructure", "Cloud", ("infra", "server", "cluster", "aws", "terraform", "dns")),
    ("Design", "UI/UX", ("design", "mockup", "wireframe", "figma", "ux")),
    ("Frontend", "Web UI", ("page", "frontend", "ui", "css", "react", "button", "form")),
    ("Backend", "API", ("api", "endpoint", "backend", "service", "webhook", "queue")),
    ("Testing", "Automated Tests", ("test", "qa", "coverage", "e2e")),
    ("Documentation", "Docs", ("doc", "readme", "guide", "wiki")),
)

DOMAIN_BY_CATEGORY = {
    "DevOps": "devops",
    "Security": "security",
    "Data": "data",
    "Infrastructure": "infrastructure",
    "Design": "design",
    "Frontend": "frontend",
    "Backend": "backend",
    "Testing": "testing",
    "Documentation": "documentation",
}

CRITICAL_TERMS = ("outage", "production down", "security incident", "breach", "sev1", "p0")
HIGH_TERMS = ("urgent", "asap", "blocking", "deadline", "security", "ci/cd", "migrat")
MEDIUM_TERMS = ("important", "soon", "login", "api", "pipeline", "database")
SCORE_BY_PRIORITY = {"critical": 9, "high": 7, "medium": 5, "low": 3}


class DeterministicProvider:
    """Keyword heuristics that honour the same structured contract as real vendors."""

    name = "deterministic"

    def __init__(self) -> None:
        self._handlers: dict[type[BaseModel], Callable[[str], dict[str, Any]]] = {
            ParsedTaskList: _parse_tasks,
            CategorizedTask: _categorize,
            PrioritizedTask: _prioritize,
            ActionPlanOutput: _plan,
        }

    def request_structured(
        self,
        messages: list[Message],
        schema: type[TModel],
        schema_name: str,
        options: RequestOptions | None = None,
    ) -> StructuredResponse[TModel]:
        handler = self._handlers.get(schema)
        if handler is None:
            raise LLMProviderError(f"Deterministic provider cannot produce {schema_name}")
        payload = handler(_last_user_text(messages))
        return validate_payload(
            payload, schema, schema_name=schema_name, raw_text=json.dumps(payload)
        )

    def request_with_tools(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: RequestOptions | None = None,
    ) -> ToolResponse:
        if not any(tool.name == "url_health_check" for tool in tools):
            return ToolResponse(text="")
        urls = URL_PATTERN.findall(_marker_value(_last_user_text(messages), URLS_MARKER))
        calls = [
            ToolCall(id=f"call_{idx}", name="url_health_check", input={"url": url})
            for idx, url in enumerate(urls)
        ]
        return ToolResponse(text="", tool_calls=calls)


def split_raw_tasks(raw_input: str) -> list[str]:
    items: list[str] = []
    for line in raw_input.splitlines():
        for part in line.split(";"):
            cleaned = _LIST_PREFIX.sub("", part).strip()
            if cleaned:
                items.append(cleaned)
    return items


def _parse_tasks(text: str) -> dict[str, Any]:
    raw_input = text.split(RAW_INPUT_MARKER, 1)[-1].strip()
    tasks: list[dict[str, Any]] = []
    for item in split_raw_tasks(raw_input):
        urls = URL_PATTERN.findall(item)
        title = " ".join(URL_PATTERN.sub("", item).split()).strip(" :-") or item
        title = title[:1].upper() + title[1:]
        category = _match_category(item)
        ambiguities = []
        if len(title.split()) < 3:
            ambiguities.append("Task description is very brief")
        tasks.append(
            {
                "title": title[:120],
                "domain": DOMAIN_BY_CATEGORY.get(category[0], "general") if category else "general",
                "urls": urls,
                "ambiguities": ambiguities,
            }
        )
    return {"tasks": tasks}


def _categorize(text: str) -> dict[str, Any]:
    task_text = " ".join(
        [_marker_value(text, TASK_MARKER), _marker_value(text, "Domain hint:")]
    )
    match = _match_category(task_text)
    if match is None:
        return {
            "category": "Project Management",
            "subcategory": "General",
            "confidence": 0.4,
            "reasoning": "No technical keywords matched; filed as general project work.",
        }
    category, subcategory, hits = match
    return {
        "category": category,
        "subcategory": subcategory,
        "confidence": min(0.95, 0.55 + 0.1 * len(hits)),
        "reasoning": f"Matched keywords: {', '.join(hits)}.",
    }


def _prioritize(text: str) -> dict[str, Any]:
    lowered = " ".join(
        [_marker_value(text, TASK_MARKER), _marker_value(text, "Category:")]
    ).lower()
    if any(term in lowered for term in CRITICAL_TERMS):
        priority = "critical"
    elif any(term in lowered for term in HIGH_TERMS):
        priority = "high"
    elif any(term in lowered for term in MEDIUM_TERMS):
        priority = "medium"
    else:
        priority = "low"
    return {"priority": priority, "score": SCORE_BY_PRIORITY[priority]}


def _plan(text: str) -> dict[str, Any]:
    title = _marker_value(text, TASK_MARKER) or "the task"
    subject = title[:1].lower() + title[1:]
    actions = [
        f"Clarify scope and acceptance criteria for {subject}",
        f"Implement {subject}",
        "Test the change end to end",
        "Review, document and hand over",
    ]
    if "Additional context from tools:" in text:
        actions.insert(1, "Review the referenced resources and their availability")

    words = len(title.split())
    if words <= 2:
        complexity = "simple"
    elif words <= 6:
        complexity = "moderate"
    else:
        complexity = "complex"
    return {
        "steps": [{"order": idx + 1, "action": action} for idx, action in enumerate(actions)],
        "complexity": complexity,
        "summary": f"{len(actions)}-step plan to {subject}.",
    }


def _match_category(text: str) -> tuple[str, str, list[str]] | None:
    lowered = text.lower()
    best: tuple[str, str, list[str]] | None = None
    for category, subcategory, keywords in CATEGORY_RULES:
        hits = [
            keyword for keyword in keywords if re.search(rf"\b{re.escape(keyword)}", lowered)
        ]
        if hits and (best is None or len(hits) > len(best[2])):
            best = (category, subcategory, hits)
    return best


def _marker_value(text: str, marker: str) -> str:
    for line in text.splitlines():
        if line.startswith(marker):
            return line[len(marker) :].strip()
    return ""


def _last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.role == "user":
            return message.content
    return ""
