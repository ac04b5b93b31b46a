"""Column mapping shared by the SQL backends."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, Callable

from task_pipeline.models import TaskRecord
from task_pipeline.store.base import category_key, priority_key

COLUMNS: tuple[str, ...] = (
    "id",
    "pipeline_stage",
    "workflow_status",
    "title",
    "description",
    "domain",
    "urls_json",
    "ambiguities_json",
    "category_json",
    "priority_json",
    "action_plan_json",
    "category_name",
    "priority_level",
    "error",
    "events_json",
    "created_at",
    "updated_at",
)

JSON_COLUMNS = frozenset(
    {
        "urls_json",
        "ambiguities_json",
        "category_json",
        "priority_json",
        "action_plan_json",
        "events_json",
    }
)


def record_to_columns(
    record: TaskRecord,
    *,
    wrap_json: Callable[[Any], Any],
    format_datetime: Callable[[datetime], Any],
) -> dict[str, Any]:
    data = record.model_dump(mode="json")

    def _json(value: Any) -> Any:
        return wrap_json(value) if value is not None else None

    return {
        "id": record.id,
        "pipeline_stage": record.pipeline_stage,
        "workflow_status": record.workflow_status,
        "title": record.title,
        "description": record.description,
        "domain": record.domain,
        "urls_json": _json(data["urls"]),
        "ambiguities_json": _json(data["ambiguities"]),
        "category_json": _json(data["category"]),
        "priority_json": _json(data["priority"]),
        "action_plan_json": _json(data["action_plan"]),
        "category_name": category_key(record),
        "priority_level": priority_key(record),
        "error": record.error,
        "events_json": _json(data["events"]),
        "created_at": format_datetime(record.created_at),
        "updated_at": format_datetime(record.updated_at),
    }


def row_to_record(row: Any) -> TaskRecord:
    return TaskRecord(
        id=str(row["id"]),
        pipeline_stage=row["pipeline_stage"],
        workflow_status=row["workflow_status"],
        title=row["title"],
        description=row["description"] or "",
        domain=row["domain"] or "",
        urls=parse_json(row["urls_json"]) or [],
        ambiguities=parse_json(row["ambiguities_json"]) or [],
        category=parse_json(row["category_json"]),
        priority=parse_json(row["priority_json"]),
        action_plan=parse_json(row["action_plan_json"]),
        error=row["error"],
        events=parse_json(row["events_json"]) or [],
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
    )


def parse_json(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        return json.loads(raw)
    return raw


def parse_datetime(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str):
        parsed = datetime.fromisoformat(raw)
    else:
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_iso(value: datetime) -> str:
    """Fixed-width UTC ISO text so lexical order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")
