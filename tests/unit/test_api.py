from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from task_pipeline.models import Categorization, Prioritization, TaskRecord
from task_pipeline.tools import build_tool_registry


def _seed(store, count: int) -> list[TaskRecord]:
    base = datetime(2026, 3, 1, tzinfo=UTC)
    records = []
    for idx in range(count):
        record = TaskRecord(
            title=f"task {idx}",
            created_at=base + timedelta(minutes=idx),
            updated_at=base + timedelta(minutes=idx),
        )
        store.save(record)
        records.append(record)
    return records


def test_health(make_client) -> None:
    response = make_client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "task-pipeline"}


def test_tools_lists_registered_names(make_client) -> None:
    assert make_client().get("/tools").json() == {"tools": []}
    client = make_client(tool_registry=build_tool_registry(enabled=True))
    assert client.get("/tools").json() == {"tools": ["url_health_check"]}


def test_list_defaults_and_clamps_paging(make_client, memory_store) -> None:
    _seed(memory_store, 12)
    client = make_client()

    default = client.get("/tasks").json()
    assert default["page_size"] == 10
    assert default["total"] == 12
    assert default["total_pages"] == 2
    assert default["items"][0]["title"] == "task 11"

    clamped = client.get("/tasks", params={"page": 0, "page_size": 500}).json()
    assert clamped["page"] == 1
    assert clamped["page_size"] == 50
    assert len(clamped["items"]) == 12

    tiny = client.get("/tasks", params={"page_size": 0}).json()
    assert tiny["page_size"] == 1
    assert tiny["total_pages"] == 12


def test_list_filters_by_category_and_priority(make_client, memory_store) -> None:
    records = _seed(memory_store, 3)
    memory_store.update(
        records[0].id,
        {
            "category": Categorization(
                category="Frontend", subcategory="Web UI", confidence=0.9, reasoning="r"
            ),
            "priority": Prioritization(priority="high", score=7),
        },
    )
    client = make_client()

    by_category = client.get("/tasks", params={"category": "frontend"}).json()
    assert [item["id"] for item in by_category["items"]] == [records[0].id]
    by_priority = client.get("/tasks", params={"priority": "low"}).json()
    assert by_priority["total"] == 0


def test_get_and_delete(make_client, memory_store) -> None:
    record = _seed(memory_store, 1)[0]
    client = make_client()

    assert client.get(f"/tasks/{record.id}").json()["title"] == "task 0"
    assert client.delete(f"/tasks/{record.id}").json() == {"success": True}
    assert client.get(f"/tasks/{record.id}").status_code == 404
    assert client.delete(f"/tasks/{record.id}").status_code == 404


def test_patch_scalar_fields(make_client, memory_store) -> None:
    record = _seed(memory_store, 1)[0]
    client = make_client()

    response = client.patch(
        f"/tasks/{record.id}",
        json={"workflow_status": "in-progress", "description": "More detail", "domain": "web"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["workflow_status"] == "in-progress"
    assert body["description"] == "More detail"
    assert body["domain"] == "web"
    assert body["title"] == "task 0"


def test_patch_nested_on_absent_value_needs_full_object(make_client, memory_store) -> None:
    record = _seed(memory_store, 1)[0]
    client = make_client()

    partial = client.patch(f"/tasks/{record.id}", json={"priority": {"priority": "low"}})
    assert partial.status_code == 400
    assert "score" in partial.json()["detail"]

    full = client.patch(f"/tasks/{record.id}", json={"priority": {"priority": "low", "score": 2}})
    assert full.status_code == 200
    assert full.json()["priority"] == {"priority": "low", "score": 2.0}


def test_patch_merges_nested_category(make_client, memory_store) -> None:
    record = _seed(memory_store, 1)[0]
    memory_store.update(
        record.id,
        {
            "category": Categorization(
                category="Backend", subcategory="API", confidence=0.6, reasoning="r"
            )
        },
    )
    client = make_client()

    response = client.patch(f"/tasks/{record.id}", json={"category": {"subcategory": "Queues"}})

    assert response.json()["category"] == {
        "category": "Backend",
        "subcategory": "Queues",
        "confidence": 0.6,
        "reasoning": "r",
    }


@pytest.mark.parametrize(
    "payload",
    [
        {"workflow_status": "archived"},
        {"priority": {"priority": "urgent"}},
        {"unknown": 1},
        {"title": "not patchable over http"},
    ],
)
def test_patch_rejects_invalid_bodies(make_client, memory_store, payload) -> None:
    record = _seed(memory_store, 1)[0]
    response = make_client().patch(f"/tasks/{record.id}", json=payload)
    assert response.status_code == 422


def test_patch_missing_task_is_404(make_client) -> None:
    response = make_client().patch("/tasks/missing", json={"description": "x"})
    assert response.status_code == 404


def test_patch_null_scalar_is_400(make_client, memory_store) -> None:
    record = _seed(memory_store, 1)[0]
    response = make_client().patch(f"/tasks/{record.id}", json={"workflow_status": None})
    assert response.status_code == 400


@pytest.mark.parametrize(
    "payload",
    [{}, {"tasks": []}, {"tasks": ["   "]}, {"tasks": "not a list"}],
)
def test_create_rejects_malformed_bodies(make_client, payload) -> None:
    response = make_client().post("/tasks", json=payload)
    assert response.status_code == 422
