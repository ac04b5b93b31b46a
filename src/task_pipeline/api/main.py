"""FastAPI app entrypoint for task-pipeline."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse

from task_pipeline.api.schemas import (
    CreateTasksRequest,
    PatchError,
    TaskPatchRequest,
    merge_patch,
)
from task_pipeline.config.settings import Settings, get_settings
from task_pipeline.llm.factory import build_provider
from task_pipeline.llm.provider import ReasoningProvider
from task_pipeline.logging_config import configure_logging
from task_pipeline.models import TaskPage, TaskRecord
from task_pipeline.pipeline.events import sse_stream
from task_pipeline.pipeline.factory import build_task_pipeline
from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.store.base import TaskStore
from task_pipeline.store.factory import build_task_store
from task_pipeline.tools import ToolRegistry, build_tool_registry

logger = logging.getLogger(__name__)

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: TaskStore | None,
    provider_override: ReasoningProvider | None,
    tool_registry_override: ToolRegistry | None,
) -> None:
    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "store"):
        app.state.store = store_override or build_task_store(settings)
        if store_override is not None:
            app.state.store.migrate()

    if not hasattr(app.state, "tool_registry"):
        app.state.tool_registry = (
            tool_registry_override
            if tool_registry_override is not None
            else build_tool_registry(
                enabled=settings.tools_enabled,
                url_check_timeout_s=settings.url_check_timeout_s,
            )
        )

    if not hasattr(app.state, "runner"):
        provider = provider_override or build_provider(settings)
        machine = build_task_pipeline(
            provider,
            app.state.tool_registry,
            max_retries=settings.stage_max_retries,
        )
        app.state.provider = provider
        app.state.runner = PipelineRunner(machine, store=app.state.store)
        logger.info(
            "api event=ready provider=%s tools=%s",
            provider.name,
            ",".join(app.state.tool_registry.names()) or "-",
        )


def create_app(
    *,
    store: TaskStore | None = None,
    provider: ReasoningProvider | None = None,
    tool_registry: ToolRegistry | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    def _ensure(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            store_override=store,
            provider_override=provider,
            tool_registry_override=tool_registry,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        yield

    app_lifespan = lifespan if store is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _ensure(app)

    def _state(request: Request) -> Any:
        if not hasattr(request.app.state, "runner"):
            _ensure(request.app)
        return request.app.state

    def _get_or_404(task_store: TaskStore, task_id: str) -> TaskRecord:
        record = task_store.get(task_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return record

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tools")
    def tools(request: Request) -> dict[str, list[str]]:
        return {"tools": _state(request).tool_registry.names()}

    @app.get("/tasks", response_model=TaskPage)
    def list_tasks(
        request: Request,
        page: int = 1,
        page_size: int | None = None,
        category: str | None = None,
        priority: str | None = None,
    ) -> TaskPage:
        size = settings.default_page_size if page_size is None else page_size
        size = min(max(size, 1), settings.max_page_size)
        return _state(request).store.list(
            page=max(page, 1),
            page_size=size,
            category=category or None,
            priority=priority or None,
        )

    @app.post("/tasks")
    def create_tasks(payload: CreateTasksRequest, request: Request) -> StreamingResponse:
        runner: PipelineRunner = _state(request).runner
        run = runner.start(payload.raw_input())
        logger.info("api event=run_started run_id=%s entries=%d", run.run_id, len(payload.tasks))
        return StreamingResponse(
            sse_stream(run.channel),
            media_type="text/event-stream",
            headers={**SSE_HEADERS, "X-Run-Id": run.run_id},
        )

    @app.get("/tasks/{task_id}", response_model=TaskRecord)
    def get_task(task_id: str, request: Request) -> TaskRecord:
        return _get_or_404(_state(request).store, task_id)

    @app.patch("/tasks/{task_id}", response_model=TaskRecord)
    def patch_task(task_id: str, payload: TaskPatchRequest, request: Request) -> TaskRecord:
        task_store: TaskStore = _state(request).store
        record = _get_or_404(task_store, task_id)
        try:
            patch = merge_patch(record, payload)
            return task_store.update(task_id, patch)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Task not found") from exc
        except (PatchError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.delete("/tasks/{task_id}")
    def delete_task(task_id: str, request: Request) -> dict[str, bool]:
        if not _state(request).store.delete(task_id):
            raise HTTPException(status_code=404, detail="Task not found")
        return {"success": True}

    return app


# Module-level app for `uvicorn task_pipeline.api.main:app`.
app = create_app()
