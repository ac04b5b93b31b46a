"""State machine that runs registered stages in order with bounded retries.

Two failure levels:
- a record that fails inside a stage is marked ``failed`` and skipped by later
  stages, while the pipeline continues;
- a stage whose ``execute`` raises on every attempt halts the pipeline.

After every stage, retried or not, succeeded or not, all task records held
in the state container are upserted into the durable store when one is given.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from task_pipeline.models import ProgressEvent, TaskRecord
from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.stage import Stage
from task_pipeline.pipeline.state import StateKeys, StateStore
from task_pipeline.pipeline.workflow import (
    PipelineGraphState,
    build_stage_graph,
    initial_graph_state,
)
from task_pipeline.store.base import TaskStore

logger = logging.getLogger(__name__)

# graph node names may not collide with graph state keys
RESERVED_STAGE_NAMES = {"pipeline", "__start__", "__end__", *PipelineGraphState.__annotations__}
RESERVED_NAME_CHARACTERS = (":", "|")


class StateMachine:
    def __init__(self, stages: list[Stage] | None = None) -> None:
        self._stages: list[Stage] = []
        for stage in stages or []:
            self.add_stage(stage)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(self._stages)

    def add_stage(self, stage: Stage) -> StateMachine:
        if stage.name in RESERVED_STAGE_NAMES:
            raise ValueError(f"Stage name '{stage.name}' is reserved")
        if any(char in stage.name for char in RESERVED_NAME_CHARACTERS):
            raise ValueError(f"Stage name '{stage.name}' contains a reserved character")
        if any(existing.name == stage.name for existing in self._stages):
            raise ValueError(f"Stage '{stage.name}' is already registered")
        if stage.max_retries < 0:
            raise ValueError(f"Stage '{stage.name}' max_retries must be >= 0")
        self._stages.append(stage)
        return self

    def run(
        self,
        run_id: str,
        emit: EventSink,
        store: TaskStore | None = None,
        initial_state: StateStore | None = None,
    ) -> dict[str, Any]:
        """Run every stage in registration order and return a snapshot of the state."""
        state = initial_state if initial_state is not None else StateStore()
        state.set(StateKeys.RUN_ID, run_id)
        started_at = time.perf_counter()
        logger.info("pipeline event=start run_id=%s stage_count=%d", run_id, len(self._stages))

        graph_state = initial_graph_state(run_id, self._stages)
        if self._stages:
            graph = build_stage_graph(
                self._stages,
                lambda stage, current: self._run_stage(
                    stage,
                    current,
                    run_id=run_id,
                    state=state,
                    emit=emit,
                    store=store,
                ),
            )
            graph_state = graph.invoke(
                graph_state,
                config={"recursion_limit": len(self._stages) + 10},
            )

        state.set(StateKeys.STAGE_STATUS, dict(graph_state.get("stage_status", {})))
        state.set(StateKeys.FAILED_STAGE, graph_state.get("failed_stage"))
        logger.info(
            "pipeline event=finished run_id=%s halted=%s failed_stage=%s duration_ms=%.2f",
            run_id,
            graph_state.get("halted", False),
            graph_state.get("failed_stage"),
            (time.perf_counter() - started_at) * 1000.0,
        )
        return state.snapshot()

    def _run_stage(
        self,
        stage: Stage,
        current: PipelineGraphState,
        *,
        run_id: str,
        state: StateStore,
        emit: EventSink,
        store: TaskStore | None,
    ) -> PipelineGraphState:
        summary = self._execute_with_retry(run_id, stage, state, emit)
        self._persist(run_id, stage, state, store)

        stage_status = dict(current.get("stage_status", {}))
        if summary is None:
            stage_status[stage.name] = "failed"
            logger.error("pipeline event=halted run_id=%s failed_stage=%s", run_id, stage.name)
            return {"halted": True, "failed_stage": stage.name, "stage_status": stage_status}

        stage_status[stage.name] = "completed"
        summaries = {**current.get("summaries", {}), stage.name: summary}
        return {"stage_status": stage_status, "summaries": summaries}

    def _execute_with_retry(
        self,
        run_id: str,
        stage: Stage,
        state: StateStore,
        emit: EventSink,
    ) -> str | None:
        """Return the stage summary, or None once every attempt has failed."""
        total_attempts = stage.max_retries + 1

        for attempt in range(1, total_attempts + 1):
            is_retry = attempt > 1
            if is_retry:
                logger.warning(
                    "pipeline event=stage_retrying run_id=%s stage=%s attempt=%d/%d",
                    run_id,
                    stage.name,
                    attempt,
                    total_attempts,
                )
            emit(
                ProgressEvent(
                    task_id=run_id,
                    stage_name=stage.name,
                    status="retrying" if is_retry else "running",
                    message=(
                        f"Retrying {stage.label} (attempt {attempt}/{total_attempts})"
                        if is_retry
                        else f"Running {stage.label}"
                    ),
                    attempt=attempt,
                )
            )

            stage_started = time.perf_counter()
            try:
                summary = stage.execute(state, emit)
            except Exception as exc:  # noqa: BLE001
                if attempt == total_attempts:
                    logger.error(
                        "pipeline event=stage_failed run_id=%s stage=%s attempts=%d error=%s",
                        run_id,
                        stage.name,
                        total_attempts,
                        exc,
                    )
                    emit(
                        ProgressEvent(
                            task_id=run_id,
                            stage_name=stage.name,
                            status="failed",
                            message=f"{stage.label} failed: {exc}",
                            attempt=attempt,
                        )
                    )
                    return None
                logger.warning(
                    "pipeline event=stage_error run_id=%s stage=%s attempt=%d error=%s",
                    run_id,
                    stage.name,
                    attempt,
                    exc,
                )
                continue

            logger.info(
                "pipeline event=stage_completed run_id=%s stage=%s attempt=%d duration_ms=%.2f",
                run_id,
                stage.name,
                attempt,
                (time.perf_counter() - stage_started) * 1000.0,
            )
            emit(
                ProgressEvent(
                    task_id=run_id,
                    stage_name=stage.name,
                    status="completed",
                    message=summary,
                    attempt=attempt,
                )
            )
            return summary

        return None

    @staticmethod
    def _persist(
        run_id: str,
        stage: Stage,
        state: StateStore,
        store: TaskStore | None,
    ) -> None:
        if store is None:
            return
        tasks: list[TaskRecord] | None = state.get(StateKeys.TASKS)
        if not tasks:
            return
        for record in tasks:
            store.save(record)
        logger.info(
            "pipeline event=persisted run_id=%s stage=%s task_count=%d",
            run_id,
            stage.name,
            len(tasks),
        )
