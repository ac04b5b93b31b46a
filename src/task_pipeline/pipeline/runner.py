"""Background trigger: one thread per run, events delivered over a channel."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from task_pipeline.models import PIPELINE_STAGE_NAME, ProgressEvent, new_run_id
from task_pipeline.pipeline.events import EventChannel
from task_pipeline.pipeline.machine import StateMachine
from task_pipeline.pipeline.state import StateKeys, StateStore
from task_pipeline.store.base import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    run_id: str
    channel: EventChannel
    thread: threading.Thread | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    _done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run finishes; return False on timeout."""
        return self._done.wait(timeout)


class PipelineRunner:
    def __init__(self, machine: StateMachine, store: TaskStore | None = None) -> None:
        self.machine = machine
        self.store = store

    def start(self, raw_input: str) -> PipelineRun:
        """Start a run in a daemon thread and return immediately."""
        run = PipelineRun(run_id=new_run_id(), channel=EventChannel())
        run.thread = threading.Thread(
            target=self._run,
            args=(run, raw_input),
            name=run.run_id,
            daemon=True,
        )
        logger.info("runner event=start run_id=%s", run.run_id)
        run.thread.start()
        return run

    def run_sync(self, raw_input: str) -> PipelineRun:
        """Run on the calling thread; events remain buffered on the closed channel."""
        run = PipelineRun(run_id=new_run_id(), channel=EventChannel())
        self._run(run, raw_input)
        return run

    def _run(self, run: PipelineRun, raw_input: str) -> None:
        try:
            state = StateStore({StateKeys.RAW_INPUT: raw_input})
            run.result = self.machine.run(
                run.run_id,
                run.channel.emit,
                store=self.store,
                initial_state=state,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("runner event=crashed run_id=%s", run.run_id)
            run.error = str(exc)
            run.channel.emit(
                ProgressEvent(
                    task_id=run.run_id,
                    stage_name=PIPELINE_STAGE_NAME,
                    status="failed",
                    message=f"Pipeline error: {exc}",
                    attempt=1,
                )
            )
        finally:
            run.channel.close()
            run._done.set()
            logger.info(
                "runner event=finished run_id=%s events=%d", run.run_id, run.channel.emitted
            )
