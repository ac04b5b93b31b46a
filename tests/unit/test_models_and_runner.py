from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from task_pipeline.models import TaskRecord, new_run_id, next_timestamp
from task_pipeline.pipeline.factory import build_task_pipeline
from task_pipeline.pipeline.machine import StateMachine
from task_pipeline.pipeline.runner import PipelineRunner
from task_pipeline.pipeline.state import StateKeys


def test_advance_moves_forward_only() -> None:
    record = TaskRecord(title="x")
    record.advance_to("prioritized")
    record.advance_to("categorized")
    assert record.pipeline_stage == "prioritized"


def test_failed_record_cannot_advance() -> None:
    record = TaskRecord(title="x")
    record.mark_failed("Categorization failed: nope")

    assert record.is_failed
    assert record.error == "Categorization failed: nope"
    with pytest.raises(ValueError):
        record.advance_to("completed")
    with pytest.raises(ValueError):
        TaskRecord(title="y").advance_to("failed")


def test_next_timestamp_is_strictly_increasing() -> None:
    future = datetime.now(UTC) + timedelta(hours=1)
    assert next_timestamp(future) == future + timedelta(microseconds=1)
    assert next_timestamp(None).tzinfo is not None


def test_run_ids_are_unique_and_prefixed() -> None:
    first, second = new_run_id(), new_run_id()
    assert first != second
    assert first.startswith("pipeline-")


def test_runner_streams_events_and_persists(scripted_provider, memory_store) -> None:
    runner = PipelineRunner(build_task_pipeline(scripted_provider), store=memory_store)

    run = runner.start("Fix the login page CSS\nWrite onboarding docs")
    events = list(run.channel)

    assert run.wait(timeout=5)
    assert run.done
    assert run.error is None
    assert events[0].task_id == run.run_id
    assert events[0].message == "Running Parsing tasks"
    assert events[-1].stage_name == "action-plan"
    assert events[-1].status == "completed"
    assert run.result is not None
    assert run.result[StateKeys.FAILED_STAGE] is None
    assert memory_store.list().total == 2


class ExplodingMachine(StateMachine):
    def run(self, run_id, emit, store=None, initial_state=None):
        raise RuntimeError("setup failed")


def test_runner_converts_escaping_errors_to_final_event() -> None:
    run = PipelineRunner(ExplodingMachine()).run_sync("anything")

    events = list(run.channel)
    assert len(events) == 1
    assert events[0].stage_name == "pipeline"
    assert events[0].status == "failed"
    assert events[0].message == "Pipeline error: setup failed"
    assert events[0].task_id == run.run_id
    assert run.error == "setup failed"
    assert run.channel.closed
