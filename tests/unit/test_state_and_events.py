import json
import threading

import pytest

from task_pipeline.models import ProgressEvent
from task_pipeline.pipeline.events import (
    SSE_DONE,
    ChannelClosedError,
    EventChannel,
    format_sse,
    sse_stream,
)
from task_pipeline.pipeline.state import StateKeys, StateStore


def _event(message: str, status: str = "running") -> ProgressEvent:
    return ProgressEvent(task_id="run-1", stage_name="parse", status=status, message=message)


def test_state_store_get_set_and_snapshot_isolation() -> None:
    state = StateStore({StateKeys.RAW_INPUT: "hello"})
    assert state.get(StateKeys.RAW_INPUT) == "hello"
    assert state.get(StateKeys.TASKS) is None
    assert state.get(StateKeys.TASKS, []) == []
    assert StateKeys.RAW_INPUT in state
    assert not state.has(StateKeys.TASKS)

    snapshot = state.snapshot()
    state.set(StateKeys.TASKS, ["x"])
    assert StateKeys.TASKS not in snapshot
    assert state.has(StateKeys.TASKS)


def test_progress_event_is_immutable() -> None:
    event = _event("Running")
    with pytest.raises(Exception):
        event.message = "changed"  # type: ignore[misc]


def test_channel_delivers_in_emit_order_then_ends() -> None:
    channel = EventChannel()
    for idx in range(5):
        channel.emit(_event(f"event {idx}"))
    channel.close()

    assert [event.message for event in channel] == [f"event {idx}" for idx in range(5)]
    assert channel.emitted == 5
    assert channel.closed


def test_channel_rejects_emit_after_close_and_close_is_idempotent() -> None:
    channel = EventChannel()
    channel.close()
    channel.close()
    with pytest.raises(ChannelClosedError):
        channel.emit(_event("late"))
    assert list(channel) == []


def test_channel_streams_to_concurrent_consumer() -> None:
    channel = EventChannel()
    received: list[str] = []

    consumer = threading.Thread(target=lambda: received.extend(e.message for e in channel))
    consumer.start()
    for idx in range(50):
        channel.emit(_event(str(idx)))
    channel.close()
    consumer.join(timeout=5)

    assert not consumer.is_alive()
    assert received == [str(idx) for idx in range(50)]


def test_sse_stream_frames_events_and_end_marker() -> None:
    channel = EventChannel()
    channel.emit(_event("Running Parsing tasks"))
    channel.close()

    frames = list(sse_stream(channel))
    assert frames[-1] == SSE_DONE == "data: [DONE]\n\n"
    assert frames[0].startswith("data: ") and frames[0].endswith("\n\n")
    payload = json.loads(frames[0][len("data: ") :])
    assert payload["message"] == "Running Parsing tasks"
    assert payload["stage_name"] == "parse"
    assert payload["attempt"] == 1
    assert format_sse(_event("x")).count("\n\n") == 1
