"""Ordered delivery of progress events from a run to one consumer."""

from __future__ import annotations

import json
import queue
import threading
from typing import Callable, Iterator

from task_pipeline.models import ProgressEvent

EventSink = Callable[[ProgressEvent], None]

SSE_DONE = "data: [DONE]\n\n"


class ChannelClosedError(RuntimeError):
    pass


class EventChannel:
    """FIFO channel: producers call ``emit``; one consumer iterates until ``close``.

    Unbounded, so a slow or disconnected consumer never blocks the run.
    """

    _END = object()

    def __init__(self) -> None:
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def emitted(self) -> int:
        return self._emitted

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Cannot emit on a closed event channel")
            self._emitted += 1
            self._queue.put(event)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(self._END)

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is self._END:
                return
            yield item  # type: ignore[misc]


def format_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.model_dump(mode='json'))}\n\n"


def sse_stream(channel: EventChannel) -> Iterator[str]:
    for event in channel:
        yield format_sse(event)
    yield SSE_DONE
