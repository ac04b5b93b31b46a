"""Stage contract executed by the state machine.

A stage never retries itself: it either returns a short summary or raises, and
the state machine owns the retry budget. Record-level failures are expressed by
marking individual records failed, never by raising.
"""

from __future__ import annotations

from typing import Protocol

from task_pipeline.pipeline.events import EventSink
from task_pipeline.pipeline.state import StateStore

DEFAULT_MAX_RETRIES = 2


class Stage(Protocol):
    name: str
    label: str
    max_retries: int

    def execute(self, state: StateStore, emit: EventSink) -> str: ...
