"""Stage orchestration: state container, event channel, state machine and runner."""

from task_pipeline.pipeline.events import ChannelClosedError, EventChannel, EventSink, sse_stream
from task_pipeline.pipeline.factory import build_task_pipeline
from task_pipeline.pipeline.machine import StateMachine
from task_pipeline.pipeline.runner import PipelineRun, PipelineRunner
from task_pipeline.pipeline.stage import Stage
from task_pipeline.pipeline.state import StateKeys, StateStore

__all__ = [
    "ChannelClosedError",
    "EventChannel",
    "EventSink",
    "PipelineRun",
    "PipelineRunner",
    "Stage",
    "StateKeys",
    "StateMachine",
    "StateStore",
    "build_task_pipeline",
    "sse_stream",
]
