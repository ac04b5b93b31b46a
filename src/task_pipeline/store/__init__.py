"""Durable task stores."""

from task_pipeline.store.base import TaskStore
from task_pipeline.store.factory import build_task_store
from task_pipeline.store.memory import InMemoryTaskStore
from task_pipeline.store.postgres import PostgresTaskStore
from task_pipeline.store.sqlite import SQLiteTaskStore

__all__ = [
    "InMemoryTaskStore",
    "PostgresTaskStore",
    "SQLiteTaskStore",
    "TaskStore",
    "build_task_store",
]
