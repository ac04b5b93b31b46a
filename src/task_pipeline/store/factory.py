"""Resolve the configured store backend."""

from __future__ import annotations

import logging

from task_pipeline.config.settings import Settings
from task_pipeline.store.base import TaskStore
from task_pipeline.store.memory import InMemoryTaskStore
from task_pipeline.store.postgres import PostgresTaskStore
from task_pipeline.store.sqlite import SQLiteTaskStore

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("memory", "sqlite", "postgres")


def build_task_store(settings: Settings) -> TaskStore:
    """Build and migrate the backend named by ``settings.store_backend``."""
    backend = settings.store_backend.strip().lower()
    store: TaskStore
    if backend == "memory":
        store = InMemoryTaskStore()
    elif backend == "sqlite":
        store = SQLiteTaskStore(settings.resolved_sqlite_path())
    elif backend == "postgres":
        database_url = settings.resolved_database_url()
        if not database_url:
            raise RuntimeError(
                "Missing database URL. Set TASK_PIPELINE_DATABASE_URL "
                "or DATABASE_URL when TASK_PIPELINE_STORE_BACKEND=postgres."
            )
        store = PostgresTaskStore(database_url)
    else:
        raise ValueError(
            f"Unknown store backend '{settings.store_backend}'. "
            f"Expected one of: {', '.join(STORE_BACKENDS)}"
        )

    store.migrate()
    logger.info("store event=ready backend=%s", backend)
    return store
