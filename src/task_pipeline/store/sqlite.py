"""SQLite-backed store, the default for local runs."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from task_pipeline.models import TaskPage, TaskRecord
from task_pipeline.store.base import apply_patch, build_page, page_offset
from task_pipeline.store.rows import COLUMNS, format_iso, record_to_columns, row_to_record

logger = logging.getLogger(__name__)

_UPSERT_SQL = (
    f"INSERT INTO tasks ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join(':' + column for column in COLUMNS)}) "
    "ON CONFLICT(id) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in COLUMNS if column != "id")
)


class SQLiteTaskStore:
    """Persist task records in a local SQLite file (WAL journal)."""

    def __init__(self, path: str | Path) -> None:
        if not str(path):
            raise ValueError("TASK_PIPELINE_SQLITE_PATH is required")
        self.path = Path(path)
        self._lock = threading.Lock()

    def migrate(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    pipeline_stage TEXT NOT NULL,
                    workflow_status TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    domain TEXT NOT NULL DEFAULT '',
                    urls_json TEXT,
                    ambiguities_json TEXT,
                    category_json TEXT,
                    priority_json TEXT,
                    action_plan_json TEXT,
                    category_name TEXT,
                    priority_level TEXT,
                    error TEXT,
                    events_json TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_pipeline_stage ON tasks(pipeline_stage)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_workflow_status ON tasks(workflow_status)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC)")
        logger.info("store=sqlite event=migrated path=%s", self.path)

    def save(self, record: TaskRecord) -> TaskRecord:
        with self._lock, self._connect() as conn:
            conn.execute(_UPSERT_SQL, self._columns(record))
        return record.model_copy(deep=True)

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return row_to_record(row)

    def list(
        self,
        page: int = 1,
        page_size: int = 10,
        category: str | None = None,
        priority: str | None = None,
    ) -> TaskPage:
        offset = page_offset(page, page_size)
        clauses: list[str] = []
        params: list[Any] = []
        if category:
            clauses.append("category_name = ?")
            params.append(category.lower())
        if priority:
            clauses.append("priority_level = ?")
            params.append(priority.lower())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._lock, self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM tasks {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM tasks {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
                [*params, page_size, offset],
            ).fetchall()
        items = [row_to_record(row) for row in rows]
        return build_page(items, total=int(total), page=page, page_size=page_size)

    def update(self, task_id: str, patch: dict[str, Any]) -> TaskRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                raise KeyError(f"Task {task_id} does not exist")
            updated = apply_patch(row_to_record(row), patch)
            conn.execute(_UPSERT_SQL, self._columns(updated))
        return updated

    def delete(self, task_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            return cursor.rowcount > 0

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _columns(record: TaskRecord) -> dict[str, Any]:
        return record_to_columns(record, wrap_json=json.dumps, format_datetime=format_iso)
