"""PostgreSQL-backed store with automatic table migration."""

from __future__ import annotations

import threading
from typing import Any

from task_pipeline.models import TaskPage, TaskRecord
from task_pipeline.store.base import apply_patch, build_page, page_offset
from task_pipeline.store.rows import COLUMNS, record_to_columns, row_to_record

_UPSERT_SQL = (
    f"INSERT INTO tasks ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join(f'%({column})s' for column in COLUMNS)}) "
    "ON CONFLICT (id) DO UPDATE SET "
    + ", ".join(f"{column} = EXCLUDED.{column}" for column in COLUMNS if column != "id")
)


class PostgresTaskStore:
    """Persist task records in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("TASK_PIPELINE_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    pipeline_stage TEXT NOT NULL,
                    workflow_status TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    domain TEXT NOT NULL DEFAULT '',
                    urls_json JSONB,
                    ambiguities_json JSONB,
                    category_json JSONB,
                    priority_json JSONB,
                    action_plan_json JSONB,
                    category_name TEXT,
                    priority_level TEXT,
                    error TEXT,
                    events_json JSONB,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_pipeline_stage
                ON tasks(pipeline_stage)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_workflow_status
                ON tasks(workflow_status)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_created_at
                ON tasks(created_at DESC)
                """)
            conn.commit()

    def save(self, record: TaskRecord) -> TaskRecord:
        with self._lock, self._connect() as conn:
            conn.execute(_UPSERT_SQL, self._columns(record))
            conn.commit()
        return record.model_copy(deep=True)

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = %s", (task_id,)).fetchone()
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
            clauses.append("category_name = %s")
            params.append(category.lower())
        if priority:
            clauses.append("priority_level = %s")
            params.append(priority.lower())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._lock, self._connect() as conn:
            count_row = conn.execute(
                f"SELECT COUNT(*) AS total FROM tasks {where}", params
            ).fetchone()
            rows = conn.execute(
                f"SELECT * FROM tasks {where} ORDER BY created_at DESC LIMIT %s OFFSET %s",
                [*params, page_size, offset],
            ).fetchall()
        total = int(count_row["total"]) if count_row is not None else 0
        items = [row_to_record(row) for row in rows]
        return build_page(items, total=total, page=page, page_size=page_size)

    def update(self, task_id: str, patch: dict[str, Any]) -> TaskRecord:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = %s FOR UPDATE", (task_id,)
            ).fetchone()
            if row is None:
                raise KeyError(f"Task {task_id} does not exist")
            updated = apply_patch(row_to_record(row), patch)
            conn.execute(_UPSERT_SQL, self._columns(updated))
            conn.commit()
        return updated

    def delete(self, task_id: str) -> bool:
        with self._lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = %s", (task_id,))
            conn.commit()
        return cursor.rowcount > 0

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    def _columns(self, record: TaskRecord) -> dict[str, Any]:
        return record_to_columns(
            record, wrap_json=self._json_wrapper, format_datetime=lambda value: value
        )

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "task-pipeline[postgres]"'
            ) from exc
        return psycopg, dict_row, Json
