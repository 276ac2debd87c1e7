from __future__ import annotations

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Generator, List, Optional

from .clock import Clock, SystemClock
from .models import TaskItem, clamp_percentage
from .repositories import Repository
from .schemas import TaskItemCreateUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "task_items"
    id: str = "id"
    title: str = "title"
    description: str = "description"
    due_date: str = "due_date"
    completion_percentage: str = "completion_percentage"
    is_completed: str = "is_completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()


def _fmt_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value is not None else None


class SQLiteRepository(Repository):
    """
    SQLite repository implementing the Repository interface.

    Each call opens its own connection and commits on success. Datetimes are
    stored as ISO8601 text, which keeps due_date range queries ordered.
    The schema is created by migrate(), normally through apply_migrations().
    """

    def __init__(self, db_path: str, clock: Optional[Clock] = None) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._clock = clock or SystemClock()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def migrate(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} VARCHAR(100) NOT NULL,
                    {_COLS.description} VARCHAR(500) NOT NULL DEFAULT '',
                    {_COLS.due_date} TEXT NOT NULL,
                    {_COLS.completion_percentage} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.is_completed} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_due_date "
                f"ON {_COLS.table}({_COLS.due_date}, {_COLS.is_completed})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TaskItem:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "description": row[_COLS.description] or "",
            "due_date": _parse_dt(row[_COLS.due_date]),  # type: ignore[typeddict-item]
            "completion_percentage": int(row[_COLS.completion_percentage]),
            "is_completed": bool(row[_COLS.is_completed]),
            "created_at": _parse_dt(row[_COLS.created_at]),  # type: ignore[typeddict-item]
            "updated_at": _parse_dt(row[_COLS.updated_at]),
        }

    def get_all(self) -> List[TaskItem]:
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.id}").fetchall()
            return [self._row_to_entity(r) for r in rows]

    def get_by_id(self, task_id: int) -> Optional[TaskItem]:
        with self._conn() as conn:
            row = conn.execute(f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,)).fetchone()
            return self._row_to_entity(row) if row else None

    def get_incoming(self, start: datetime, end: datetime) -> List[TaskItem]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {_COLS.table}
                WHERE {_COLS.due_date} >= ? AND {_COLS.due_date} <= ? AND {_COLS.is_completed} = 0
                ORDER BY {_COLS.due_date} ASC, {_COLS.id} ASC
                """,
                (_fmt_dt(start), _fmt_dt(end)),
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def create(self, data: TaskItemCreateUpdate) -> int:
        if data.due_date is None:
            raise ValueError("due_date is required to create a task")
        percent, completed = clamp_percentage(data.completion_percentage)
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.title}, {_COLS.description}, {_COLS.due_date},
                    {_COLS.completion_percentage}, {_COLS.is_completed}, {_COLS.created_at})
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    data.title,
                    data.description,
                    _fmt_dt(data.due_date),
                    percent,
                    1 if completed else 0,
                    _fmt_dt(self._clock.now()),
                ),
            )
            new_id = cur.lastrowid
            assert new_id is not None
            return int(new_id)

    def update(self, item: TaskItem) -> bool:
        percent, completes = clamp_percentage(item["completion_percentage"])
        completed = item["is_completed"] or completes
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.title} = ?, {_COLS.description} = ?, {_COLS.due_date} = ?,
                    {_COLS.completion_percentage} = ?, {_COLS.is_completed} = ?, {_COLS.updated_at} = ?
                WHERE {_COLS.id} = ?
                """,
                (
                    item["title"],
                    item["description"],
                    _fmt_dt(item["due_date"]),
                    percent,
                    1 if completed else 0,
                    _fmt_dt(self._clock.now()),
                    item["id"],
                ),
            )
            return cur.rowcount > 0

    def set_percent_complete(self, task_id: int, percent: int) -> bool:
        value, completes = clamp_percentage(percent)
        with self._conn() as conn:
            # A percentage below 100 leaves an existing completion flag untouched
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.completion_percentage} = ?,
                    {_COLS.is_completed} = CASE WHEN ? THEN 1 ELSE {_COLS.is_completed} END,
                    {_COLS.updated_at} = ?
                WHERE {_COLS.id} = ?
                """,
                (value, 1 if completes else 0, _fmt_dt(self._clock.now()), task_id),
            )
            return cur.rowcount > 0

    def mark_as_done(self, task_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.is_completed} = 1, {_COLS.completion_percentage} = 100, {_COLS.updated_at} = ?
                WHERE {_COLS.id} = ?
                """,
                (_fmt_dt(self._clock.now()), task_id),
            )
            return cur.rowcount > 0

    def delete(self, task_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0


# PUBLIC_INTERFACE
def apply_migrations(
    repo: SQLiteRepository,
    max_retries: int = 5,
    base_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Run the schema migration, retrying with exponential backoff.

    After the n-th failed attempt the loop waits base_delay ** n seconds.
    The last error is re-raised once max_retries attempts have failed.
    """
    attempts = max(max_retries, 1)
    for attempt in range(1, attempts + 1):
        try:
            logger.info("Migrating task database (attempt %d/%d)", attempt, attempts)
            repo.migrate()
        except sqlite3.Error:
            logger.exception("Database migration failed (attempt %d/%d)", attempt, attempts)
            if attempt == attempts:
                logger.error("Giving up on database migration after %d attempts", attempts)
                raise
            delay = base_delay ** attempt
            logger.info("Retrying migration in %.1f seconds", delay)
            sleep(delay)
        else:
            logger.info("Database migration completed")
            return
