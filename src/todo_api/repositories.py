from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import List, Optional

from .clock import Clock, SystemClock
from .models import TaskItem, apply_completion_rule, clamp_percentage
from .schemas import TaskItemCreateUpdate
from .settings import get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract repository contract for task storage backends.

    Operations on an absent id never raise: lookups return None and
    mutations return False.
    """

    @abstractmethod
    def get_all(self) -> List[TaskItem]:
        """Return every stored TaskItem in ascending id order."""

    @abstractmethod
    def get_by_id(self, task_id: int) -> Optional[TaskItem]:
        """Return a TaskItem by id, or None if not found."""

    @abstractmethod
    def get_incoming(self, start: datetime, end: datetime) -> List[TaskItem]:
        """
        Return incomplete TaskItems whose due_date lies within [start, end],
        ordered by due_date ascending.
        """

    @abstractmethod
    def create(self, data: TaskItemCreateUpdate) -> int:
        """Persist a new TaskItem built from data and return its id."""

    @abstractmethod
    def update(self, item: TaskItem) -> bool:
        """Replace all mutable fields of the stored item with item's. Return True if a row was affected."""

    @abstractmethod
    def set_percent_complete(self, task_id: int, percent: int) -> bool:
        """Set completion_percentage (clamped to 100, completing the item at 100). Return True if affected."""

    @abstractmethod
    def mark_as_done(self, task_id: int) -> bool:
        """Flag the item completed at 100%. Return True if affected."""

    @abstractmethod
    def delete(self, task_id: int) -> bool:
        """Delete a TaskItem by id. Return True if deleted, False if not found."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskItem] = {}
        self._next_id = 1
        self._clock = clock or SystemClock()

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def get_all(self) -> List[TaskItem]:
        with self._lock:
            return [self._items[k].copy() for k in sorted(self._items)]

    def get_by_id(self, task_id: int) -> Optional[TaskItem]:
        with self._lock:
            item = self._items.get(task_id)
            return None if item is None else item.copy()

    def get_incoming(self, start: datetime, end: datetime) -> List[TaskItem]:
        with self._lock:
            items = [
                t.copy()
                for t in self._items.values()
                if not t["is_completed"] and start <= t["due_date"] <= end
            ]
        return sorted(items, key=lambda t: (t["due_date"], t["id"]))

    def create(self, data: TaskItemCreateUpdate) -> int:
        if data.due_date is None:
            raise ValueError("due_date is required to create a task")
        entity: TaskItem = {
            "id": self._allocate_id(),
            "title": data.title,
            "description": data.description,
            "due_date": data.due_date,
            "completion_percentage": data.completion_percentage,
            "is_completed": False,
            "created_at": self._clock.now(),
            "updated_at": None,
        }
        apply_completion_rule(entity)
        with self._lock:
            self._items[entity["id"]] = entity
        return entity["id"]

    def update(self, item: TaskItem) -> bool:
        with self._lock:
            existing = self._items.get(item["id"])
            if existing is None:
                return False

            updated = existing.copy()
            updated["title"] = item["title"]
            updated["description"] = item["description"]
            updated["due_date"] = item["due_date"]
            updated["completion_percentage"] = item["completion_percentage"]
            updated["is_completed"] = item["is_completed"]
            updated["updated_at"] = self._clock.now()
            apply_completion_rule(updated)

            self._items[item["id"]] = updated
            return True

    def set_percent_complete(self, task_id: int, percent: int) -> bool:
        value, completes = clamp_percentage(percent)
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return False
            existing["completion_percentage"] = value
            if completes:
                existing["is_completed"] = True
            existing["updated_at"] = self._clock.now()
            return True

    def mark_as_done(self, task_id: int) -> bool:
        with self._lock:
            existing = self._items.get(task_id)
            if existing is None:
                return False
            existing["is_completed"] = True
            existing["completion_percentage"] = 100
            existing["updated_at"] = self._clock.now()
            return True

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_repository() -> Repository:
    """
    Factory returning the process-wide repository configured by settings.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository, migrated with retries on first use
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository, apply_migrations

        repo = SQLiteRepository(settings.sqlite_db_path)
        apply_migrations(
            repo,
            max_retries=settings.migration_max_retries,
            base_delay=settings.migration_retry_base_delay,
        )
        return repo
    logger.info("Using in-memory task repository")
    return InMemoryRepository()
