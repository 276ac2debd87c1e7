from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from todo_api.models import TaskItem
from todo_api.repositories import InMemoryRepository
from todo_api.schemas import TaskItemCreateUpdate

NOW = datetime(2025, 1, 10, 8, 0, 0)


class FixedClock:
    """Clock pinned to a given moment; advance() moves it forward."""

    def __init__(self, moment: datetime = NOW) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs: float) -> None:
        self.moment = self.moment + timedelta(**kwargs)


def make_input(
    title: str = "Write report",
    description: str = "Quarterly numbers",
    due_in: timedelta = timedelta(days=2),
    completion_percentage: int = 0,
    now: datetime = NOW,
) -> TaskItemCreateUpdate:
    return TaskItemCreateUpdate(
        title=title,
        description=description,
        due_date=now + due_in,
        completion_percentage=completion_percentage,
    )


class RecordingRepository(InMemoryRepository):
    """
    In-memory repository that records every mutating call.

    Setting fail_writes makes mutations report that no row was affected while
    lookups keep working, which simulates a row removed between lookup and write.
    """

    MUTATIONS = ("create", "update", "set_percent_complete", "mark_as_done", "delete")

    def __init__(self, clock: Optional[FixedClock] = None) -> None:
        super().__init__(clock)
        self.calls: List[Tuple[str, tuple]] = []
        self.fail_writes = False

    @property
    def mutations(self) -> List[str]:
        return [name for name, _ in self.calls if name in self.MUTATIONS]

    def create(self, data: TaskItemCreateUpdate) -> int:
        self.calls.append(("create", (data,)))
        return super().create(data)

    def update(self, item: TaskItem) -> bool:
        self.calls.append(("update", (dict(item),)))
        return False if self.fail_writes else super().update(item)

    def set_percent_complete(self, task_id: int, percent: int) -> bool:
        self.calls.append(("set_percent_complete", (task_id, percent)))
        return False if self.fail_writes else super().set_percent_complete(task_id, percent)

    def mark_as_done(self, task_id: int) -> bool:
        self.calls.append(("mark_as_done", (task_id,)))
        return False if self.fail_writes else super().mark_as_done(task_id)

    def delete(self, task_id: int) -> bool:
        self.calls.append(("delete", (task_id,)))
        return False if self.fail_writes else super().delete(task_id)


def field_errors(body: Dict) -> Dict[str, List[str]]:
    assert body["error"] == "ValidationError"
    return body["errors"]
