import sqlite3
from datetime import datetime, timedelta

import pytest

from todo_api.db import SQLiteRepository, apply_migrations
from todo_api.repositories import InMemoryRepository, Repository

from .helpers import NOW, FixedClock, make_input


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path, clock: FixedClock) -> Repository:
    if request.param == "memory":
        return InMemoryRepository(clock)
    repo = SQLiteRepository(str(tmp_path / "data" / "tasks.db"), clock)
    repo.migrate()
    return repo


class TestRepositoryContract:
    def test_create_assigns_ids_and_created_at(self, store):
        first = store.create(make_input(title="One"))
        second = store.create(make_input(title="Two"))
        assert second > first

        item = store.get_by_id(first)
        assert item["id"] == first
        assert item["title"] == "One"
        assert item["description"] == "Quarterly numbers"
        assert item["due_date"] == NOW + timedelta(days=2)
        assert item["created_at"] == NOW
        assert item["updated_at"] is None
        assert item["is_completed"] is False

    def test_create_clamps_and_completes(self, store):
        task_id = store.create(make_input(completion_percentage=150))
        item = store.get_by_id(task_id)
        assert item["completion_percentage"] == 100
        assert item["is_completed"] is True

    def test_get_all_in_id_order(self, store):
        ids = [store.create(make_input(title=f"Task {i}")) for i in range(3)]
        assert [t["id"] for t in store.get_all()] == ids

    def test_get_by_id_missing(self, store):
        assert store.get_by_id(12345) is None

    def test_get_incoming(self, store):
        late = store.create(make_input(title="late", due_in=timedelta(hours=6)))
        early = store.create(make_input(title="early", due_in=timedelta(hours=1)))
        store.create(make_input(title="done", due_in=timedelta(hours=2), completion_percentage=100))
        store.create(make_input(title="outside", due_in=timedelta(days=3)))

        start, end = datetime(2025, 1, 10), datetime(2025, 1, 10, 23, 59, 59)
        assert [t["id"] for t in store.get_incoming(start, end)] == [early, late]

    def test_get_incoming_bounds_are_inclusive(self, store):
        start, end = datetime(2025, 1, 11), datetime(2025, 1, 11, 23, 59, 59)
        at_start = store.create(make_input(due_in=start - NOW))
        at_end = store.create(make_input(due_in=end - NOW))
        store.create(make_input(due_in=end - NOW + timedelta(seconds=1)))
        assert [t["id"] for t in store.get_incoming(start, end)] == [at_start, at_end]

    def test_update_replaces_fields(self, store, clock):
        task_id = store.create(make_input())
        item = store.get_by_id(task_id)
        item["title"] = "Changed"
        item["description"] = "New description"
        item["due_date"] = NOW + timedelta(days=9)
        item["completion_percentage"] = 70
        clock.advance(hours=3)

        assert store.update(item) is True
        stored = store.get_by_id(task_id)
        assert stored["title"] == "Changed"
        assert stored["description"] == "New description"
        assert stored["due_date"] == NOW + timedelta(days=9)
        assert stored["completion_percentage"] == 70
        assert stored["updated_at"] == NOW + timedelta(hours=3)
        assert stored["created_at"] == NOW

    def test_update_applies_completion_rule(self, store):
        task_id = store.create(make_input())
        item = store.get_by_id(task_id)
        item["completion_percentage"] = 120
        assert store.update(item) is True
        stored = store.get_by_id(task_id)
        assert stored["completion_percentage"] == 100
        assert stored["is_completed"] is True

    def test_update_missing(self, store):
        task_id = store.create(make_input())
        item = store.get_by_id(task_id)
        item["id"] = 999
        assert store.update(item) is False

    def test_set_percent_complete(self, store, clock):
        task_id = store.create(make_input())
        clock.advance(minutes=1)
        assert store.set_percent_complete(task_id, 35) is True
        stored = store.get_by_id(task_id)
        assert stored["completion_percentage"] == 35
        assert stored["is_completed"] is False
        assert stored["updated_at"] == NOW + timedelta(minutes=1)

        assert store.set_percent_complete(task_id, 140) is True
        stored = store.get_by_id(task_id)
        assert stored["completion_percentage"] == 100
        assert stored["is_completed"] is True

    def test_set_percent_complete_missing(self, store):
        assert store.set_percent_complete(999, 10) is False

    def test_mark_as_done(self, store):
        task_id = store.create(make_input(completion_percentage=20))
        assert store.mark_as_done(task_id) is True
        stored = store.get_by_id(task_id)
        assert stored["is_completed"] is True
        assert stored["completion_percentage"] == 100
        assert stored["updated_at"] == NOW
        assert store.mark_as_done(999) is False

    def test_delete(self, store):
        task_id = store.create(make_input())
        assert store.delete(task_id) is True
        assert store.get_by_id(task_id) is None
        assert store.delete(task_id) is False

    def test_returned_items_are_copies(self, store):
        task_id = store.create(make_input())
        item = store.get_by_id(task_id)
        item["title"] = "Mutated outside"
        assert store.get_by_id(task_id)["title"] == "Write report"


class TestSQLitePersistence:
    def test_data_survives_new_repository_instance(self, tmp_path, clock):
        path = str(tmp_path / "tasks.db")
        repo = SQLiteRepository(path, clock)
        repo.migrate()
        task_id = repo.create(make_input(title="Persisted"))

        reopened = SQLiteRepository(path, clock)
        reopened.migrate()
        assert reopened.get_by_id(task_id)["title"] == "Persisted"


class _FlakyRepository:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.attempts = 0

    def migrate(self) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise sqlite3.OperationalError("database is locked")


class TestApplyMigrations:
    def test_succeeds_first_time(self):
        repo = _FlakyRepository(failures=0)
        delays = []
        apply_migrations(repo, max_retries=5, base_delay=2.0, sleep=delays.append)
        assert repo.attempts == 1
        assert delays == []

    def test_retries_with_exponential_backoff(self):
        repo = _FlakyRepository(failures=3)
        delays = []
        apply_migrations(repo, max_retries=5, base_delay=2.0, sleep=delays.append)
        assert repo.attempts == 4
        assert delays == [2.0, 4.0, 8.0]

    def test_reraises_after_last_attempt(self, caplog):
        repo = _FlakyRepository(failures=10)
        delays = []
        with pytest.raises(sqlite3.OperationalError):
            apply_migrations(repo, max_retries=3, base_delay=2.0, sleep=delays.append)
        assert repo.attempts == 3
        assert delays == [2.0, 4.0]
        assert "Giving up on database migration after 3 attempts" in caplog.text

    def test_migrates_real_database(self, tmp_path):
        repo = SQLiteRepository(str(tmp_path / "tasks.db"))
        apply_migrations(repo, sleep=lambda _: None)
        assert repo.get_all() == []
