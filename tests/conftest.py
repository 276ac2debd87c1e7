from __future__ import annotations

import os
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

# Default to the memory backend so importing the app touches no files
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_api.clock import get_clock  # noqa: E402
from todo_api.main import app  # noqa: E402
from todo_api.repositories import get_repository  # noqa: E402

from .helpers import FixedClock, RecordingRepository  # noqa: E402


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def repo(clock: FixedClock) -> RecordingRepository:
    return RecordingRepository(clock)


@pytest.fixture()
def client(repo: RecordingRepository, clock: FixedClock) -> Iterator[TestClient]:
    """
    TestClient with a fresh in-memory repository and a pinned clock per test.
    """
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
