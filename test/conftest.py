from datetime import datetime, timezone

import pytest

from ai_todo.errors import StorageError
from ai_todo.models import UserContext
from llm.schemas import TaskCandidate
from storage.task_store import InMemoryTaskStore

# Wednesday
FIXED_NOW = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.calls = []

    def generate(self, *, system: str, user: str) -> str:
        self.calls.append({"system": system, "user": user})
        return self._response_text


class FakeExtractor:
    """Stands in for TaskExtractor; returns a fixed candidate or raises."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def extract(self, text: str) -> TaskCandidate:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.result


class CountingStore(InMemoryTaskStore):
    def __init__(self, fail_with=None):
        super().__init__()
        self.fail_with = fail_with
        self.create_calls = 0

    async def create(self, record):
        self.create_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return await super().create(record)


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def fake_extractor_factory():
    def _make(title="Lunch with Mara", participants=None, due_date_text=None, error=None):
        result = None
        if error is None:
            result = TaskCandidate(
                title=title,
                participants=participants or [],
                due_date_text=due_date_text,
            )
        return FakeExtractor(result=result, error=error)
    return _make


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def broken_store():
    return CountingStore(fail_with=StorageError("database unavailable"))


@pytest.fixture
def family_context():
    return UserContext(user_id="u-1", group_key="smiths")


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def flaky_store():
    return CountingStore(fail_with=ConnectionError("connection reset by peer"))


class UnreachableStore(InMemoryTaskStore):
    """Reads and deletes fail the way a dropped database connection does."""

    async def get(self, task_id):
        raise ConnectionError("connection refused")

    async def list_by_group(self, group_key):
        raise ConnectionError("connection refused")

    async def delete(self, task_id):
        raise ConnectionError("connection refused")


@pytest.fixture
def unreachable_store():
    return UnreachableStore()
