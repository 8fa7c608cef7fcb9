import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from ai_todo.errors import StorageError
from ai_todo.models import TaskRecord
from storage import postgres_task_store
from storage.postgres_task_store import PostgresTaskStore


def _record():
    now = datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)
    return TaskRecord(
        title="Lunch with Mara",
        participants=["Mara"],
        due_instant=datetime(2026, 10, 23, 12, 0, tzinfo=timezone.utc),
        due_iso="2026-10-23T12:00:00+00:00",
        due_text_raw="next Friday at noon",
        source="ai",
        group_key="smiths",
        created_at=now,
        updated_at=now,
    )


def _row(row_id=None, **overrides):
    row = _record().model_dump()
    row["id"] = row_id or uuid.uuid4()
    row.update(overrides)
    return row


class FakeConnection:
    """Answers the group listing query from a shared list of rows."""

    def __init__(self, rows):
        self.rows = rows
        self.queries = []
        self.listeners = []
        self.closed = False

    async def fetch(self, query, *args):
        self.queries.append((query, args))
        return [r for r in self.rows if r["group_key"] == args[0]]

    async def add_listener(self, channel, callback):
        self.listeners.append((channel, callback))

    async def remove_listener(self, channel, callback):
        self.listeners.remove((channel, callback))

    async def close(self):
        self.closed = True

    def notify(self, payload):
        for channel, callback in list(self.listeners):
            callback(self, 4242, channel, payload)


class BoundedPool:
    """Hands out at most `size` connections at a time, like asyncpg.Pool."""

    def __init__(self, rows, size=1):
        self.rows = rows
        self._slots = asyncio.Semaphore(size)

    @asynccontextmanager
    async def acquire(self):
        async with self._slots:
            yield FakeConnection(self.rows)


@pytest.fixture
def fake_db(monkeypatch):
    rows = []
    pool = BoundedPool(rows, size=1)
    listeners = []

    async def connect_listener():
        conn = FakeConnection(rows)
        listeners.append(conn)
        return conn

    monkeypatch.setattr(postgres_task_store.db, "get_connection", pool.acquire)
    monkeypatch.setattr(postgres_task_store.db, "connect_listener", connect_listener)
    return rows, listeners


async def test_create_maps_row_back_to_record(monkeypatch):
    row_id = uuid.uuid4()
    seen = {}

    async def fake_fetchrow(query, *args):
        seen["query"] = query
        seen["args"] = args
        return _row(row_id, pg_notify="")

    monkeypatch.setattr(postgres_task_store.db, "fetchrow", fake_fetchrow)

    stored = await PostgresTaskStore().create(_record())

    assert stored.id == str(row_id)
    assert stored.due_instant == _record().due_instant
    assert "pg_notify('tasks_changed'" in seen["query"]
    assert seen["args"][6] == "smiths"


async def test_create_failure_is_storage_error(monkeypatch):
    async def failing_fetchrow(query, *args):
        raise ConnectionError("server closed the connection")

    monkeypatch.setattr(postgres_task_store.db, "fetchrow", failing_fetchrow)

    with pytest.raises(StorageError):
        await PostgresTaskStore().create(_record())


async def test_malformed_ids_are_not_found():
    store = PostgresTaskStore()
    assert await store.get("not-a-uuid") is None
    assert await store.delete("not-a-uuid") is False


async def test_list_by_group_filters_and_maps_rows(fake_db):
    rows, _ = fake_db
    rows.extend([_row(), _row(title="Walk dog"), _row(group_key="joneses")])

    tasks = await PostgresTaskStore().list_by_group("smiths")

    assert sorted(t.title for t in tasks) == ["Lunch with Mara", "Walk dog"]
    assert all(t.group_key == "smiths" for t in tasks)
    assert all(t.id for t in tasks)


async def test_delete_notifies_and_reports_missing_rows(monkeypatch):
    results = [[{"pg_notify": ""}], []]
    seen = []

    class DeleteConnection:
        async def fetch(self, query, *args):
            seen.append((query, args))
            return results.pop(0)

    @asynccontextmanager
    async def fake_get_connection():
        yield DeleteConnection()

    monkeypatch.setattr(postgres_task_store.db, "get_connection", fake_get_connection)
    key = uuid.uuid4()
    store = PostgresTaskStore()

    assert await store.delete(str(key)) is True
    assert await store.delete(str(key)) is False
    assert "DELETE FROM tasks" in seen[0][0]
    assert "pg_notify('tasks_changed'" in seen[0][0]
    assert seen[0][1] == (key,)


async def test_open_streams_do_not_hold_pool_connections(fake_db):
    rows, listeners = fake_db
    rows.append(_row())
    store = PostgresTaskStore()

    # More open streams than the pool has connections.
    first = store.subscribe("smiths")
    second = store.subscribe("smiths")
    a = await asyncio.wait_for(first.__anext__(), timeout=1)
    b = await asyncio.wait_for(second.__anext__(), timeout=1)
    assert [t.title for t in a] == ["Lunch with Mara"]
    assert [t.title for t in b] == ["Lunch with Mara"]

    listed = await asyncio.wait_for(store.list_by_group("smiths"), timeout=1)
    assert len(listed) == 1

    await first.aclose()
    await second.aclose()
    assert len(listeners) == 2
    assert all(conn.closed and not conn.listeners for conn in listeners)


async def test_subscribe_emits_snapshot_per_notify_burst(fake_db):
    rows, listeners = fake_db
    snapshots = PostgresTaskStore().subscribe("smiths")

    assert await asyncio.wait_for(snapshots.__anext__(), timeout=1) == []
    listener = listeners[0]
    assert [channel for channel, _ in listener.listeners] == ["tasks_changed"]

    rows.append(_row())
    listener.notify("joneses")
    listener.notify("smiths")
    listener.notify("smiths")

    second = await asyncio.wait_for(snapshots.__anext__(), timeout=1)
    assert [t.title for t in second] == ["Lunch with Mara"]
    # Initial read plus one read for the whole burst.
    assert len(listener.queries) == 2

    await snapshots.aclose()
    assert listener.closed
    assert listener.listeners == []
