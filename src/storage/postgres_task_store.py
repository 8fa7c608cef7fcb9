"""
PostgreSQL-backed task store.

Every create/delete emits NOTIFY on the `tasks_changed` channel with the
task's group key as payload; subscribers LISTEN on a dedicated connection
and re-read the group's tasks whenever their group is mentioned.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator, List, Optional

from ai_todo.errors import StorageError
from ai_todo.models import TaskRecord
from storage import db
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)

CHANNEL = "tasks_changed"

_COLUMNS = (
    "id, title, participants, due_instant, due_iso, due_text_raw, "
    "source, group_key, created_at, updated_at"
)


def _record_from_row(row) -> TaskRecord:
    return TaskRecord(
        id=str(row["id"]),
        title=row["title"],
        participants=list(row["participants"] or []),
        due_instant=row["due_instant"],
        due_iso=row["due_iso"],
        due_text_raw=row["due_text_raw"],
        source=row["source"],
        group_key=row["group_key"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


_LIST_QUERY = f"SELECT {_COLUMNS} FROM tasks WHERE group_key = $1"


async def _snapshot(conn, group_key: str) -> List[TaskRecord]:
    rows = await conn.fetch(_LIST_QUERY, group_key)
    return [_record_from_row(r) for r in rows]


def _parse_id(task_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(task_id)
    except ValueError:
        return None


class PostgresTaskStore(TaskStore):

    async def create(self, record: TaskRecord) -> TaskRecord:
        query = f"""
            WITH ins AS (
                INSERT INTO tasks (
                    title, participants, due_instant, due_iso, due_text_raw,
                    source, group_key, created_at, updated_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING {_COLUMNS}
            )
            SELECT ins.*, pg_notify('{CHANNEL}', ins.group_key) FROM ins
        """
        try:
            row = await db.fetchrow(
                query,
                record.title,
                record.participants,
                record.due_instant,
                record.due_iso,
                record.due_text_raw,
                record.source,
                record.group_key,
                record.created_at,
                record.updated_at,
            )
        except Exception as e:
            logger.error(f"Failed to insert task: {e}")
            raise StorageError(f"failed to store task: {e}") from e

        stored = _record_from_row(row)
        logger.info(f"Stored task {stored.id} in group {stored.group_key}")
        return stored

    async def get(self, task_id: str) -> Optional[TaskRecord]:
        key = _parse_id(task_id)
        if key is None:
            return None
        row = await db.fetchrow(f"SELECT {_COLUMNS} FROM tasks WHERE id = $1", key)
        return _record_from_row(row) if row else None

    async def list_by_group(self, group_key: str) -> List[TaskRecord]:
        rows = await db.fetch(_LIST_QUERY, group_key)
        return [_record_from_row(r) for r in rows]

    async def delete(self, task_id: str) -> bool:
        key = _parse_id(task_id)
        if key is None:
            return False
        query = f"""
            WITH del AS (
                DELETE FROM tasks WHERE id = $1 RETURNING group_key
            )
            SELECT pg_notify('{CHANNEL}', del.group_key) FROM del
        """
        async with db.get_connection() as conn:
            rows = await conn.fetch(query, key)
        return len(rows) > 0

    async def subscribe(self, group_key: str) -> AsyncIterator[List[TaskRecord]]:
        changes: asyncio.Queue[str] = asyncio.Queue()

        def _on_notify(connection, pid, channel, payload):
            if payload == group_key:
                changes.put_nowait(payload)

        # Snapshots are read on the listener connection, never from the pool.
        conn = await db.connect_listener()
        try:
            await conn.add_listener(CHANNEL, _on_notify)
            try:
                yield await _snapshot(conn, group_key)
                while True:
                    await changes.get()
                    # Collapse bursts into a single snapshot.
                    while not changes.empty():
                        changes.get_nowait()
                    yield await _snapshot(conn, group_key)
            finally:
                await conn.remove_listener(CHANNEL, _on_notify)
        finally:
            await conn.close()

    async def get_membership(self, user_id: str) -> Optional[str]:
        return await db.fetchval(
            "SELECT group_key FROM users WHERE user_id = $1", user_id
        )

    async def set_membership(self, user_id: str, group_key: str) -> None:
        await db.fetchval(
            """
            INSERT INTO users (user_id, group_key) VALUES ($1, $2)
            ON CONFLICT (user_id)
            DO UPDATE SET group_key = EXCLUDED.group_key, updated_at = now()
            """,
            user_id,
            group_key,
        )

    async def close(self) -> None:
        await db.close_db_pool()
