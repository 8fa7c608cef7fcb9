"""
Task store interface and the in-memory implementation.

The store is the only place tasks live; the API never caches them. Live
updates are modelled as `subscribe(group_key)`: an endless async iterator
that yields the full task list for the group once immediately and again
after every change to that group.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, List, Optional

from ai_todo.models import TaskRecord

logger = logging.getLogger(__name__)


class TaskStore(ABC):

    @abstractmethod
    async def create(self, record: TaskRecord) -> TaskRecord:
        """Persist a new task and return it with its assigned id."""

    @abstractmethod
    async def get(self, task_id: str) -> Optional[TaskRecord]:
        ...

    @abstractmethod
    async def list_by_group(self, group_key: str) -> List[TaskRecord]:
        ...

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        """Remove a task. Returns False when it did not exist."""

    @abstractmethod
    def subscribe(self, group_key: str) -> AsyncIterator[List[TaskRecord]]:
        ...

    @abstractmethod
    async def get_membership(self, user_id: str) -> Optional[str]:
        """Family the user belongs to, if any."""

    @abstractmethod
    async def set_membership(self, user_id: str, group_key: str) -> None:
        ...

    async def close(self) -> None:
        return None


class InMemoryTaskStore(TaskStore):
    """Process-local store. Used for development and tests."""

    def __init__(self):
        self._tasks: Dict[str, TaskRecord] = {}
        self._members: Dict[str, str] = {}
        self._changed = asyncio.Condition()
        self._versions: Dict[str, int] = {}

    async def _notify(self, group_key: str) -> None:
        async with self._changed:
            self._versions[group_key] = self._versions.get(group_key, 0) + 1
            self._changed.notify_all()

    async def create(self, record: TaskRecord) -> TaskRecord:
        stored = record.model_copy(update={"id": uuid.uuid4().hex}, deep=True)
        self._tasks[stored.id] = stored
        logger.debug(f"Stored task {stored.id} in group {stored.group_key}")
        await self._notify(stored.group_key)
        return stored.model_copy(deep=True)

    async def get(self, task_id: str) -> Optional[TaskRecord]:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    async def list_by_group(self, group_key: str) -> List[TaskRecord]:
        return [t.model_copy(deep=True) for t in self._tasks.values() if t.group_key == group_key]

    async def delete(self, task_id: str) -> bool:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False
        await self._notify(task.group_key)
        return True

    async def subscribe(self, group_key: str) -> AsyncIterator[List[TaskRecord]]:
        seen = self._versions.get(group_key, 0)
        yield await self.list_by_group(group_key)
        while True:
            async with self._changed:
                await self._changed.wait_for(
                    lambda: self._versions.get(group_key, 0) != seen
                )
                seen = self._versions.get(group_key, 0)
            yield await self.list_by_group(group_key)

    async def get_membership(self, user_id: str) -> Optional[str]:
        return self._members.get(user_id)

    async def set_membership(self, user_id: str, group_key: str) -> None:
        self._members[user_id] = group_key
