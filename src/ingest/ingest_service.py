import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from ai_todo.errors import (
    DateResolutionSoftFailure,
    ExtractionServiceError,
    ExtractionValidationError,
    InvalidRequestError,
    StorageError,
    TaskNotFoundError,
)
from ai_todo.models import ManualTaskIn, TaskRecord, UserContext
from api.metrics import (
    DUE_DATE_UNRESOLVED_TOTAL,
    EXTRACTION_FAILURES_TOTAL,
    TASKS_CREATED_TOTAL,
)
from dates.date_resolver import TASKS_TIMEZONE, get_zone, resolve_due_date
from extraction.task_extractor import TaskExtractor
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskIngestService:
    """Turns free text (or a manual form) into a stored task.

    Pipeline for natural language: validate -> extract -> resolve due date ->
    assemble -> persist. Strictly sequential, no retries, no rollback.
    """

    def __init__(
        self,
        store: TaskStore,
        extractor: Optional[TaskExtractor] = None,
        clock: Callable[[], datetime] = _utcnow,
        tz_name: Optional[str] = None,
    ):
        self.store = store
        self.extractor = extractor or TaskExtractor()
        self.clock = clock
        self.tz_name = tz_name or TASKS_TIMEZONE

    async def ingest(self, text: Any, context: UserContext) -> TaskRecord:
        if not isinstance(text, str) or not text.strip():
            raise InvalidRequestError("text required")

        # The provider call is blocking (httpx.Client), keep it off the event loop.
        try:
            candidate = await asyncio.to_thread(self.extractor.extract, text.strip())
        except ExtractionServiceError:
            EXTRACTION_FAILURES_TOTAL.labels(kind="service").inc()
            raise
        except ExtractionValidationError:
            EXTRACTION_FAILURES_TOTAL.labels(kind="validation").inc()
            raise

        now = self.clock()
        due_instant = None
        due_iso = None
        if candidate.due_date_text is not None:
            try:
                resolved = resolve_due_date(candidate.due_date_text, now, self.tz_name)
                due_instant, due_iso = resolved.instant, resolved.iso
            except DateResolutionSoftFailure as e:
                DUE_DATE_UNRESOLVED_TOTAL.inc()
                logger.warning(f"Keeping task without due date: {e}")

        record = TaskRecord(
            title=candidate.title,
            participants=candidate.participants,
            due_instant=due_instant,
            due_iso=due_iso,
            due_text_raw=candidate.due_date_text,
            source="ai",
            group_key=context.group_key,
            created_at=now,
            updated_at=now,
        )
        return await self._persist(record)

    async def create_manual(self, payload: ManualTaskIn, context: UserContext) -> TaskRecord:
        due_instant = None
        if payload.due is not None:
            try:
                due_instant = datetime.fromisoformat(payload.due)
            except ValueError as e:
                raise InvalidRequestError(f"invalid due date: {payload.due}") from e
            if due_instant.tzinfo is None:
                due_instant = due_instant.replace(tzinfo=get_zone(self.tz_name))
            due_instant = due_instant.astimezone(timezone.utc)

        now = self.clock()
        record = TaskRecord(
            title=payload.title,
            participants=payload.participants,
            due_instant=due_instant,
            due_iso=due_instant.isoformat() if due_instant else None,
            due_text_raw=None,
            source="manual",
            group_key=context.group_key,
            created_at=now,
            updated_at=now,
        )
        return await self._persist(record)

    async def _persist(self, record: TaskRecord) -> TaskRecord:
        try:
            stored = await self.store.create(record)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to store task: {e}")
            raise StorageError(f"failed to store task: {e}") from e

        TASKS_CREATED_TOTAL.labels(source=stored.source).inc()
        logger.info(
            f"Created {stored.source} task {stored.id} for group {stored.group_key}: "
            f"{stored.title!r} due={stored.due_iso}"
        )
        return stored

    async def _store_call(self, action: str, call: Awaitable[Any]) -> Any:
        try:
            return await call
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to {action}: {e}")
            raise StorageError(f"failed to {action}: {e}") from e

    async def list_tasks(self, context: UserContext) -> List[TaskRecord]:
        return await self._store_call("list tasks", self.store.list_by_group(context.group_key))

    async def delete_task(self, task_id: str, context: UserContext) -> None:
        task = await self._store_call("load task", self.store.get(task_id))
        if task is None or task.group_key != context.group_key:
            raise TaskNotFoundError(f"task {task_id} not found")
        await self._store_call("delete task", self.store.delete(task_id))
        logger.info(f"Deleted task {task_id} from group {context.group_key}")

    async def complete_task(self, task_id: str, context: UserContext) -> None:
        # Completing removes the task, same as deleting it.
        await self.delete_task(task_id, context)

    def watch_tasks(self, context: UserContext) -> AsyncIterator[List[TaskRecord]]:
        return self.store.subscribe(context.group_key)
