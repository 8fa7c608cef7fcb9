import json
import logging
import os

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from ai_todo.models import ManualTaskIn, UserContext
from api.dependencies import get_ingest_service, get_task_store, get_user_context
from ingest.ingest_service import TaskIngestService
from storage.task_store import TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)

# Config
SSE_PING_INTERVAL_S = int(os.getenv("SSE_PING_INTERVAL_S", "15"))


class MembershipIn(BaseModel):
    family: str = Field(..., min_length=1)


@router.get("/tasks")
async def list_tasks(
    context: UserContext = Depends(get_user_context),
    service: TaskIngestService = Depends(get_ingest_service),
) -> dict:
    """All tasks of the caller's family. Order is whatever the store returns."""
    tasks = await service.list_tasks(context)
    return {
        "tasks": [t.to_response() for t in tasks],
        "total": len(tasks),
    }


@router.post("/tasks")
async def create_manual_task(
    payload: ManualTaskIn,
    context: UserContext = Depends(get_user_context),
    service: TaskIngestService = Depends(get_ingest_service),
) -> dict:
    record = await service.create_manual(payload, context)
    return record.to_response()


@router.get("/tasks/stream")
async def stream_tasks(
    request: Request,
    context: UserContext = Depends(get_user_context),
    service: TaskIngestService = Depends(get_ingest_service),
):
    """SSE feed: one `snapshot` event with the full task list per change."""

    async def event_generator():
        snapshots = service.watch_tasks(context)
        try:
            async for tasks in snapshots:
                if await request.is_disconnected():
                    break
                yield {
                    "event": "snapshot",
                    "data": json.dumps([t.to_response() for t in tasks]),
                }
        finally:
            await snapshots.aclose()
            logger.info(f"Task stream closed for group {context.group_key}")

    return EventSourceResponse(event_generator(), ping=SSE_PING_INTERVAL_S)


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    context: UserContext = Depends(get_user_context),
    service: TaskIngestService = Depends(get_ingest_service),
) -> dict:
    await service.delete_task(task_id, context)
    return {"status": "deleted", "id": task_id}


@router.post("/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    context: UserContext = Depends(get_user_context),
    service: TaskIngestService = Depends(get_ingest_service),
) -> dict:
    await service.complete_task(task_id, context)
    return {"status": "completed", "id": task_id}


@router.put("/membership")
async def set_membership(
    payload: MembershipIn,
    context: UserContext = Depends(get_user_context),
    store: TaskStore = Depends(get_task_store),
) -> dict:
    family = payload.family.strip()
    await store.set_membership(context.user_id, family)
    logger.info(f"User {context.user_id} joined family {family}")
    return {"user_id": context.user_id, "family": family}
