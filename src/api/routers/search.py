import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict

from api.dependencies import get_ingest_service, get_task_store, resolve_user_context
from ingest.ingest_service import TaskIngestService
from storage.task_store import TaskStore

router = APIRouter()
logger = logging.getLogger(__name__)


class SearchIn(BaseModel):
    # Extra identity hints from the web client are accepted and ignored.
    model_config = ConfigDict(extra="allow")

    text: Any = None
    family: Optional[str] = None


@router.post("/search")
async def create_task_from_text(
    payload: SearchIn,
    x_user_id: Optional[str] = Header(default=None),
    x_family: Optional[str] = Header(default=None),
    store: TaskStore = Depends(get_task_store),
    service: TaskIngestService = Depends(get_ingest_service),
) -> dict:
    """Extract a task from natural language and store it."""
    context = await resolve_user_context(store, x_user_id, x_family or payload.family)
    if isinstance(payload.text, str):
        logger.info(f"Ingest request from {context.user_id}: {payload.text[:50]}...")

    record = await service.ingest(payload.text, context)
    return record.to_response()
