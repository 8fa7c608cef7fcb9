import os
from typing import Optional

from fastapi import Depends, Header

from api import state
from ai_todo.models import UserContext
from ingest.ingest_service import TaskIngestService
from storage.task_store import TaskStore

# Configuration
DEFAULT_FAMILY = os.getenv("DEFAULT_FAMILY", "default").strip() or "default"
ANONYMOUS_USER_ID = "anonymous"


def get_task_store() -> TaskStore:
    if state.task_store is None:
        raise RuntimeError("Task store not initialized")
    return state.task_store


def get_ingest_service() -> TaskIngestService:
    if state.ingest_service is None:
        raise RuntimeError("Ingest service not initialized")
    return state.ingest_service


async def resolve_user_context(
    store: TaskStore,
    user_id: Optional[str],
    family_hint: Optional[str] = None,
) -> UserContext:
    """
    Family lookup order: stored membership, then the caller's hint, then DEFAULT_FAMILY.
    """
    uid = (user_id or "").strip() or ANONYMOUS_USER_ID
    group_key = await store.get_membership(uid)
    if not group_key:
        group_key = (family_hint or "").strip() or DEFAULT_FAMILY
    return UserContext(user_id=uid, group_key=group_key)


async def get_user_context(
    x_user_id: Optional[str] = Header(default=None),
    x_family: Optional[str] = Header(default=None),
    store: TaskStore = Depends(get_task_store),
) -> UserContext:
    return await resolve_user_context(store, x_user_id, x_family)
