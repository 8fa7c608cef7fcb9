import logging
import os
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ai_todo.errors import TaskTrackerError
from api import state
from api.metrics import REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS
from api.routers import ops, search, tasks
from ingest.ingest_service import TaskIngestService
from storage.task_store import InMemoryTaskStore, TaskStore

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

TASK_STORE = os.getenv("TASK_STORE", "memory").strip().lower()


async def _build_store() -> TaskStore:
    if TASK_STORE == "postgres":
        from storage import db
        from storage.postgres_task_store import PostgresTaskStore

        await db.init_db_pool()
        await db.init_schema()
        return PostgresTaskStore()

    logger.warning("Using in-memory task store; tasks are lost on restart")
    return InMemoryTaskStore()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    task_store: Optional[TaskStore] = None,
    ingest_service: Optional[TaskIngestService] = None,
) -> FastAPI:
    app = FastAPI(title="AI To-Do")

    if task_store is not None:
        state.task_store = task_store
        state.ingest_service = ingest_service or TaskIngestService(task_store)

    @app.on_event("startup")
    async def startup() -> None:
        if state.task_store is None:
            state.task_store = await _build_store()
            state.ingest_service = TaskIngestService(state.task_store)
        logger.info(f"Task store ready: {type(state.task_store).__name__}")

    @app.on_event("shutdown")
    async def shutdown() -> None:
        if state.task_store is not None:
            await state.task_store.close()

    @app.middleware("http")
    async def record_metrics(request: Request, call_next):
        start = time.time()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
            REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)

    @app.exception_handler(TaskTrackerError)
    async def handle_task_error(request: Request, exc: TaskTrackerError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error_response(exc.http_status, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return _error_response(400, message)

    app.include_router(search.router, prefix="/api")
    app.include_router(tasks.router, prefix="/api")
    app.include_router(ops.router)

    return app


app = create_app()
