from typing import Optional

from ingest.ingest_service import TaskIngestService
from storage.task_store import TaskStore

# Global instances initialized at startup (see api.main lifespan)
task_store: Optional[TaskStore] = None
ingest_service: Optional[TaskIngestService] = None
