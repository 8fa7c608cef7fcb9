from __future__ import annotations

from typing import Optional


class TaskTrackerError(Exception):
    """Base class for errors surfaced to API callers."""

    http_status: int = 500


class InvalidRequestError(TaskTrackerError):
    """Bad caller input. Raised before any network call is made."""

    http_status = 400


class TaskNotFoundError(TaskTrackerError):
    http_status = 404


class ExtractionServiceError(TaskTrackerError):
    """The LLM provider was unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExtractionValidationError(TaskTrackerError):
    """The model output was not JSON or did not match the task schema."""


class StorageError(TaskTrackerError):
    """Persisting a task failed after a successful extraction."""


class DateResolutionSoftFailure(Exception):
    """A due-date phrase could not be resolved.

    Not a TaskTrackerError: ingest catches it and stores the task without a
    due instant.
    """

    def __init__(self, phrase: str, reason: str = "no recognisable date"):
        super().__init__(f"could not resolve {phrase!r}: {reason}")
        self.phrase = phrase
        self.reason = reason
