from __future__ import annotations

import json
from typing import Any, Optional, List, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from ai_todo.errors import ExtractionValidationError


class TaskCandidate(BaseModel):
    """Structured task as returned by the model, before date resolution."""

    title: str = Field(..., min_length=1)
    participants: List[str] = Field(default_factory=list)
    due_date_text: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("participants", mode="before")
    @classmethod
    def null_participants_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("participants")
    @classmethod
    def drop_blank_participants(cls, v: List[str]) -> List[str]:
        return [p.strip() for p in v if p.strip()]

    @field_validator("due_date_text")
    @classmethod
    def blank_due_is_none(cls, v: Optional[str]) -> Optional[str]:
        # Kept verbatim; the resolver does its own trimming.
        if v is None or not v.strip():
            return None
        return v


def validate_candidate(raw: Union[str, bytes, dict]) -> TaskCandidate:
    """Parse and validate model output into a TaskCandidate.

    Accepts the raw JSON text or an already decoded object. Independent of the
    HTTP transport so it can be exercised against literal fixtures.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            # JSONDecodeError, or UnicodeDecodeError for undecodable bytes
            raise ExtractionValidationError(f"model output is not valid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise ExtractionValidationError("model output must be a JSON object")

    try:
        return TaskCandidate.model_validate(data, strict=True)
    except ValidationError as e:
        raise ExtractionValidationError(f"model output does not match task schema: {e}") from e
