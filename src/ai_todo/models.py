from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Optional, List, Union

from pydantic import BaseModel, Field, field_validator

TaskSource = Literal["ai", "manual"]


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


@dataclass(frozen=True)
class UserContext:
    """Who is asking, and which family their tasks belong to."""

    user_id: str
    group_key: str


class TaskRecord(BaseModel):
    id: Optional[str] = None

    title: str = Field(..., min_length=1)
    participants: List[str] = Field(default_factory=list)

    due_instant: Optional[datetime] = None
    due_iso: Optional[str] = None
    due_text_raw: Optional[str] = None

    source: TaskSource
    group_key: str = Field(..., min_length=1)

    created_at: datetime
    updated_at: datetime

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("due_instant", "created_at", "updated_at")
    @classmethod
    def normalise_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    def to_response(self) -> dict:
        """Shape used by the HTTP API: {"id": ..., "data": {...}}."""
        return {
            "id": self.id,
            "data": self.model_dump(mode="json", exclude={"id"}),
        }


class ManualTaskIn(BaseModel):
    title: str
    # The web form sends a comma separated string; API clients may send a list.
    participants: Union[List[str], str] = Field(default_factory=list)
    due: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @field_validator("participants")
    @classmethod
    def split_participants(cls, v: Union[List[str], str]) -> List[str]:
        items = v.split(",") if isinstance(v, str) else v
        return [s.strip() for s in items if s and s.strip()]

    @field_validator("due")
    @classmethod
    def blank_due_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()
