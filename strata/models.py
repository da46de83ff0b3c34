"""
Data models shared across strata.

Remote records (events, tasks) are pydantic v2 models; per-turn outcome
records are plain dataclasses.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class CalendarEvent(BaseModel):
    id: str
    title: str
    start: datetime  # naive, user-local
    end: datetime
    location: Optional[str] = None
    notes: Optional[str] = None

    @property
    def day(self) -> date:
        return self.start.date()


class TaskItem(BaseModel):
    id: str
    title: str
    notes: Optional[str] = None
    due: Optional[datetime] = None  # naive, user-local; midnight when only a date is known
    due_has_time: bool = False
    completed: bool = False
    list_title: Optional[str] = None


class PendingPlan(BaseModel):
    status: Literal["await_user", "external_action"]
    question: str
    context: Optional[str] = None
    action_json: Optional[str] = None
    updated_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MemoryNote(BaseModel):
    id: int
    content: str
    created_at: str


class WebSearchResult(BaseModel):
    title: str
    url: str
    snippet: str = ""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a collaborator call. Collaborators return this instead of raising."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status_code(self) -> int | None:
        return getattr(self.error, "status_code", None)

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> "Result[T]":
        return cls(error=error)

    def error_message(self) -> str:
        if self.error is None:
            return ""
        return str(self.error) or type(self.error).__name__

