"""
Action vocabulary emitted by the planner.

Every action is a single-key JSON object, ``{"<tag>": {...payload...}}``.
The tag picks one ``ActionKind``; the payload is validated against the
matching pydantic model. Unknown fields *inside* a payload are ignored so
the planner can add commentary without breaking the parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionKind(str, Enum):
    SEND_EMAIL = "send_email"
    EXPLAIN_EMAIL = "explain_email"
    REPLY_TO_EMAIL = "reply_to_email"
    FORWARD_EMAIL = "forward_email"
    DELETE_EMAIL = "delete_email"
    ADD_CALENDAR_EVENT = "add_calendar_event"
    UPDATE_CALENDAR_EVENT = "update_calendar_event"
    DELETE_CALENDAR_EVENT = "delete_calendar_event"
    USER_MSG = "user_msg"
    ADD_TASK = "add_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    AWAIT_USER = "await_user"
    EXTERNAL_ACTION = "external_action"
    REMEMBER = "remember"
    CLEAR_MEMORY = "clear_memory"
    WEB_SEARCH = "web_search"
    FETCH_URL = "fetch_url"


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


def _as_address_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",")]
    return value


# ── Mail ────────────────────────────────────────────────────────────────────────

class SendEmail(_Payload):
    to: list[str]
    subject: str
    body: str
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    assumptions: Optional[str] = None

    @field_validator("to", "cc", "bcc", mode="before")
    @classmethod
    def split_addresses(cls, value: Any) -> Any:
        return _as_address_list(value)


class ExplainEmail(_Payload):
    email_id: str
    summary_style: Optional[str] = None
    assumptions: Optional[str] = None


class ReplyToEmail(_Payload):
    email_id: str
    body: str
    subject: Optional[str] = None
    assumptions: Optional[str] = None


class ForwardEmail(_Payload):
    email_id: str
    to: list[str]
    preface: Optional[str] = None
    assumptions: Optional[str] = None

    @field_validator("to", mode="before")
    @classmethod
    def split_addresses(cls, value: Any) -> Any:
        return _as_address_list(value)


class DeleteEmail(_Payload):
    email_id: str
    assumptions: Optional[str] = None


# ── Calendar ────────────────────────────────────────────────────────────────────

class AddCalendarEvent(_Payload):
    title: str
    date: str
    start_time: str
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    assumptions: Optional[str] = None


class UpdateCalendarEvent(_Payload):
    event_id: Optional[str] = None
    match_title: Optional[str] = None
    match_date: Optional[str] = None
    match_start_time: Optional[str] = None
    new_date: Optional[str] = None
    new_start_time: Optional[str] = None
    new_end_time: Optional[str] = None
    new_duration_minutes: Optional[int] = None
    new_title: Optional[str] = None
    new_location: Optional[str] = None
    new_notes: Optional[str] = None
    assumptions: Optional[str] = None


class DeleteCalendarEvent(_Payload):
    title: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    assumptions: Optional[str] = None


# ── Tasks ───────────────────────────────────────────────────────────────────────

class AddTask(_Payload):
    title: str
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    notes: Optional[str] = None
    assumptions: Optional[str] = None


class UpdateTask(_Payload):
    task_id: Optional[str] = None
    match_title: Optional[str] = None
    match_due_date: Optional[str] = None
    match_due_time: Optional[str] = None
    new_title: Optional[str] = None
    new_notes: Optional[str] = None
    new_due_date: Optional[str] = None
    new_due_time: Optional[str] = None
    completed: Optional[bool] = None
    assumptions: Optional[str] = None


class DeleteTask(_Payload):
    task_id: Optional[str] = None
    match_title: Optional[str] = None
    match_due_date: Optional[str] = None
    match_due_time: Optional[str] = None
    delete_all: Optional[bool] = None
    assumptions: Optional[str] = None


# ── Control, memory, web ────────────────────────────────────────────────────────

class UserMsg(_Payload):
    text: str


class AwaitUser(_Payload):
    question: str = ""
    context: Optional[str] = None
    assumptions: Optional[str] = None


class ExternalAction(_Payload):
    provider: str
    intent: str
    params: dict[str, Any] = Field(default_factory=dict)
    confirmation_question: Optional[str] = None
    auth_state: Optional[str] = None
    assumptions: Optional[str] = None


class Remember(_Payload):
    content: str
    assumptions: Optional[str] = None


class ClearMemory(_Payload):
    reason: Optional[str] = None


class WebSearch(_Payload):
    query: str
    top_k: Optional[int] = None


class FetchUrl(_Payload):
    url: str
    max_chars: Optional[int] = None


PAYLOAD_MODELS: dict[ActionKind, type[_Payload]] = {
    ActionKind.SEND_EMAIL: SendEmail,
    ActionKind.EXPLAIN_EMAIL: ExplainEmail,
    ActionKind.REPLY_TO_EMAIL: ReplyToEmail,
    ActionKind.FORWARD_EMAIL: ForwardEmail,
    ActionKind.DELETE_EMAIL: DeleteEmail,
    ActionKind.ADD_CALENDAR_EVENT: AddCalendarEvent,
    ActionKind.UPDATE_CALENDAR_EVENT: UpdateCalendarEvent,
    ActionKind.DELETE_CALENDAR_EVENT: DeleteCalendarEvent,
    ActionKind.USER_MSG: UserMsg,
    ActionKind.ADD_TASK: AddTask,
    ActionKind.UPDATE_TASK: UpdateTask,
    ActionKind.DELETE_TASK: DeleteTask,
    ActionKind.AWAIT_USER: AwaitUser,
    ActionKind.EXTERNAL_ACTION: ExternalAction,
    ActionKind.REMEMBER: Remember,
    ActionKind.CLEAR_MEMORY: ClearMemory,
    ActionKind.WEB_SEARCH: WebSearch,
    ActionKind.FETCH_URL: FetchUrl,
}

# Kinds that change remote state; running any of them clears the pending plan.
MUTATING_KINDS = frozenset({
    ActionKind.SEND_EMAIL,
    ActionKind.EXPLAIN_EMAIL,
    ActionKind.REPLY_TO_EMAIL,
    ActionKind.FORWARD_EMAIL,
    ActionKind.DELETE_EMAIL,
    ActionKind.ADD_CALENDAR_EVENT,
    ActionKind.UPDATE_CALENDAR_EVENT,
    ActionKind.DELETE_CALENDAR_EVENT,
    ActionKind.ADD_TASK,
    ActionKind.UPDATE_TASK,
    ActionKind.DELETE_TASK,
})


@dataclass(frozen=True)
class Action:
    """One parsed planner instruction."""

    kind: ActionKind
    payload: _Payload

    @property
    def tag(self) -> str:
        return self.kind.value

    @property
    def is_mutating(self) -> bool:
        return self.kind in MUTATING_KINDS

    def to_json_dict(self) -> dict[str, Any]:
        return {self.kind.value: self.payload.model_dump(exclude_none=True)}
