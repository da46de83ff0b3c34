"""
Confirmation bridges: the only way the engine asks the user for a decision.

A bridge publishes a request to its subscribers (typically a UI) and the
calling action awaits the request's write-once result. Requests that nobody
is subscribed to, or that nobody answers before the timeout, resolve with
their dismissal outcome (cancel / skip).

Usage:
    bridge = CalendarConfirmationBridge()
    unsubscribe = bridge.subscribe(show_picker)    # show_picker(request)
    ...
    request.pick(event.id)                         # from the UI side
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from ..config import settings
from ..constants import (
    CALENDAR_CANCEL_LABEL,
    CALENDAR_CONFIRM_LABEL,
    TASK_DELETE_CANCEL_LABEL,
    TASK_DELETE_CONFIRM_LABEL,
)
from ..exceptions import BridgeError
from ..models import CalendarEvent, TaskItem

logger = logging.getLogger(__name__)

R = TypeVar("R")
Req = TypeVar("Req", bound="ConfirmationRequest")

_request_ids = itertools.count(1)

_UNSET = object()


class ConfirmationRequest(Generic[R]):
    """A published question with a result slot that can be filled exactly once."""

    dismissal: Any = None

    def __init__(self) -> None:
        self.request_id = next(_request_ids)
        self._future: asyncio.Future[R] = asyncio.get_running_loop().create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    def _resolve(self, value: R) -> bool:
        if self._future.done():
            logger.warning(
                "%s #%d already resolved; ignoring second answer",
                type(self).__name__, self.request_id,
            )
            return False
        self._future.set_result(value)
        return True

    def dismiss(self) -> bool:
        """Resolve with the dismissal outcome (cancel / skip)."""
        return self._resolve(self.dismissal)

    async def wait(self, timeout: float | None = None) -> R:
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except asyncio.TimeoutError:
            logger.info(
                "%s #%d timed out after %.0fs; dismissing",
                type(self).__name__, self.request_id, timeout,
            )
            self.dismiss()
            return self._future.result()


# ── Mail preview ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MailDecision:
    send: bool
    to: tuple[str, ...] = ()
    subject: str = ""
    body: str = ""


MAIL_CANCELLED = MailDecision(send=False)


class MailPreviewRequest(ConfirmationRequest[MailDecision]):
    dismissal = MAIL_CANCELLED

    def __init__(self, recipients: list[str], subject: str, body: str) -> None:
        super().__init__()
        self.recipients = tuple(recipients)
        self.subject = subject
        self.body = body

    def send(
        self,
        to: list[str] | None = None,
        subject: str | None = None,
        body: str | None = None,
    ) -> bool:
        """Approve the draft, optionally with edited recipients, subject or body."""
        return self._resolve(MailDecision(
            send=True,
            to=tuple(to) if to is not None else self.recipients,
            subject=subject if subject is not None else self.subject,
            body=body if body is not None else self.body,
        ))

    def cancel(self) -> bool:
        return self._resolve(MAIL_CANCELLED)


# ── Task deletion ───────────────────────────────────────────────────────────────

class TaskDeletionRequest(ConfirmationRequest[bool]):
    dismissal = False

    def __init__(
        self,
        tasks: list[TaskItem],
        reason: str,
        confirm_label: str = TASK_DELETE_CONFIRM_LABEL,
        cancel_label: str = TASK_DELETE_CANCEL_LABEL,
    ) -> None:
        super().__init__()
        self.tasks = tuple(tasks)
        self.reason = reason
        self.confirm_label = confirm_label
        self.cancel_label = cancel_label

    def confirm(self) -> bool:
        return self._resolve(True)

    def cancel(self) -> bool:
        return self._resolve(False)


# ── Calendar disambiguation ─────────────────────────────────────────────────────

class CalendarChoiceRequest(ConfirmationRequest["CalendarEvent | None"]):
    dismissal = None

    def __init__(
        self,
        candidates: list[CalendarEvent],
        reason: str,
        confirm_label: str = CALENDAR_CONFIRM_LABEL,
        cancel_label: str = CALENDAR_CANCEL_LABEL,
    ) -> None:
        super().__init__()
        self.candidates = tuple(candidates)
        self.reason = reason
        self.confirm_label = confirm_label
        self.cancel_label = cancel_label

    def pick(self, event_id: str) -> bool:
        """
        Choose one of the candidates by id.

        Raises:
            BridgeError: if ``event_id`` is not among the candidates.
        """
        for event in self.candidates:
            if event.id == event_id:
                return self._resolve(event)
        raise BridgeError(f"event {event_id!r} is not one of the offered candidates")

    def skip(self) -> bool:
        return self._resolve(None)


# ── Bridge ──────────────────────────────────────────────────────────────────────

Subscriber = Callable[[Any], Any]


class ConfirmationBridge(Generic[Req]):
    """
    Publish/subscribe channel for one kind of confirmation.

    The most recent request is exposed as ``current`` for display
    (last write wins); every request stays independently resolvable.
    """

    def __init__(self, name: str, timeout: Any = _UNSET) -> None:
        self.name = name
        self._timeout = timeout
        self._subscribers: list[Subscriber] = []
        self._background: set[asyncio.Task] = set()
        self.current: Req | None = None

    @property
    def timeout(self) -> float | None:
        if self._timeout is _UNSET:
            return settings.bridge_timeout
        return self._timeout

    def subscribe(self, handler: Subscriber) -> Callable[[], None]:
        """Register a handler called with each new request. Returns an unsubscribe callable."""
        self._subscribers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return _unsubscribe

    @property
    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    def _notify(self, request: Req) -> int:
        """Hand ``request`` to every subscriber. Returns how many took it without failing."""
        delivered = 0
        for handler in list(self._subscribers):
            try:
                outcome = handler(request)
            except Exception as e:
                logger.error("%s subscriber failed: %s", self.name, e, exc_info=True)
                continue
            delivered += 1
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._background.add(task)
                task.add_done_callback(self._background.discard)
                task.add_done_callback(functools.partial(self._async_subscriber_done, request))
        return delivered

    def _async_subscriber_done(self, request: Req, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.error("%s subscriber failed: %s", self.name, task.exception())
        if not request.done and len(self._subscribers) <= 1:
            request.dismiss()

    async def ask(self, request: Req) -> Any:
        """Publish ``request`` and wait for its answer (or its dismissal outcome)."""
        self.current = request
        if not self._subscribers:
            logger.info("%s has no subscribers; dismissing request #%d", self.name, request.request_id)
            request.dismiss()
        else:
            logger.info("%s published request #%d", self.name, request.request_id)
            if not self._notify(request) and not request.done:
                logger.warning(
                    "%s: no subscriber accepted request #%d; dismissing", self.name, request.request_id,
                )
                request.dismiss()
        try:
            return await request.wait(self.timeout)
        finally:
            if self.current is request:
                self.current = None


class MailPreviewBridge(ConfirmationBridge[MailPreviewRequest]):
    def __init__(self, timeout: Any = _UNSET) -> None:
        super().__init__("mail_preview", timeout)

    async def request_preview(self, recipients: list[str], subject: str, body: str) -> MailDecision:
        return await self.ask(MailPreviewRequest(recipients, subject, body))


class TaskConfirmationBridge(ConfirmationBridge[TaskDeletionRequest]):
    def __init__(self, timeout: Any = _UNSET) -> None:
        super().__init__("task_confirmation", timeout)

    async def request_delete(self, tasks: list[TaskItem], reason: str) -> bool:
        return await self.ask(TaskDeletionRequest(tasks, reason))


class CalendarConfirmationBridge(ConfirmationBridge[CalendarChoiceRequest]):
    def __init__(self, timeout: Any = _UNSET) -> None:
        super().__init__("calendar_confirmation", timeout)

    async def request_choice(self, candidates: list[CalendarEvent], reason: str) -> CalendarEvent | None:
        return await self.ask(CalendarChoiceRequest(candidates, reason))
