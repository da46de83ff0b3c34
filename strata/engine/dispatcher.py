"""
Execution dispatcher: runs a parsed action list, in order, against the
collaborators and aggregates what happened into a ``TurnResult``.

State per turn:
    RUNNING ──await_user / external_action──▶ PAUSED_FOR_CLARIFICATION
       └──────────── end of list ───────────▶ DONE

Each action is an independent unit of work: a failure becomes a message for
the user and the loop moves on. Only a clarification pauses the turn.
Handlers live in ``strata.engine.handlers`` and receive the dispatcher plus
the mutable ``TurnContext``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Awaitable, Callable

from ..actions.parser import parse_response
from ..actions.schema import Action, ActionKind
from ..constants import ERROR_MESSAGES
from ..google.calendar import day_range
from ..memory.plans import PendingPlanStore
from ..models import CalendarEvent, Result, TaskItem
from .bridges import CalendarConfirmationBridge, MailPreviewBridge, TaskConfirmationBridge
from .retry import with_mutation_retry

logger = logging.getLogger(__name__)


class DispatcherState(str, Enum):
    RUNNING = "running"
    PAUSED_FOR_CLARIFICATION = "paused_for_clarification"
    DONE = "done"


@dataclass(frozen=True)
class RefreshSignals:
    mail: bool = False
    calendar: bool = False
    tasks: bool = False

    @property
    def summary(self) -> bool:
        return self.mail or self.calendar or self.tasks


@dataclass(frozen=True)
class ExecutionSummary:
    sent_emails: int = 0
    failed_emails: int = 0


@dataclass
class TurnResult:
    summary: ExecutionSummary = field(default_factory=ExecutionSummary)
    messages: list[str] = field(default_factory=list)
    refresh: RefreshSignals = field(default_factory=RefreshSignals)
    state: DispatcherState = DispatcherState.DONE
    executed: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    parse_error: str | None = None


@dataclass
class TurnContext:
    """Mutable per-turn state shared by the handlers."""

    access_token: str | None = None
    state: DispatcherState = DispatcherState.RUNNING
    messages: list[str] = field(default_factory=list)
    suppress_next_user_msg: bool = False
    mail_mutated: bool = False
    calendar_mutated: bool = False
    tasks_mutated: bool = False
    sent_emails: int = 0
    failed_emails: int = 0
    mutating_ran: bool = False
    executed: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    tasks_cache: list[TaskItem] | None = None

    @property
    def paused(self) -> bool:
        return self.state is DispatcherState.PAUSED_FOR_CLARIFICATION

    def reply(self, text: str) -> None:
        """Append a handler-produced message; the planner's next user_msg then replaces it."""
        self.messages.append(text)
        self.suppress_next_user_msg = True

    def to_result(self) -> TurnResult:
        return TurnResult(
            summary=ExecutionSummary(self.sent_emails, self.failed_emails),
            messages=list(self.messages),
            refresh=RefreshSignals(
                mail=self.mail_mutated,
                calendar=self.calendar_mutated,
                tasks=self.tasks_mutated,
            ),
            state=self.state,
            executed=list(self.executed),
            notes=list(self.notes),
        )


class ExecutionDispatcher:
    """
    Executes planner actions.

    Collaborators are optional; an action whose collaborator is missing is
    answered with a "not configured" message instead of failing the turn.
    """

    def __init__(
        self,
        plan_store: PendingPlanStore,
        calendar=None,
        tasks=None,
        mail=None,
        web=None,
        notes=None,
        mail_bridge: MailPreviewBridge | None = None,
        task_bridge: TaskConfirmationBridge | None = None,
        calendar_bridge: CalendarConfirmationBridge | None = None,
        clock: Callable[[], datetime] | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.plan_store = plan_store
        self.calendar = calendar
        self.tasks = tasks
        self.mail = mail
        self.web = web
        self.notes = notes
        self.mail_bridge = mail_bridge or MailPreviewBridge()
        self.task_bridge = task_bridge or TaskConfirmationBridge()
        self.calendar_bridge = calendar_bridge or CalendarConfirmationBridge()
        self._clock = clock or datetime.now
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Turn entry points
    # ------------------------------------------------------------------

    async def handle_response(self, raw: str, access_token: str | None = None) -> TurnResult:
        """Parse a planner response and run it. Parse failures yield an empty result."""
        parsed = parse_response(raw)
        if not parsed.ok:
            return TurnResult(parse_error=parsed.error)
        return await self.run(parsed.actions, access_token)

    async def run(self, actions: list[Action], access_token: str | None = None) -> TurnResult:
        turn = TurnContext(access_token=access_token)

        for idx, action in enumerate(actions):
            if turn.paused:
                logger.info("[%d] %s skipped: turn paused for clarification", idx, action.tag)
                continue
            if action.is_mutating:
                turn.mutating_ran = True
            try:
                await self.dispatch(turn, idx, action)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("[%d] %s crashed", idx, action.tag)
                turn.reply(ERROR_MESSAGES["action_crashed"].format(kind=action.tag, error=e))
            turn.executed.append(action.tag)

        if not turn.paused:
            if turn.mutating_ran:
                try:
                    await self.plan_store.clear()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error("Could not clear pending plan: %s", e)
            turn.state = DispatcherState.DONE

        result = turn.to_result()
        logger.info(
            "Turn finished: state=%s executed=%s sent=%d failed=%d refresh=%s",
            result.state.value, result.executed, result.summary.sent_emails,
            result.summary.failed_emails, result.refresh,
        )
        return result

    async def dispatch(self, turn: TurnContext, idx: int, action: Action) -> None:
        """Route one action to its handler."""
        data = action.payload
        match action.kind:
            # Control
            case ActionKind.USER_MSG:
                from .handlers.control import exec_user_msg
                exec_user_msg(turn, data)
            case ActionKind.AWAIT_USER:
                from .handlers.control import exec_await_user
                await exec_await_user(self, turn, idx, data)
            case ActionKind.EXTERNAL_ACTION:
                from .handlers.control import exec_external_action
                await exec_external_action(self, turn, idx, data)

            # Memory
            case ActionKind.REMEMBER:
                from .handlers.memory import exec_remember
                await exec_remember(self, turn, idx, data)
            case ActionKind.CLEAR_MEMORY:
                from .handlers.memory import exec_clear_memory
                await exec_clear_memory(self, turn, idx, data)

            # Web
            case ActionKind.WEB_SEARCH:
                from .handlers.web import exec_web_search
                await exec_web_search(self, turn, idx, data)
            case ActionKind.FETCH_URL:
                from .handlers.web import exec_fetch_url
                await exec_fetch_url(self, turn, idx, data)

            # Mail
            case ActionKind.SEND_EMAIL:
                from .handlers.mail import exec_send_email
                await exec_send_email(self, turn, idx, data)
            case (
                ActionKind.EXPLAIN_EMAIL
                | ActionKind.REPLY_TO_EMAIL
                | ActionKind.FORWARD_EMAIL
                | ActionKind.DELETE_EMAIL
            ):
                from .handlers.mail import exec_mail_passthrough
                exec_mail_passthrough(idx, action.tag, data)

            # Calendar
            case ActionKind.ADD_CALENDAR_EVENT:
                from .handlers.calendar import exec_add_calendar_event
                await exec_add_calendar_event(self, turn, idx, data)
            case ActionKind.UPDATE_CALENDAR_EVENT:
                from .handlers.calendar import exec_update_calendar_event
                await exec_update_calendar_event(self, turn, idx, data)
            case ActionKind.DELETE_CALENDAR_EVENT:
                from .handlers.calendar import exec_delete_calendar_event
                await exec_delete_calendar_event(self, turn, idx, data)

            # Tasks
            case ActionKind.ADD_TASK:
                from .handlers.tasks import exec_add_task
                await exec_add_task(self, turn, idx, data)
            case ActionKind.UPDATE_TASK:
                from .handlers.tasks import exec_update_task
                await exec_update_task(self, turn, idx, data)
            case ActionKind.DELETE_TASK:
                from .handlers.tasks import exec_delete_task
                await exec_delete_task(self, turn, idx, data)

    # ------------------------------------------------------------------
    # Helpers shared by handlers
    # ------------------------------------------------------------------

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self._clock().date()

    async def mutate(self, label: str, call: Callable[[str], Awaitable[Result]]) -> Result:
        """Run a remote mutation through the bounded retry wrapper."""
        return await with_mutation_retry(
            label,
            call,
            max_attempts=self._max_attempts,
            backoff_seconds=self._backoff_seconds,
            sleep=self._sleep,
        )

    async def list_events_for_day(
        self, turn: TurnContext, day: date, title_filter: str | None = None
    ) -> list[CalendarEvent] | None:
        """Events on ``day``; None when the read itself failed."""
        start, end = day_range(day)
        result = await self.calendar.list_events(turn.access_token, start, end, title_filter)
        if not result.ok:
            logger.warning("Listing events for %s failed: %s", day, result.error_message())
            return None
        return list(result.value or [])

    async def find_event_by_id(
        self, turn: TurnContext, event_id: str, hint_dates: list[date]
    ) -> CalendarEvent | None:
        """Look on the hinted days first, then across yesterday .. +30 days."""
        for day in hint_dates:
            events = await self.list_events_for_day(turn, day)
            for event in events or []:
                if event.id == event_id:
                    return event

        today = self.today()
        start, _ = day_range(today - timedelta(days=1))
        _, end = day_range(today + timedelta(days=30))
        result = await self.calendar.list_events(turn.access_token, start, end, None)
        if not result.ok:
            return None
        return next((e for e in result.value or [] if e.id == event_id), None)

    async def load_tasks(self, turn: TurnContext, force: bool = False) -> list[TaskItem] | None:
        """Open tasks, cached for the rest of the turn. None when the read failed."""
        if turn.tasks_cache is not None and not force:
            return turn.tasks_cache
        result = await self.tasks.fetch_top_tasks(turn.access_token)
        if not result.ok:
            logger.warning("Fetching tasks failed: %s", result.error_message())
            return None
        turn.tasks_cache = list(result.value or [])
        return turn.tasks_cache
