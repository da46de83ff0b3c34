"""Execution engine: dispatcher, resolver, time canonicalization, bridges and retry."""

from strata.engine.bridges import (
    CalendarConfirmationBridge,
    MailPreviewBridge,
    TaskConfirmationBridge,
)
from strata.engine.dispatcher import (
    DispatcherState,
    ExecutionDispatcher,
    ExecutionSummary,
    RefreshSignals,
    TurnResult,
)

__all__ = [
    "CalendarConfirmationBridge",
    "DispatcherState",
    "ExecutionDispatcher",
    "ExecutionSummary",
    "MailPreviewBridge",
    "RefreshSignals",
    "TaskConfirmationBridge",
    "TurnResult",
]
