"""
Wiring: builds a ready-to-use ``Assistant`` from settings.

    app = await create_app()
    reply = await app.assistant.handle_message(user_id, text, access_token=token)
    ...
    await app.close()

Callers that host the assistant (a UI, a chat bot) own the access token and
the bridge subscriptions; everything else is created here.
"""

import logging
import os
from dataclasses import dataclass

from .ai.planner import ClaudePlanner
from .assistant import Assistant
from .config import settings
from .engine.dispatcher import ExecutionDispatcher
from .google.calendar import CalendarClient
from .google.gmail import GmailClient
from .google.tasks import TasksClient
from .logging_config import setup_logging
from .memory.database import DatabaseManager
from .memory.notes import NoteStore
from .memory.plans import SqlitePlanStore
from .session import SessionManager
from .web.search import WebClient

logger = logging.getLogger(__name__)


@dataclass
class StrataApp:
    assistant: Assistant
    dispatcher: ExecutionDispatcher
    db: DatabaseManager

    async def close(self) -> None:
        await self.db.close()
        logger.info("strata stopped")


async def create_app(configure_logging: bool = True, planner=None) -> StrataApp:
    """Open the database and connect every collaborator. ``planner`` overrides the Claude planner."""
    os.makedirs(settings.data_dir, exist_ok=True)
    if configure_logging:
        setup_logging(settings.log_level, settings.logs_dir, settings.json_logs)

    logger.info("Starting strata (data_dir=%s, timezone=%s)", settings.data_dir, settings.timezone)

    db = DatabaseManager()
    await db.init()
    notes = NoteStore(db)

    dispatcher = ExecutionDispatcher(
        SqlitePlanStore(db),
        calendar=CalendarClient(timezone=settings.timezone),
        tasks=TasksClient(),
        mail=GmailClient(),
        web=WebClient(),
        notes=notes,
    )
    assistant = Assistant(
        dispatcher,
        planner or ClaudePlanner(),
        notes=notes,
        sessions=SessionManager(),
        timezone=settings.timezone,
    )
    return StrataApp(assistant=assistant, dispatcher=dispatcher, db=db)
