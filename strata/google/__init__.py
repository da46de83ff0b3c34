"""
Google Workspace adapters (Calendar, Tasks, Gmail).

Every client method takes the caller's OAuth access token and returns a
``Result``; transport and HTTP failures never escape as exceptions.
"""

from .base import GoogleAPIError, build_service, run_google_call
from .calendar import CalendarClient
from .gmail import GmailClient
from .tasks import TasksClient

__all__ = [
    "CalendarClient",
    "GmailClient",
    "GoogleAPIError",
    "TasksClient",
    "build_service",
    "run_google_call",
]
