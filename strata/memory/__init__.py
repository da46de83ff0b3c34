"""Local persistence: pending plan slot and long-term memory notes."""

from strata.memory.database import DatabaseManager
from strata.memory.notes import NoteStore
from strata.memory.plans import InMemoryPlanStore, PendingPlanStore, SqlitePlanStore

__all__ = [
    "DatabaseManager",
    "InMemoryPlanStore",
    "NoteStore",
    "PendingPlanStore",
    "SqlitePlanStore",
]
