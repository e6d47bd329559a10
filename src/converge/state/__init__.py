"""Persisted last-applied state."""

from .models import StateRecord, JournalEntry, JournalOp
from .store import StateStore, DEFAULT_STATE_FILE

__all__ = [
    "StateRecord",
    "JournalEntry",
    "JournalOp",
    "StateStore",
    "DEFAULT_STATE_FILE",
]
