"""State Store and persistence backends."""

from .models import StateRecord, StateDocument
from .backends import StateBackend, LocalStateBackend, MemoryStateBackend
from .store import StateStore, open_state

__all__ = [
    "StateRecord",
    "StateDocument",
    "StateBackend",
    "LocalStateBackend",
    "MemoryStateBackend",
    "StateStore",
    "open_state",
]
