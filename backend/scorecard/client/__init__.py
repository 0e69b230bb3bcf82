"""Device-side scorecard state and its sync to the server."""

from .backup import JsonFileBackup, MemoryBackup
from .bridge import FlushFailed, PersistenceBridge
from .clock import AsyncioScheduler, VirtualScheduler
from .session import RoundSession
from .store import NOT_TRACKED, ScoreData, ScoreEntryStore, ServerEntry

__all__ = [
    "NOT_TRACKED",
    "ScoreData",
    "ScoreEntryStore",
    "ServerEntry",
    "JsonFileBackup",
    "MemoryBackup",
    "PersistenceBridge",
    "FlushFailed",
    "AsyncioScheduler",
    "VirtualScheduler",
    "RoundSession",
]
