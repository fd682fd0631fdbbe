"""Domain enumerations for Matchcast."""
from __future__ import annotations

from enum import Enum


class SyncStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.FAILED)


class ProviderName(str, Enum):
    API_FOOTBALL = "api_football"
