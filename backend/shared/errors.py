"""
Error taxonomy for fixture synchronization.

TransientNetworkError      one failed upstream attempt, retried by the HTTP client
ExternalServiceError       upstream still failing after the last retry; aborts a run
MalformedRecordError       one unusable fixture; dropped by the transformer
ConcurrencyRejectedError   a sync is already in flight; reported as a busy result
"""
from __future__ import annotations


class SyncError(Exception):
    """Base class for sync pipeline errors."""


class TransientNetworkError(SyncError):
    """A single upstream attempt failed (non-2xx, timeout, transport or decode error)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class ExternalServiceError(SyncError):
    """The upstream fixture source could not be reached within the retry budget."""

    def __init__(self, message: str, attempts: int = 0, last_error: str | None = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


class MalformedRecordError(SyncError):
    """A raw fixture lacks a required field or has an unusable shape."""

    def __init__(self, field: str, fixture_id: object = None) -> None:
        self.field = field
        self.fixture_id = fixture_id
        super().__init__(f"Fixture {fixture_id!r} is missing required field '{field}'")


class ConcurrencyRejectedError(SyncError):
    """Another synchronization is already running in this process."""

    def __init__(self) -> None:
        super().__init__("Sync is already running")
