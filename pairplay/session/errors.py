"""
Sync errors raised by store and transport adapters.

The coordinator turns these into ActionResult failures; they never reach
the reducer.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for store and transport failures."""


class ConflictError(SyncError):
    """A write was based on a stale version of the record."""

    def __init__(self, session_id: str, expected_version: int, actual_version: int | None = None):
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Session {session_id} is at version {actual_version}, "
            f"write expected {expected_version}"
        )


class SessionNotFoundError(SyncError):
    """The record does not exist (deleted by the partner, or never created)."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class TransportError(SyncError):
    """The store or history service could not be reached."""


class DuplicateSessionError(SyncError):
    """A record with the same id already exists."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} already exists")
