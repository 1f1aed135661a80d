"""
Session Store - Durable keyed holder of live GameSession records.

STORAGE RULES:
- Pure storage: the store never interprets game state
- Whole-record writes only, no field merges
- Every write bumps ``version``; replace() is a compare-and-swap on it
- Every successful write is announced on the ChangeFeed
- Sessions are ephemeral: finished rounds are deleted once their outcome
  is in the history log

No automatic expiry. Abandoned rounds stay until a partner ends them;
purge_terminal() is an explicit maintenance call for finished ones.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Callable
import asyncio
import logging
import time

from ..engine_core.state import GameKind, GameSession
from .errors import ConflictError, DuplicateSessionError, SessionNotFoundError
from .feed import ChangeEvent, ChangeFeed, EventType

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """
    Contract shared by the in-memory store and the HTTP adapter.

    All methods are suspension points. Adapters raise SyncError subclasses
    for conflicts and transport failures.
    """

    @abstractmethod
    async def get(self, session_id: str) -> GameSession | None:
        """Fetch one record, or None if it does not exist."""

    @abstractmethod
    async def find_live(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
    ) -> list[GameSession]:
        """All records of a partnership (optionally of one kind), oldest first."""

    @abstractmethod
    async def create(self, session: GameSession) -> GameSession:
        """
        Insert a new record; returns it with version and timestamps assigned.

        Raises DuplicateSessionError if the id is already taken.
        """

    @abstractmethod
    async def replace(self, session: GameSession, expected_version: int) -> GameSession:
        """
        Overwrite a record if it is still at ``expected_version``.

        Raises ConflictError on a version mismatch and SessionNotFoundError
        if the record is gone.
        """

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a record; returns False if it was already gone."""

    async def close(self):
        """Release any connections held by the store."""


class InMemorySessionStore(SessionStore):
    """
    Reference store kept in process memory.

    Records are held in their serialized form so readers never share
    objects with writers.

    Args:
        feed: ChangeFeed to announce writes on (a private one if omitted)
        check_versions: False turns replace() into a blind overwrite
        latency: seconds every call sleeps, to interleave concurrent callers
    """

    def __init__(
        self,
        feed: ChangeFeed | None = None,
        check_versions: bool = True,
        latency: float = 0.0,
        clock: Callable[[], float] = time.time,
    ):
        self.feed = feed if feed is not None else ChangeFeed()
        self.check_versions = check_versions
        self.latency = latency
        self._clock = clock
        self._records: dict[str, dict[str, Any]] = {}
        self.write_count = 0

    async def _suspend(self):
        await asyncio.sleep(self.latency)

    def _publish(self, event_type: EventType, record: dict[str, Any]):
        self.feed.publish(ChangeEvent(
            event_type=event_type,
            record_id=record["id"],
            partner_link_id=record["partner_link_id"],
        ))

    async def get(self, session_id: str) -> GameSession | None:
        await self._suspend()
        record = self._records.get(session_id)
        if record is None:
            return None
        return GameSession.from_record(record)

    async def find_live(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
    ) -> list[GameSession]:
        await self._suspend()
        records = [
            record for record in self._records.values()
            if record["partner_link_id"] == partner_link_id
            and (game_kind is None or record["game_kind"] == game_kind.value)
        ]
        records.sort(key=lambda r: (r["created_at"], r["id"]))
        return [GameSession.from_record(record) for record in records]

    async def create(self, session: GameSession) -> GameSession:
        await self._suspend()
        if session.session_id in self._records:
            raise DuplicateSessionError(session.session_id)

        now = self._clock()
        record = session._copy_with(version=1, created_at=now, updated_at=now).to_record()
        self._records[session.session_id] = record
        self.write_count += 1

        logger.info(
            "Created %s session %s for %s",
            record["game_kind"], record["id"], record["partner_link_id"],
        )
        self._publish(EventType.INSERT, record)
        return GameSession.from_record(record)

    async def replace(self, session: GameSession, expected_version: int) -> GameSession:
        await self._suspend()
        current = self._records.get(session.session_id)
        if current is None:
            raise SessionNotFoundError(session.session_id)

        if self.check_versions and current["version"] != expected_version:
            logger.info(
                "Rejected stale write to %s (expected v%d, at v%d)",
                session.session_id, expected_version, current["version"],
            )
            raise ConflictError(session.session_id, expected_version, current["version"])

        record = session._copy_with(
            version=current["version"] + 1,
            created_at=current["created_at"],
            updated_at=self._clock(),
        ).to_record()
        self._records[session.session_id] = record
        self.write_count += 1

        self._publish(EventType.UPDATE, record)
        return GameSession.from_record(record)

    async def delete(self, session_id: str) -> bool:
        await self._suspend()
        record = self._records.pop(session_id, None)
        if record is None:
            return False

        logger.info("Deleted session %s", session_id)
        self._publish(EventType.DELETE, record)
        return True

    async def purge_terminal(self, max_age_seconds: float = 3600) -> list[str]:
        """
        Delete finished rounds not touched for ``max_age_seconds``.

        Live rounds are never removed, however old.
        """
        await self._suspend()
        now = self._clock()
        stale = [
            record for record in self._records.values()
            if now - record["updated_at"] > max_age_seconds
            and GameSession.from_record(record).is_terminal
        ]

        for record in stale:
            del self._records[record["id"]]
            self._publish(EventType.DELETE, record)

        if stale:
            logger.info("Purged %d finished session(s)", len(stale))
        return [record["id"] for record in stale]

    def __len__(self) -> int:
        return len(self._records)
