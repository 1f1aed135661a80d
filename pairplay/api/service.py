"""
Sync Service - Business logic layer between the API and the store.

The service:
1. Decodes and validates whole session records
2. Forwards them to the SessionStore (which announces changes on the feed)
3. Appends and reads finished outcomes

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

from ..engine_core.state import GameKind, GameSession
from ..session import (
    ChangeFeed,
    GameOutcome,
    HistoryRecorder,
    HistorySummary,
    InMemoryHistoryRecorder,
    InMemorySessionStore,
    TwoTruthsTally,
    summarize,
    two_truths_scoreboard,
)

# Rounds considered for a player's Two Truths tally
SCOREBOARD_LIMIT = 500


def decode_record(record: dict[str, Any]) -> GameSession:
    """
    Decode a client record, including its per-kind state payload.

    Raises ValueError if the record cannot be decoded.
    """
    try:
        return GameSession.from_record(record)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid session record: {e}") from e


@dataclass
class SyncService:
    """
    Hosts one store, its change feed and the history log.

    Usage:
        service = SyncService()

        record = await service.create_session(record)
        record = await service.replace_session(record["id"], record, expected_version=1)
        outcomes, summary = await service.history("link-1")
        tally = await service.two_truths_score("link-1", "alice")
    """
    feed: ChangeFeed = field(default_factory=ChangeFeed)
    store: InMemorySessionStore | None = None
    history_recorder: HistoryRecorder = field(default_factory=InMemoryHistoryRecorder)

    def __post_init__(self):
        if self.store is None:
            self.store = InMemorySessionStore(feed=self.feed)
        else:
            self.feed = self.store.feed

    async def create_session(self, record: dict[str, Any]) -> dict[str, Any]:
        """Raises DuplicateSessionError if a record with this id exists."""
        session = decode_record(record)
        created = await self.store.create(session)
        return created.to_record()

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        session = await self.store.get(session_id)
        return session.to_record() if session else None

    async def list_sessions(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
    ) -> list[dict[str, Any]]:
        sessions = await self.store.find_live(partner_link_id, game_kind)
        return [session.to_record() for session in sessions]

    async def replace_session(
        self,
        session_id: str,
        record: dict[str, Any],
        expected_version: int,
    ) -> dict[str, Any]:
        """
        Overwrite a record.

        Raises ConflictError, SessionNotFoundError, or ValueError for a
        record that does not match the URL.
        """
        session = decode_record(record)
        if session.session_id != session_id:
            raise ValueError(f"Record id {session.session_id} does not match {session_id}")
        replaced = await self.store.replace(session, expected_version)
        return replaced.to_record()

    async def delete_session(self, session_id: str) -> bool:
        return await self.store.delete(session_id)

    async def purge_terminal(self, max_age_seconds: float) -> list[str]:
        return await self.store.purge_terminal(max_age_seconds)

    async def record_outcome(self, data: dict[str, Any]) -> str:
        return await self.history_recorder.record(GameOutcome.from_dict(data))

    async def history(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
        limit: int = 50,
    ) -> tuple[list[GameOutcome], HistorySummary]:
        outcomes = await self.history_recorder.list_outcomes(partner_link_id, game_kind, limit)
        return outcomes, summarize(outcomes)

    async def two_truths_score(self, partner_link_id: str, user_id: str) -> TwoTruthsTally:
        """One player's Two Truths tally over the partnership's recent rounds."""
        outcomes = await self.history_recorder.list_outcomes(
            partner_link_id, GameKind.TWO_TRUTHS_ONE_LIE, SCOREBOARD_LIMIT,
        )
        return two_truths_scoreboard(outcomes).get(user_id, TwoTruthsTally())
