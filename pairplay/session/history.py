"""
History Recorder - Append-only log of finished rounds.

The core only ever writes here, once per terminal session. Reads serve the
API (history screens, compatibility summaries).
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
import asyncio
import logging
import time
import uuid

from ..engine_core.state import GameKind, GameSession

logger = logging.getLogger(__name__)


@dataclass
class GameOutcome:
    """Durable record of one finished round."""
    session_id: str
    partner_link_id: str
    game_kind: GameKind
    played_by: list[str]
    score: int = 0
    details: dict[str, Any] = field(default_factory=dict)
    completed_at: float = field(default_factory=time.time)
    outcome_id: str | None = None

    @classmethod
    def from_session(cls, session: GameSession, score: int, details: dict[str, Any]) -> GameOutcome:
        return cls(
            session_id=session.session_id,
            partner_link_id=session.partner_link_id,
            game_kind=session.game_kind,
            played_by=session.players,
            score=score,
            details=dict(details),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome_id": self.outcome_id,
            "session_id": self.session_id,
            "partner_link_id": self.partner_link_id,
            "game_kind": self.game_kind.value,
            "played_by": list(self.played_by),
            "score": self.score,
            "details": dict(self.details),
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameOutcome:
        return cls(
            outcome_id=data.get("outcome_id"),
            session_id=data["session_id"],
            partner_link_id=data["partner_link_id"],
            game_kind=GameKind(data["game_kind"]),
            played_by=list(data.get("played_by") or []),
            score=int(data.get("score", 0)),
            details=dict(data.get("details") or {}),
            completed_at=float(data.get("completed_at") or time.time()),
        )


@dataclass
class TwoTruthsTally:
    """One player's Two Truths record: lies spotted as guesser, partners fooled as creator."""
    guessed_correctly: int = 0
    fooled_partner: int = 0


@dataclass
class HistorySummary:
    games_played: int = 0
    total_matches: int = 0
    average_score: float | None = None
    last_played_at: float | None = None
    two_truths: dict[str, TwoTruthsTally] = field(default_factory=dict)


def two_truths_scoreboard(outcomes: list[GameOutcome]) -> dict[str, TwoTruthsTally]:
    """
    Per-player Two Truths tallies.

    A correct guess counts for the round's guesser; a wrong one counts as
    a fooled partner for its creator. Every player of a counted round gets
    an entry, so a player who never scored still shows zeros.
    """
    board: dict[str, TwoTruthsTally] = {}
    for outcome in outcomes:
        if outcome.game_kind != GameKind.TWO_TRUTHS_ONE_LIE:
            continue
        details = outcome.details
        if not details.get("completed", True):
            continue

        for player in outcome.played_by:
            board.setdefault(player, TwoTruthsTally())

        guesser = details.get("guesser")
        creator = details.get("creator")
        if details.get("guessedCorrectly") and guesser:
            board.setdefault(guesser, TwoTruthsTally()).guessed_correctly += 1
        if details.get("fooledPartner") and creator:
            board.setdefault(creator, TwoTruthsTally()).fooled_partner += 1
    return board


def summarize(outcomes: list[GameOutcome]) -> HistorySummary:
    """Aggregate a list of outcomes for display."""
    if not outcomes:
        return HistorySummary()

    return HistorySummary(
        games_played=len(outcomes),
        total_matches=sum(int(o.details.get("matches", 0)) for o in outcomes),
        average_score=round(sum(o.score for o in outcomes) / len(outcomes), 1),
        last_played_at=max(o.completed_at for o in outcomes),
        two_truths=two_truths_scoreboard(outcomes),
    )


class HistoryRecorder(ABC):
    """Append-only outcome log."""

    @abstractmethod
    async def record(self, outcome: GameOutcome) -> str:
        """
        Append an outcome and return its id.

        Recording the same session twice returns the first id.
        """

    @abstractmethod
    async def list_outcomes(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
        limit: int = 50,
    ) -> list[GameOutcome]:
        """Outcomes of a partnership, newest first."""

    async def close(self):
        """Release any connections held by the recorder."""


class InMemoryHistoryRecorder(HistoryRecorder):
    """Reference recorder kept in process memory."""

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._outcomes: list[GameOutcome] = []
        self._by_session: dict[str, str] = {}

    async def record(self, outcome: GameOutcome) -> str:
        await asyncio.sleep(self.latency)
        existing = self._by_session.get(outcome.session_id)
        if existing is not None:
            logger.debug("Outcome for %s already recorded as %s", outcome.session_id, existing)
            return existing

        stored = GameOutcome.from_dict(outcome.to_dict())
        stored.outcome_id = outcome.outcome_id or str(uuid.uuid4())
        self._outcomes.append(stored)
        self._by_session[stored.session_id] = stored.outcome_id

        logger.info(
            "Recorded %s outcome %s (score %d)",
            stored.game_kind.value, stored.outcome_id, stored.score,
        )
        return stored.outcome_id

    async def list_outcomes(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
        limit: int = 50,
    ) -> list[GameOutcome]:
        await asyncio.sleep(self.latency)
        matching = [
            o for o in self._outcomes
            if o.partner_link_id == partner_link_id
            and (game_kind is None or o.game_kind == game_kind)
        ]
        matching.sort(key=lambda o: o.completed_at, reverse=True)
        return [GameOutcome.from_dict(o.to_dict()) for o in matching[:limit]]

    def __len__(self) -> int:
        return len(self._outcomes)
