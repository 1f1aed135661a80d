"""
Session State - The shared game record and its per-game state payloads.

Design principles:
- Immutable-friendly: all mutations return a new session
- Serializable: a session round-trips through a JSON-safe record
- One record: state, readiness and current index always travel together
- Game-agnostic: per-kind state classes live in ``pairplay.games``
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class GameKind(Enum):
    """Mini-games that can be played by a partnership."""
    TRUTH_OR_DARE = "truth_or_dare"
    TWO_TRUTHS_ONE_LIE = "two_truths"
    THIS_OR_THAT = "this_or_that"
    TONIGHTS_PLANS = "tonights_plans"
    QUIZ_GAME = "quiz"

    @property
    def label(self) -> str:
        return {
            GameKind.TRUTH_OR_DARE: "Truth or Dare",
            GameKind.TWO_TRUTHS_ONE_LIE: "Two Truths & a Lie",
            GameKind.THIS_OR_THAT: "This or That",
            GameKind.TONIGHTS_PLANS: "Tonight's Plans",
            GameKind.QUIZ_GAME: "How Well Do You Know Them?",
        }[self]


@dataclass(frozen=True)
class PartnerLink:
    """
    An accepted pairing of two user accounts.

    Owned by the account system; the engine only references it.
    """
    link_id: str
    user_a: str
    user_b: str

    @property
    def members(self) -> tuple[str, str]:
        return (self.user_a, self.user_b)

    def partner_of(self, user_id: str) -> str:
        """Get the other member of the pairing."""
        if user_id == self.user_a:
            return self.user_b
        if user_id == self.user_b:
            return self.user_a
        raise ValueError(f"{user_id} is not part of partner link {self.link_id}")


@dataclass
class GameState:
    """
    Base for per-kind state payloads.

    Every kind shares the shape ``{mode, ...payload}``. ``mode`` is an enum
    owned by the subclass; ``TERMINAL_MODES`` lists the modes that end a round
    and ``COMPLETED_MODES`` the subset reached by finishing it rather than
    by EndGame. Only completed rounds have an outcome worth recording.
    """
    TERMINAL_MODES: ClassVar[frozenset] = frozenset()
    COMPLETED_MODES: ClassVar[frozenset] = frozenset()

    @property
    def is_terminal(self) -> bool:
        return getattr(self, "mode") in self.TERMINAL_MODES

    @property
    def is_completed(self) -> bool:
        return getattr(self, "mode") in self.COMPLETED_MODES

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameState:
        raise NotImplementedError


@dataclass
class GameSession:
    """
    The single live record for one in-progress round of a partnership.

    ``readiness`` has exactly one entry per partner; its keys are the two
    participants. ``version`` is assigned by the store and used for
    compare-and-swap writes.
    """
    session_id: str
    partner_link_id: str
    game_kind: GameKind
    started_by: str
    state: Any  # GameState subclass for game_kind
    readiness: dict[str, bool] = field(default_factory=dict)
    current_index: int = 0
    version: int = 0
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def players(self) -> list[str]:
        return list(self.readiness.keys())

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_completed(self) -> bool:
        return self.state.is_completed

    @property
    def both_ready(self) -> bool:
        return len(self.readiness) == 2 and all(self.readiness.values())

    def is_participant(self, user_id: str) -> bool:
        return user_id in self.readiness

    def partner_of(self, user_id: str) -> str | None:
        for player in self.readiness:
            if player != user_id:
                return player
        return None

    def with_state(self, state: GameState) -> GameSession:
        """Return new session with a different state payload."""
        return self._copy_with(state=state)

    def with_ready(self, user_id: str, ready: bool = True) -> GameSession:
        """Return new session with one readiness flag changed."""
        readiness = dict(self.readiness)
        readiness[user_id] = ready
        return self._copy_with(readiness=readiness)

    def with_readiness_reset(self) -> GameSession:
        """Return new session with both flags cleared and the next prompt index.

        Ready flags are keyed by index, so a flag sent before the reset can
        never satisfy the gate after it.
        """
        return self._copy_with(
            readiness={player: False for player in self.readiness},
            current_index=self.current_index + 1,
        )

    def _copy_with(self, **kwargs) -> GameSession:
        """Create a copy with some fields replaced."""
        return GameSession(
            session_id=kwargs.get("session_id", self.session_id),
            partner_link_id=kwargs.get("partner_link_id", self.partner_link_id),
            game_kind=kwargs.get("game_kind", self.game_kind),
            started_by=kwargs.get("started_by", self.started_by),
            state=kwargs.get("state", self.state),
            readiness=kwargs.get("readiness", dict(self.readiness)),
            current_index=kwargs.get("current_index", self.current_index),
            version=kwargs.get("version", self.version),
            created_at=kwargs.get("created_at", self.created_at),
            updated_at=kwargs.get("updated_at", self.updated_at),
        )

    def same_content(self, other: GameSession | None) -> bool:
        """True if state, readiness and index match (ignores version and timestamps)."""
        if other is None:
            return False
        return (
            self.session_id == other.session_id
            and self.state == other.state
            and self.readiness == other.readiness
            and self.current_index == other.current_index
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize to the JSON-safe record persisted by stores."""
        return {
            "id": self.session_id,
            "partner_link_id": self.partner_link_id,
            "game_kind": self.game_kind.value,
            "started_by": self.started_by,
            "state": self.state.to_dict(),
            "readiness": dict(self.readiness),
            "current_index": self.current_index,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> GameSession:
        """Rebuild a session from a stored record."""
        from ..games import state_from_dict

        game_kind = GameKind(record["game_kind"])
        return cls(
            session_id=record["id"],
            partner_link_id=record["partner_link_id"],
            game_kind=game_kind,
            started_by=record["started_by"],
            state=state_from_dict(game_kind, record.get("state") or {}),
            readiness={str(k): bool(v) for k, v in (record.get("readiness") or {}).items()},
            current_index=int(record.get("current_index", 0)),
            version=int(record.get("version", 0)),
            created_at=float(record.get("created_at", 0.0)),
            updated_at=float(record.get("updated_at", 0.0)),
        )
