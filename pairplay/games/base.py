"""
Game Machine - Base class for per-kind state machines.

A machine is stateless: all state is in the GameSession it receives.
Every transition returns a new session (or a rejection) and never mutates
its input.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable
import random

from ..engine_core.action import Action, ActionResult, ActionType, ErrorCode
from ..engine_core.state import GameKind, GameSession, GameState
from .content import ContentPool


@dataclass
class MachineContext:
    """External collaborators a transition may consult."""
    content: ContentPool
    rng: random.Random = field(default_factory=random.Random)


@dataclass
class OutcomeDraft:
    """Score and details of a finished round, before it is attributed to a player."""
    score: int = 0
    details: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[GameSession, Action, str, MachineContext], ActionResult]


class GameMachine(ABC):
    """
    State machine for one game kind.

    Subclasses provide the state class, the initial state, one handler per
    supported action type, the ended state and the outcome of a finished
    round.
    """
    kind: GameKind
    state_class: type[GameState]

    @abstractmethod
    def initial_state(
        self,
        started_by: str,
        players: list[str],
        payload: dict[str, Any],
        ctx: MachineContext,
    ) -> GameState:
        """
        Build the first state of a new round.

        Raises ValueError if the start payload is invalid.
        """

    @abstractmethod
    def handlers(self) -> dict[ActionType, Handler]:
        """Map of action type to transition handler."""

    @abstractmethod
    def ended(self, state: GameState) -> GameState:
        """The state after an explicit EndGame."""

    @abstractmethod
    def outcome(self, session: GameSession) -> OutcomeDraft:
        """Score of a terminal session."""

    def transition(
        self,
        session: GameSession,
        action: Action,
        acting_user: str,
        ctx: MachineContext,
    ) -> ActionResult:
        """Dispatch an action to its handler."""
        handler = self.handlers().get(action.action_type)
        if handler is None:
            return ActionResult.failure(
                f"{action.action_type.value} is not a move in {self.kind.label}",
                error_code=ErrorCode.INVALID_ACTION,
            )
        return handler(session, action, acting_user, ctx)

    def state_from_dict(self, data: dict[str, Any]) -> GameState:
        return self.state_class.from_dict(data)


def wrong_phase(message: str) -> ActionResult:
    return ActionResult.failure(message, error_code=ErrorCode.WRONG_PHASE)


def not_your_turn(message: str) -> ActionResult:
    return ActionResult.failure(message, error_code=ErrorCode.NOT_YOUR_TURN)


def invalid(message: str) -> ActionResult:
    return ActionResult.failure(message, error_code=ErrorCode.INVALID_ACTION)


def require_both_ready(session: GameSession) -> ActionResult | None:
    """Readiness gate: a rejection unless both partners flagged ready."""
    if not session.both_ready:
        waiting = [player for player, ready in session.readiness.items() if not ready]
        return wrong_phase(f"Waiting for {', '.join(waiting)} to be ready")
    return None
