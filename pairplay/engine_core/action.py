"""
Action System - Actions, payloads, and results.

Actions represent:
1. Generic partner actions (mark ready, end game)
2. Game-specific moves (select mode, guess, answer, reveal, ...)

All state changes flow through actions. Rejections are returned as
ActionResult values carrying an ErrorCode, never raised.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import time
import uuid


class ActionType(Enum):
    """Types of actions in the system."""
    # Generic actions (handled by the reducer for every game kind)
    MARK_READY = "mark_ready"
    END_GAME = "end_game"

    # Turn-based prompt games
    SELECT_MODE = "select_mode"  # truth/dare, or prompt category
    ADVANCE_CARD = "advance_card"
    SWITCH_MODE = "switch_mode"
    SUBMIT_RESPONSE = "submit_response"

    # Two Truths & a Lie
    SUBMIT_STATEMENTS = "submit_statements"
    GUESS = "guess"

    # Reveal-sensitive
    REVEAL = "reveal"

    # Question games
    ANSWER = "answer"


class ErrorCode(str, Enum):
    """Structured rejection and failure codes."""
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    WRONG_PHASE = "WRONG_PHASE"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    NOT_A_PARTICIPANT = "NOT_A_PARTICIPANT"
    INVALID_ACTION = "INVALID_ACTION"
    CONFLICT = "CONFLICT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


# Codes produced by the state machine itself; expected during normal play
RULE_REJECTIONS = frozenset({
    ErrorCode.NOT_YOUR_TURN,
    ErrorCode.WRONG_PHASE,
    ErrorCode.NOT_A_PARTICIPANT,
    ErrorCode.INVALID_ACTION,
})


@dataclass
class ActionPayload:
    """
    Payload for an action - contains the action parameters.

    Different action types have different payload shapes.
    This is a generic container; validation happens in the machines.
    """
    # Common fields
    player_id: str | None = None

    # Choice-like parameters ("truth", "dare", "A", "B", category name)
    choice: str | None = None

    # Index-like parameters (guess, question index, readiness index)
    index: int | None = None

    # Free text (tonight's plans response)
    text: str | None = None

    # Two Truths & a Lie submission
    statements: list[str] | None = None

    # Generic params
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Action:
    """
    A complete action to be applied to a session.

    Actions are:
    - Validated by the reducer before application
    - Replayed verbatim when a write loses a race
    - Safe to re-apply once already applied
    """
    action_type: ActionType
    payload: ActionPayload = field(default_factory=ActionPayload)
    timestamp: float | None = None
    action_id: str | None = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = time.time()
        if self.action_id is None:
            self.action_id = str(uuid.uuid4())

    @classmethod
    def mark_ready(cls, player_id: str, index: int | None = None) -> Action:
        """Factory for a readiness flag on the given prompt index."""
        return cls(
            action_type=ActionType.MARK_READY,
            payload=ActionPayload(player_id=player_id, index=index),
        )

    @classmethod
    def select_mode(cls, choice: str) -> Action:
        """Factory for picking truth/dare (or a prompt category)."""
        return cls(action_type=ActionType.SELECT_MODE, payload=ActionPayload(choice=choice))

    @classmethod
    def advance_card(cls) -> Action:
        return cls(action_type=ActionType.ADVANCE_CARD)

    @classmethod
    def switch_mode(cls) -> Action:
        return cls(action_type=ActionType.SWITCH_MODE)

    @classmethod
    def submit_statements(cls, statements: list[str], lie_index: int) -> Action:
        """Factory for the Two Truths & a Lie creator submission."""
        return cls(
            action_type=ActionType.SUBMIT_STATEMENTS,
            payload=ActionPayload(statements=list(statements), index=lie_index),
        )

    @classmethod
    def guess(cls, statement_index: int) -> Action:
        return cls(action_type=ActionType.GUESS, payload=ActionPayload(index=statement_index))

    @classmethod
    def reveal(cls) -> Action:
        return cls(action_type=ActionType.REVEAL)

    @classmethod
    def answer(cls, question_index: int, choice: str) -> Action:
        """Factory for answering one question of a question game."""
        return cls(
            action_type=ActionType.ANSWER,
            payload=ActionPayload(index=question_index, choice=choice),
        )

    @classmethod
    def submit_response(cls, text: str) -> Action:
        return cls(action_type=ActionType.SUBMIT_RESPONSE, payload=ActionPayload(text=text))

    @classmethod
    def end_game(cls) -> Action:
        return cls(action_type=ActionType.END_GAME)


@dataclass
class ActionResult:
    """
    Result of applying an action.

    Contains:
    - Whether action succeeded
    - New session (if succeeded)
    - Error and error code (if rejected or failed)
    - Whether anything changed (re-applied actions succeed unchanged)
    """
    success: bool
    new_state: Any | None = None  # GameSession
    error: str | None = None
    error_code: ErrorCode | None = None
    changed: bool = True

    # For UI/presentation
    state_changes: list[str] = field(default_factory=list)

    # Set by the coordinator when a terminal outcome was recorded
    outcome: Any | None = None

    @property
    def rejected(self) -> bool:
        """True for expected rule rejections (not your turn, wrong phase, ...)."""
        return not self.success and self.error_code in RULE_REJECTIONS

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode | None = None) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code, changed=False)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])

    @classmethod
    def unchanged(cls, state: Any, note: str | None = None) -> ActionResult:
        """Create a success result for an action that was already applied."""
        return cls(
            success=True,
            new_state=state,
            changed=False,
            state_changes=[note] if note else [],
        )
