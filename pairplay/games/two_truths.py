"""
Two Truths & a Lie.

Two phases: the creator (initiator) submits three statements and marks the
lie, which are immutable afterwards; the partner guesses exactly once. The
answer is revealed once a guess exists and both partners are ready.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar

from ..engine_core.action import Action, ActionResult, ActionType
from ..engine_core.state import GameKind, GameSession, GameState
from .base import (
    GameMachine, MachineContext, OutcomeDraft,
    invalid, not_your_turn, require_both_ready, wrong_phase,
)

STATEMENT_COUNT = 3


class TwoTruthsMode(Enum):
    COMPOSING = "composing"
    AWAITING_GUESS = "awaiting_guess"
    AWAITING_REVEAL = "awaiting_reveal"
    REVEALED = "revealed"
    ENDED = "ended"


@dataclass
class TwoTruthsState(GameState):
    mode: TwoTruthsMode = TwoTruthsMode.COMPOSING
    creator: str | None = None
    statements: list[str] = field(default_factory=list)
    lie_index: int | None = None
    guess: int | None = None
    guesser: str | None = None
    revealed: bool = False
    category: str | None = None

    TERMINAL_MODES: ClassVar[frozenset] = frozenset({TwoTruthsMode.REVEALED, TwoTruthsMode.ENDED})
    COMPLETED_MODES: ClassVar[frozenset] = frozenset({TwoTruthsMode.REVEALED})

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "creator": self.creator,
            "statements": list(self.statements),
            "lie_index": self.lie_index,
            "guess": self.guess,
            "guesser": self.guesser,
            "revealed": self.revealed,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TwoTruthsState:
        return cls(
            mode=TwoTruthsMode(data.get("mode", TwoTruthsMode.COMPOSING.value)),
            creator=data.get("creator"),
            statements=list(data.get("statements") or []),
            lie_index=data.get("lie_index"),
            guess=data.get("guess"),
            guesser=data.get("guesser"),
            revealed=bool(data.get("revealed", False)),
            category=data.get("category"),
        )


def validate_statements(statements: Any, lie_index: Any) -> tuple[list[str], int]:
    """
    Check a creator submission.

    Returns cleaned statements and lie index; raises ValueError if invalid.
    """
    if not isinstance(statements, (list, tuple)) or len(statements) != STATEMENT_COUNT:
        raise ValueError(f"Exactly {STATEMENT_COUNT} statements are required")
    cleaned = [str(s).strip() for s in statements]
    if any(not s for s in cleaned):
        raise ValueError("Statements cannot be empty")
    if not isinstance(lie_index, int) or isinstance(lie_index, bool) or not 0 <= lie_index < STATEMENT_COUNT:
        raise ValueError(f"Lie index must be between 0 and {STATEMENT_COUNT - 1}")
    return cleaned, lie_index


class TwoTruthsMachine(GameMachine):
    kind = GameKind.TWO_TRUTHS_ONE_LIE
    state_class = TwoTruthsState

    def initial_state(
        self,
        started_by: str,
        players: list[str],
        payload: dict[str, Any],
        ctx: MachineContext,
    ) -> TwoTruthsState:
        state = TwoTruthsState(creator=started_by, category=payload.get("category"))
        if payload.get("statements") is None:
            return state

        statements, lie_index = validate_statements(
            payload.get("statements"), payload.get("lie_index"),
        )
        return replace(
            state,
            mode=TwoTruthsMode.AWAITING_GUESS,
            statements=statements,
            lie_index=lie_index,
        )

    def handlers(self):
        return {
            ActionType.SUBMIT_STATEMENTS: self._handle_submit_statements,
            ActionType.GUESS: self._handle_guess,
            ActionType.REVEAL: self._handle_reveal,
        }

    def ended(self, state: TwoTruthsState) -> TwoTruthsState:
        return replace(state, mode=TwoTruthsMode.ENDED)

    def outcome(self, session: GameSession) -> OutcomeDraft:
        state: TwoTruthsState = session.state
        if state.guess is None or state.lie_index is None:
            return OutcomeDraft(score=0, details={
                "guessedCorrectly": False,
                "fooledPartner": False,
                "completed": False,
            })

        correct = state.guess == state.lie_index
        return OutcomeDraft(
            score=1 if correct else 0,
            details={
                "guessedCorrectly": correct,
                "fooledPartner": not correct,
                "guess": state.guess,
                "lieIndex": state.lie_index,
                "creator": state.creator,
                "guesser": state.guesser,
                "completed": state.revealed,
            },
        )

    def _handle_submit_statements(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TwoTruthsState = session.state
        if user != state.creator:
            return not_your_turn("Only the creator writes the statements")

        try:
            statements, lie_index = validate_statements(
                action.payload.statements, action.payload.index,
            )
        except ValueError as e:
            return invalid(str(e))

        if state.mode != TwoTruthsMode.COMPOSING:
            if state.statements == statements and state.lie_index == lie_index:
                return ActionResult.unchanged(session, "Statements already submitted")
            return wrong_phase("Statements are locked once submitted")

        new_state = replace(
            state,
            mode=TwoTruthsMode.AWAITING_GUESS,
            statements=statements,
            lie_index=lie_index,
        )
        return ActionResult.success_with_state(
            session.with_state(new_state),
            changes=[f"{user} submitted two truths and a lie"],
        )

    def _handle_guess(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TwoTruthsState = session.state
        if user == state.creator:
            return not_your_turn("The creator cannot guess their own lie")

        guess = action.payload.index
        if not isinstance(guess, int) or isinstance(guess, bool) or not 0 <= guess < STATEMENT_COUNT:
            return invalid(f"Guess must be between 0 and {STATEMENT_COUNT - 1}")

        if state.guess is not None:
            if state.guess == guess:
                return ActionResult.unchanged(session, "Guess already submitted")
            return wrong_phase("A guess has already been submitted")
        if state.mode != TwoTruthsMode.AWAITING_GUESS:
            return wrong_phase(f"Cannot guess while {state.mode.value}")

        new_state = replace(
            state,
            mode=TwoTruthsMode.AWAITING_REVEAL,
            guess=guess,
            guesser=user,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"{user} guessed statement {guess + 1}"],
        )

    def _handle_reveal(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TwoTruthsState = session.state
        if state.mode == TwoTruthsMode.REVEALED:
            return ActionResult.unchanged(session, "Already revealed")
        if state.guess is None or state.mode != TwoTruthsMode.AWAITING_REVEAL:
            return wrong_phase("Nothing to reveal until a guess is submitted")

        gate = require_both_ready(session)
        if gate:
            return gate

        new_state = replace(state, mode=TwoTruthsMode.REVEALED, revealed=True)
        verdict = "correct" if state.guess == state.lie_index else "fooled"
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"Lie revealed: statement {state.lie_index + 1} ({verdict})"],
        )
