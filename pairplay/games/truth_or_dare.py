"""
Truth or Dare.

Flow:
    CHOOSING --SelectMode(chooser)--> AWAITING_BOTH_READY (prompt drawn, hidden)
    AWAITING_BOTH_READY --Reveal(both ready)--> REVEALED
    REVEALED --AdvanceCard(both ready)--> AWAITING_BOTH_READY (next prompt, same type)
    REVEALED --SwitchMode--> CHOOSING (chooser passes to the partner)
    any --EndGame--> ENDED

Only the chooser may pick truth or dare; the initiator chooses first.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, ClassVar

from ..engine_core.action import Action, ActionResult, ActionType
from ..engine_core.state import GameKind, GameSession, GameState
from .base import (
    GameMachine, MachineContext, OutcomeDraft,
    invalid, not_your_turn, require_both_ready, wrong_phase,
)


class TruthOrDareMode(Enum):
    CHOOSING = "choosing"
    AWAITING_BOTH_READY = "awaiting_both_ready"
    REVEALED = "revealed"
    ENDED = "ended"


class CardType(Enum):
    TRUTH = "truth"
    DARE = "dare"


@dataclass
class TruthOrDareState(GameState):
    mode: TruthOrDareMode = TruthOrDareMode.CHOOSING
    card_type: CardType | None = None
    prompt: str | None = None
    prompt_id: str | None = None
    chooser: str | None = None
    spicy: bool = False
    cards_revealed: int = 0

    TERMINAL_MODES: ClassVar[frozenset] = frozenset({TruthOrDareMode.ENDED})

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "card_type": self.card_type.value if self.card_type else None,
            "prompt": self.prompt,
            "prompt_id": self.prompt_id,
            "chooser": self.chooser,
            "spicy": self.spicy,
            "cards_revealed": self.cards_revealed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TruthOrDareState:
        card_type = data.get("card_type")
        return cls(
            mode=TruthOrDareMode(data.get("mode", TruthOrDareMode.CHOOSING.value)),
            card_type=CardType(card_type) if card_type else None,
            prompt=data.get("prompt"),
            prompt_id=data.get("prompt_id"),
            chooser=data.get("chooser"),
            spicy=bool(data.get("spicy", False)),
            cards_revealed=int(data.get("cards_revealed", 0)),
        )


class TruthOrDareMachine(GameMachine):
    kind = GameKind.TRUTH_OR_DARE
    state_class = TruthOrDareState

    def initial_state(
        self,
        started_by: str,
        players: list[str],
        payload: dict[str, Any],
        ctx: MachineContext,
    ) -> TruthOrDareState:
        return TruthOrDareState(chooser=started_by, spicy=bool(payload.get("spicy", False)))

    def handlers(self):
        return {
            ActionType.SELECT_MODE: self._handle_select_mode,
            ActionType.REVEAL: self._handle_reveal,
            ActionType.ADVANCE_CARD: self._handle_advance_card,
            ActionType.SWITCH_MODE: self._handle_switch_mode,
        }

    def ended(self, state: TruthOrDareState) -> TruthOrDareState:
        return replace(state, mode=TruthOrDareMode.ENDED)

    def outcome(self, session: GameSession) -> OutcomeDraft:
        state: TruthOrDareState = session.state
        return OutcomeDraft(
            score=state.cards_revealed,
            details={
                "cardsRevealed": state.cards_revealed,
                "lastCardType": state.card_type.value if state.card_type else None,
                "spicy": state.spicy,
            },
        )

    def _handle_select_mode(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TruthOrDareState = session.state

        # The non-chooser is rejected in every mode, ENDED included
        if user != state.chooser:
            return not_your_turn(f"It's {state.chooser}'s turn to choose")

        try:
            card_type = CardType(action.payload.choice)
        except ValueError:
            return invalid(f"Choose truth or dare, not {action.payload.choice!r}")

        if state.mode == TruthOrDareMode.AWAITING_BOTH_READY and state.card_type == card_type:
            return ActionResult.unchanged(session, f"{card_type.value} already chosen")
        if state.mode != TruthOrDareMode.CHOOSING:
            return wrong_phase(f"Cannot choose while {state.mode.value}")

        try:
            prompt = ctx.content.get_prompt(
                self.kind, spicy=state.spicy, category=card_type.value, rng=ctx.rng,
            )
        except LookupError as e:
            return invalid(str(e))

        new_state = replace(
            state,
            mode=TruthOrDareMode.AWAITING_BOTH_READY,
            card_type=card_type,
            prompt=prompt.text,
            prompt_id=prompt.prompt_id,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"{user} chose {card_type.value}"],
        )

    def _handle_reveal(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TruthOrDareState = session.state
        if state.mode == TruthOrDareMode.REVEALED:
            return ActionResult.unchanged(session, "Card already revealed")
        if state.mode != TruthOrDareMode.AWAITING_BOTH_READY:
            return wrong_phase(f"Nothing to reveal while {state.mode.value}")

        gate = require_both_ready(session)
        if gate:
            return gate

        new_state = replace(
            state,
            mode=TruthOrDareMode.REVEALED,
            cards_revealed=state.cards_revealed + 1,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"{state.card_type.value.capitalize()} revealed: {state.prompt}"],
        )

    def _handle_advance_card(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TruthOrDareState = session.state
        if state.mode != TruthOrDareMode.REVEALED:
            return wrong_phase(f"Cannot advance while {state.mode.value}")

        gate = require_both_ready(session)
        if gate:
            return gate

        try:
            prompt = ctx.content.get_prompt(
                self.kind, spicy=state.spicy, category=state.card_type.value, rng=ctx.rng,
            )
        except LookupError as e:
            return invalid(str(e))

        new_state = replace(
            state,
            mode=TruthOrDareMode.AWAITING_BOTH_READY,
            prompt=prompt.text,
            prompt_id=prompt.prompt_id,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"Next {state.card_type.value} drawn"],
        )

    def _handle_switch_mode(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TruthOrDareState = session.state
        if state.mode != TruthOrDareMode.REVEALED:
            return wrong_phase(f"Cannot switch while {state.mode.value}")

        new_state = replace(
            state,
            mode=TruthOrDareMode.CHOOSING,
            card_type=None,
            prompt=None,
            prompt_id=None,
            chooser=session.partner_of(state.chooser),
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"{new_state.chooser} chooses next"],
        )
