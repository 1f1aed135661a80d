"""
Tonight's Plans.

Both partners describe what they'd do together for the same prompt; the
plans stay hidden until both are written and both partners are ready.
The chooser may swap the prompt category before anyone writes and the role
passes to the partner on every new prompt.
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


class TonightsPlansMode(Enum):
    WRITING = "writing"
    REVEALED = "revealed"
    ENDED = "ended"


@dataclass
class TonightsPlansState(GameState):
    mode: TonightsPlansMode = TonightsPlansMode.WRITING
    prompt: str | None = None
    prompt_id: str | None = None
    category: str | None = None
    responses: dict[str, str] = field(default_factory=dict)
    chooser: str | None = None
    spicy: bool = False
    rounds_revealed: int = 0

    TERMINAL_MODES: ClassVar[frozenset] = frozenset({TonightsPlansMode.ENDED})

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "prompt": self.prompt,
            "prompt_id": self.prompt_id,
            "category": self.category,
            "responses": dict(self.responses),
            "chooser": self.chooser,
            "spicy": self.spicy,
            "rounds_revealed": self.rounds_revealed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TonightsPlansState:
        return cls(
            mode=TonightsPlansMode(data.get("mode", TonightsPlansMode.WRITING.value)),
            prompt=data.get("prompt"),
            prompt_id=data.get("prompt_id"),
            category=data.get("category"),
            responses={str(k): str(v) for k, v in (data.get("responses") or {}).items()},
            chooser=data.get("chooser"),
            spicy=bool(data.get("spicy", False)),
            rounds_revealed=int(data.get("rounds_revealed", 0)),
        )


class TonightsPlansMachine(GameMachine):
    kind = GameKind.TONIGHTS_PLANS
    state_class = TonightsPlansState

    def initial_state(
        self,
        started_by: str,
        players: list[str],
        payload: dict[str, Any],
        ctx: MachineContext,
    ) -> TonightsPlansState:
        spicy = bool(payload.get("spicy", False))
        try:
            prompt = ctx.content.get_prompt(
                self.kind, spicy=spicy, category=payload.get("category"), rng=ctx.rng,
            )
        except LookupError as e:
            raise ValueError(str(e)) from e
        return TonightsPlansState(
            prompt=prompt.text,
            prompt_id=prompt.prompt_id,
            category=prompt.category,
            chooser=started_by,
            spicy=spicy,
        )

    def handlers(self):
        return {
            ActionType.SELECT_MODE: self._handle_select_category,
            ActionType.SUBMIT_RESPONSE: self._handle_submit_response,
            ActionType.REVEAL: self._handle_reveal,
            ActionType.ADVANCE_CARD: self._handle_advance_card,
        }

    def ended(self, state: TonightsPlansState) -> TonightsPlansState:
        return replace(state, mode=TonightsPlansMode.ENDED)

    def outcome(self, session: GameSession) -> OutcomeDraft:
        state: TonightsPlansState = session.state
        return OutcomeDraft(
            score=state.rounds_revealed,
            details={"roundsRevealed": state.rounds_revealed, "spicy": state.spicy},
        )

    def _handle_select_category(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TonightsPlansState = session.state
        if user != state.chooser:
            return not_your_turn(f"It's {state.chooser}'s turn to pick the prompt")

        category = action.payload.choice
        if state.mode != TonightsPlansMode.WRITING or state.responses:
            return wrong_phase("The prompt can only change before anyone writes")
        if category == state.category:
            return ActionResult.unchanged(session, f"Already on a {category} prompt")

        try:
            prompt = ctx.content.get_prompt(
                self.kind, spicy=state.spicy, category=category, rng=ctx.rng,
            )
        except LookupError as e:
            return invalid(str(e))

        new_state = replace(
            state, prompt=prompt.text, prompt_id=prompt.prompt_id, category=prompt.category,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"{user} picked a {prompt.category} prompt"],
        )

    def _handle_submit_response(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TonightsPlansState = session.state
        text = (action.payload.text or "").strip()
        if not text:
            return invalid("Write something first")

        previous = state.responses.get(user)
        if previous is not None:
            if previous == text:
                return ActionResult.unchanged(session, "Plan already submitted")
            return wrong_phase("Your plan for this prompt is already in")
        if state.mode != TonightsPlansMode.WRITING:
            return wrong_phase(f"Cannot write while {state.mode.value}")

        responses = dict(state.responses)
        responses[user] = text
        return ActionResult.success_with_state(
            session.with_state(replace(state, responses=responses)),
            changes=[f"{user} submitted a plan"],
        )

    def _handle_reveal(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TonightsPlansState = session.state
        if state.mode == TonightsPlansMode.REVEALED:
            return ActionResult.unchanged(session, "Plans already revealed")
        if state.mode != TonightsPlansMode.WRITING:
            return wrong_phase(f"Nothing to reveal while {state.mode.value}")
        if any(player not in state.responses for player in session.players):
            return wrong_phase("Both plans must be written before revealing")

        gate = require_both_ready(session)
        if gate:
            return gate

        new_state = replace(
            state,
            mode=TonightsPlansMode.REVEALED,
            rounds_revealed=state.rounds_revealed + 1,
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=["Plans revealed"],
        )

    def _handle_advance_card(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: TonightsPlansState = session.state
        if state.mode != TonightsPlansMode.REVEALED:
            return wrong_phase(f"Cannot move on while {state.mode.value}")

        gate = require_both_ready(session)
        if gate:
            return gate

        try:
            prompt = ctx.content.get_prompt(self.kind, spicy=state.spicy, rng=ctx.rng)
        except LookupError as e:
            return invalid(str(e))

        new_state = replace(
            state,
            mode=TonightsPlansMode.WRITING,
            prompt=prompt.text,
            prompt_id=prompt.prompt_id,
            category=prompt.category,
            responses={},
            chooser=session.partner_of(state.chooser),
        )
        return ActionResult.success_with_state(
            session.with_readiness_reset().with_state(new_state),
            changes=[f"New prompt, {new_state.chooser} picks next"],
        )
