"""
Games - One state machine per game kind.

The registry maps every GameKind to its machine; adding a kind means adding
a machine here, and ``machine_for`` fails loudly for an unregistered kind.
"""

from ..engine_core.state import GameKind, GameState
from .base import GameMachine, MachineContext, OutcomeDraft
from .content import ContentPool, Prompt, StaticContentPool
from .truth_or_dare import TruthOrDareMachine, TruthOrDareState, TruthOrDareMode, CardType
from .two_truths import TwoTruthsMachine, TwoTruthsState, TwoTruthsMode
from .questions import QuestionMode
from .this_or_that import ThisOrThatMachine, ThisOrThatState
from .quiz import QuizMachine, QuizState
from .tonights_plans import TonightsPlansMachine, TonightsPlansState, TonightsPlansMode

MACHINES: dict[GameKind, GameMachine] = {
    GameKind.TRUTH_OR_DARE: TruthOrDareMachine(),
    GameKind.TWO_TRUTHS_ONE_LIE: TwoTruthsMachine(),
    GameKind.THIS_OR_THAT: ThisOrThatMachine(),
    GameKind.TONIGHTS_PLANS: TonightsPlansMachine(),
    GameKind.QUIZ_GAME: QuizMachine(),
}


def machine_for(game_kind: GameKind) -> GameMachine:
    """Get the machine for a game kind."""
    try:
        return MACHINES[game_kind]
    except KeyError:
        raise ValueError(f"No machine registered for {game_kind}") from None


def state_from_dict(game_kind: GameKind, data: dict) -> GameState:
    """Decode a stored state payload for a game kind."""
    return machine_for(game_kind).state_from_dict(data)


__all__ = [
    "MACHINES",
    "machine_for",
    "state_from_dict",
    "GameMachine",
    "MachineContext",
    "OutcomeDraft",
    "ContentPool",
    "Prompt",
    "StaticContentPool",
    "TruthOrDareMachine",
    "TruthOrDareState",
    "TruthOrDareMode",
    "CardType",
    "TwoTruthsMachine",
    "TwoTruthsState",
    "TwoTruthsMode",
    "QuestionMode",
    "ThisOrThatMachine",
    "ThisOrThatState",
    "QuizMachine",
    "QuizState",
    "TonightsPlansMachine",
    "TonightsPlansState",
    "TonightsPlansMode",
]
