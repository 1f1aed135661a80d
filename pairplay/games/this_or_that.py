"""
This or That.

Quick-fire "A or B" preferences. Either partner may answer each question
once; compatibility is derived from the answer map when the round is read,
never stored in it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from ..engine_core.scoring import compatibility_label, compatibility_score
from ..engine_core.state import GameKind, GameSession
from .base import OutcomeDraft
from .questions import QuestionGameMachine, QuestionRoundState

CHOICES = {"A", "B"}


@dataclass
class ThisOrThatState(QuestionRoundState):
    pass


class ThisOrThatMachine(QuestionGameMachine):
    kind = GameKind.THIS_OR_THAT
    state_class = ThisOrThatState
    default_question_count = 10

    def choices_for(self, question: dict[str, Any]) -> set[str]:
        return CHOICES

    def outcome(self, session: GameSession) -> OutcomeDraft:
        state: ThisOrThatState = session.state
        score = compatibility_score(state.answers, session.players, state.total_questions)
        return OutcomeDraft(
            score=score.percent or 0,
            details={
                "matches": score.matches,
                "answeredByBoth": score.answered_by_both,
                "totalQuestions": score.total_questions,
                "compatibility": score.percent,
                "label": compatibility_label(score.percent),
            },
        )
