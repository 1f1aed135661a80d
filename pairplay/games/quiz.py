"""
How Well Do You Know Them?

The initiator answers multiple-choice questions about themself while the
partner predicts the answers. Answers are option indexes sent as strings.
Score is the share of questions where the prediction matched, over the
whole quiz.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from ..engine_core.scoring import compatibility_score, round_half_up
from ..engine_core.state import GameKind, GameSession
from .base import OutcomeDraft
from .questions import QuestionGameMachine, QuestionRoundState


@dataclass
class QuizState(QuestionRoundState):
    pass


class QuizMachine(QuestionGameMachine):
    kind = GameKind.QUIZ_GAME
    state_class = QuizState
    default_question_count = 5

    def choices_for(self, question: dict[str, Any]) -> set[str]:
        return {str(i) for i in range(len(question.get("options") or []))}

    def outcome(self, session: GameSession) -> OutcomeDraft:
        state: QuizState = session.state
        score = compatibility_score(state.answers, session.players, state.total_questions)
        percent = (
            round_half_up(score.matches / state.total_questions * 100)
            if state.total_questions else 0
        )
        return OutcomeDraft(
            score=percent,
            details={
                "subject": session.started_by,
                "matches": score.matches,
                "totalQuestions": state.total_questions,
            },
        )
