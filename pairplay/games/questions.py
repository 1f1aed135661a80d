"""
Question rounds - shared machinery for symmetric question games.

Both partners answer the same fixed list of questions, in any order, once
per question. The question list is drawn from the content pool when the
round starts and stored in the session so both clients see the same list.
The round completes when every question has been answered by both.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar

from ..engine_core.action import Action, ActionResult, ActionType
from ..engine_core.state import GameSession, GameState
from .base import GameMachine, MachineContext, invalid, wrong_phase


class QuestionMode(Enum):
    ANSWERING = "answering"
    COMPLETE = "complete"
    ENDED = "ended"


@dataclass
class QuestionRoundState(GameState):
    mode: QuestionMode = QuestionMode.ANSWERING
    questions: list[dict[str, Any]] = field(default_factory=list)
    answers: dict[int, dict[str, str]] = field(default_factory=dict)

    TERMINAL_MODES: ClassVar[frozenset] = frozenset({QuestionMode.COMPLETE, QuestionMode.ENDED})
    COMPLETED_MODES: ClassVar[frozenset] = frozenset({QuestionMode.COMPLETE})

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def answered_by(self, user_id: str) -> int:
        return sum(1 for per_user in self.answers.values() if user_id in per_user)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "questions": [dict(q) for q in self.questions],
            # JSON object keys are strings
            "answers": {str(i): dict(per_user) for i, per_user in self.answers.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestionRoundState:
        return cls(
            mode=QuestionMode(data.get("mode", QuestionMode.ANSWERING.value)),
            questions=[dict(q) for q in data.get("questions") or []],
            answers={
                int(i): {str(u): str(a) for u, a in per_user.items()}
                for i, per_user in (data.get("answers") or {}).items()
            },
        )


class QuestionGameMachine(GameMachine):
    """
    Base machine for question games.

    Subclasses set ``state_class``, ``default_question_count`` and
    ``choices_for``, and score the finished round.
    """
    default_question_count = 10

    def choices_for(self, question: dict[str, Any]) -> set[str]:
        raise NotImplementedError

    def initial_state(
        self,
        started_by: str,
        players: list[str],
        payload: dict[str, Any],
        ctx: MachineContext,
    ) -> QuestionRoundState:
        count = payload.get("question_count", self.default_question_count)
        if not isinstance(count, int) or count < 1:
            raise ValueError("question_count must be a positive integer")

        try:
            prompts = ctx.content.sample(
                self.kind, count, spicy=bool(payload.get("spicy", False)), rng=ctx.rng,
            )
        except LookupError as e:
            raise ValueError(str(e)) from e

        questions = [
            {"prompt_id": p.prompt_id, "text": p.text, "options": list(p.options)}
            for p in prompts
        ]
        return self.state_class(questions=questions)

    def handlers(self):
        return {ActionType.ANSWER: self._handle_answer}

    def ended(self, state: QuestionRoundState) -> QuestionRoundState:
        return replace(state, mode=QuestionMode.ENDED)

    def _handle_answer(
        self, session: GameSession, action: Action, user: str, ctx: MachineContext,
    ) -> ActionResult:
        state: QuestionRoundState = session.state
        index = action.payload.index
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < state.total_questions:
            return invalid(f"Question index must be between 0 and {state.total_questions - 1}")

        choice = action.payload.choice
        if choice not in self.choices_for(state.questions[index]):
            return invalid(f"{choice!r} is not an option for question {index + 1}")

        previous = state.answers.get(index, {}).get(user)
        if previous is not None:
            if previous == choice:
                return ActionResult.unchanged(session, "Answer already recorded")
            return wrong_phase(f"Question {index + 1} was already answered")
        if state.mode != QuestionMode.ANSWERING:
            return wrong_phase(f"Round is {state.mode.value}")

        answers = {i: dict(per_user) for i, per_user in state.answers.items()}
        answers.setdefault(index, {})[user] = choice

        both_answered = sum(
            1 for per_user in answers.values()
            if all(player in per_user for player in session.players)
        )
        mode = (
            QuestionMode.COMPLETE
            if both_answered >= state.total_questions
            else QuestionMode.ANSWERING
        )
        new_state = replace(state, mode=mode, answers=answers)

        changes = [f"{user} answered question {index + 1}"]
        if mode == QuestionMode.COMPLETE:
            changes.append("All questions answered")
        return ActionResult.success_with_state(
            session._copy_with(state=new_state, current_index=both_answered),
            changes=changes,
        )
