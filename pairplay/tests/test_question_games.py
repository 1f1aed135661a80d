"""
Tests for the question games (This or That, and the quiz).
"""

import pytest

from ..engine_core.action import Action, ErrorCode
from ..engine_core.state import GameKind
from ..games import QuestionMode


def answer_all(play, session, alice_answers, bob_answers):
    moves = []
    for index, (a, b) in enumerate(zip(alice_answers, bob_answers)):
        moves.append(("alice", Action.answer(index, a)))
        moves.append(("bob", Action.answer(index, b)))
    return play(session, *moves)


class TestThisOrThat:
    """Tests for This or That rounds."""

    @pytest.fixture
    def session(self, start):
        return start(GameKind.THIS_OR_THAT, {"question_count": 4})

    def test_questions_drawn_at_start(self, session):
        """The question list is fixed in the session when the round starts."""
        questions = session.state.questions
        assert len(questions) == 4
        assert len({q["prompt_id"] for q in questions}) == 4
        assert all(len(q["options"]) == 2 for q in questions)

    def test_answers_in_any_order(self, session, play):
        session = play(
            session,
            ("bob", Action.answer(3, "A")),
            ("alice", Action.answer(0, "B")),
        )

        assert session.state.answers == {3: {"bob": "A"}, 0: {"alice": "B"}}
        assert session.state.mode == QuestionMode.ANSWERING

    def test_one_answer_per_user_per_question(self, session, play, reducer):
        session = play(session, ("alice", Action.answer(0, "A")))

        changed = reducer.apply(session, Action.answer(0, "B"), "alice")
        same = reducer.apply(session, Action.answer(0, "A"), "alice")

        assert changed.error_code == ErrorCode.WRONG_PHASE
        assert same.success and not same.changed

    @pytest.mark.parametrize("index,choice", [(4, "A"), (-1, "A"), (0, "C"), (None, "A")])
    def test_invalid_answers(self, session, reducer, index, choice):
        result = reducer.apply(session, Action.answer(index, choice), "alice")

        assert result.error_code == ErrorCode.INVALID_ACTION

    def test_complete_when_all_answered_by_both(self, session, play):
        session = answer_all(play, session, "AABB", "ABBA")

        assert session.state.mode == QuestionMode.COMPLETE
        assert session.is_terminal
        assert session.current_index == 4

    def test_current_index_counts_questions_answered_by_both(self, session, play):
        session = play(
            session,
            ("alice", Action.answer(0, "A")),
            ("alice", Action.answer(1, "A")),
            ("bob", Action.answer(1, "B")),
        )

        assert session.current_index == 1

    def test_outcome_compatibility(self, session, play, reducer):
        """2 matches of 4 answered by both is 50%."""
        session = answer_all(play, session, "AABB", "ABBA")
        outcome = reducer.outcome(session)

        assert outcome.score == 50
        assert outcome.details["matches"] == 2
        assert outcome.details["answeredByBoth"] == 4
        assert outcome.details["compatibility"] == 50

    def test_outcome_without_answers(self, session, play, reducer):
        """Ending before both answered anything gives no compatibility."""
        session = play(session, ("alice", Action.answer(0, "A")), ("bob", Action.end_game()))
        outcome = reducer.outcome(session)

        assert outcome.details["compatibility"] is None
        assert outcome.score == 0

    def test_no_answers_after_end(self, session, play, reducer):
        session = play(session, ("alice", Action.end_game()))

        result = reducer.apply(session, Action.answer(0, "A"), "bob")

        assert result.error_code == ErrorCode.WRONG_PHASE


class TestQuiz:
    """Tests for the 'how well do you know them' quiz."""

    @pytest.fixture
    def session(self, start):
        return start(GameKind.QUIZ_GAME)

    def test_default_question_count(self, session):
        assert len(session.state.questions) == 5
        assert all(len(q["options"]) == 4 for q in session.state.questions)

    def test_answers_are_option_indexes(self, session, reducer):
        assert reducer.apply(session, Action.answer(0, "3"), "bob").success
        assert reducer.apply(session, Action.answer(0, "4"), "bob").error_code == ErrorCode.INVALID_ACTION
        assert reducer.apply(session, Action.answer(0, "A"), "bob").error_code == ErrorCode.INVALID_ACTION

    def test_score_over_whole_quiz(self, session, play, reducer):
        """3 correct predictions out of 5 questions is 60%."""
        session = answer_all(play, session, ["0", "1", "2", "3", "0"], ["0", "1", "2", "0", "1"])
        outcome = reducer.outcome(session)

        assert session.is_terminal
        assert outcome.score == 60
        assert outcome.details["matches"] == 3
        assert outcome.details["subject"] == "alice"

    def test_invalid_question_count(self, reducer, link):
        result = reducer.new_session(link, GameKind.QUIZ_GAME, "alice", {"question_count": 0})

        assert result.error_code == ErrorCode.INVALID_ACTION
