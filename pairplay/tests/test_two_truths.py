"""
Tests for Two Truths & a Lie.
"""

import pytest

from ..engine_core.action import Action, ErrorCode
from ..engine_core.state import GameKind
from ..games import TwoTruthsMode

STATEMENTS = ["I skied once", "I hate coffee", "I have a twin"]


@pytest.fixture
def composed(start, play):
    """Alice has written her statements; statement 2 is the lie."""
    return play(
        start(GameKind.TWO_TRUTHS_ONE_LIE),
        ("alice", Action.submit_statements(STATEMENTS, 1)),
    )


@pytest.fixture
def guessed(composed, play):
    """Bob guessed statement 3."""
    return play(composed, ("bob", Action.guess(2)))


class TestStatements:
    """Tests for the creator's submission."""

    def test_submit_moves_to_guessing(self, composed):
        assert composed.state.mode == TwoTruthsMode.AWAITING_GUESS
        assert composed.state.statements == STATEMENTS
        assert composed.state.lie_index == 1

    def test_only_creator_submits(self, start, reducer):
        """The guesser cannot write the statements."""
        session = start(GameKind.TWO_TRUTHS_ONE_LIE)
        result = reducer.apply(session, Action.submit_statements(STATEMENTS, 0), "bob")

        assert result.error_code == ErrorCode.NOT_YOUR_TURN

    def test_statements_are_locked(self, composed, reducer):
        """Different statements after submission are WRONG_PHASE."""
        result = reducer.apply(
            composed, Action.submit_statements(["a", "b", "c"], 0), "alice",
        )

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_resubmitting_same_statements_is_unchanged(self, composed, reducer):
        result = reducer.apply(composed, Action.submit_statements(STATEMENTS, 1), "alice")

        assert result.success
        assert not result.changed

    @pytest.mark.parametrize("statements,lie_index", [
        (["one", "two"], 0),
        (["one", "two", " "], 0),
        (STATEMENTS, 3),
        (STATEMENTS, -1),
    ])
    def test_invalid_submission(self, start, reducer, statements, lie_index):
        """Exactly three non-empty statements and a lie index of 0-2."""
        session = start(GameKind.TWO_TRUTHS_ONE_LIE)
        result = reducer.apply(session, Action.submit_statements(statements, lie_index), "alice")

        assert result.error_code == ErrorCode.INVALID_ACTION

    def test_statements_in_start_payload(self, start):
        """Statements can be supplied when the round starts."""
        session = start(
            GameKind.TWO_TRUTHS_ONE_LIE, {"statements": STATEMENTS, "lie_index": 1},
        )

        assert session.state.mode == TwoTruthsMode.AWAITING_GUESS
        assert session.state.creator == "alice"


class TestGuess:
    """Tests for the guesser's single guess."""

    def test_guess_recorded(self, guessed):
        assert guessed.state.mode == TwoTruthsMode.AWAITING_REVEAL
        assert guessed.state.guess == 2
        assert guessed.state.guesser == "bob"

    def test_creator_cannot_guess(self, composed, reducer):
        result = reducer.apply(composed, Action.guess(1), "alice")

        assert result.error_code == ErrorCode.NOT_YOUR_TURN

    def test_guess_before_statements(self, start, reducer):
        result = reducer.apply(start(GameKind.TWO_TRUTHS_ONE_LIE), Action.guess(0), "bob")

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_one_guess_only(self, guessed, reducer):
        """A different second guess is rejected; the same one is a no-op."""
        other = reducer.apply(guessed, Action.guess(0), "bob")
        same = reducer.apply(guessed, Action.guess(2), "bob")

        assert other.error_code == ErrorCode.WRONG_PHASE
        assert same.success and not same.changed

    def test_guess_out_of_range(self, composed, reducer):
        assert reducer.apply(composed, Action.guess(5), "bob").error_code == ErrorCode.INVALID_ACTION


class TestReveal:
    """Tests for revealing the lie."""

    def test_reveal_needs_guess(self, composed, play, both_ready, reducer):
        session = play(composed, *both_ready(composed))
        result = reducer.apply(session, Action.reveal(), "alice")

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_reveal_needs_both_ready(self, guessed, reducer, play):
        session = play(guessed, ("bob", Action.mark_ready("bob", index=guessed.current_index)))
        result = reducer.apply(session, Action.reveal(), "bob")

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_full_round(self, guessed, play, both_ready, reducer):
        """Lie 1, guess 2: revealed, and bob was fooled."""
        session = play(guessed, *both_ready(guessed), ("alice", Action.reveal()))

        assert session.state.revealed is True
        assert session.state.guess == 2
        assert session.state.lie_index == 1
        assert session.is_terminal

        outcome = reducer.outcome(session)
        assert outcome.details["guessedCorrectly"] is False
        assert outcome.details["fooledPartner"] is True
        assert outcome.score == 0
        assert outcome.details["creator"] == "alice"
        assert outcome.details["guesser"] == "bob"

    def test_ready_before_guess_is_stale(self, composed, play, reducer):
        """A ready flag sent while waiting for the guess doesn't open the reveal."""
        early = Action.mark_ready("alice", index=composed.current_index)
        session = play(composed, ("alice", early), ("bob", Action.guess(2)))

        assert session.readiness == {"alice": False, "bob": False}
        assert reducer.apply(session, early, "alice").error_code == ErrorCode.WRONG_PHASE

    def test_reveal_twice(self, guessed, play, both_ready, reducer):
        """Revealing again returns the identical state."""
        session = play(guessed, *both_ready(guessed), ("alice", Action.reveal()))
        again = reducer.apply(session, Action.reveal(), "bob")

        assert again.success and not again.changed
        assert again.new_state.to_record() == session.to_record()

    def test_correct_guess_outcome(self, composed, play, both_ready, reducer):
        session = play(composed, ("bob", Action.guess(1)))
        session = play(session, *both_ready(session), ("bob", Action.reveal()))

        outcome = reducer.outcome(session)
        assert outcome.details["guessedCorrectly"] is True
        assert outcome.details["fooledPartner"] is False
        assert outcome.score == 1
