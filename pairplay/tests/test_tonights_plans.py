"""
Tests for Tonight's Plans.
"""

import pytest

from ..engine_core.action import Action, ErrorCode
from ..engine_core.state import GameKind
from ..games import TonightsPlansMode


@pytest.fixture
def session(start):
    return start(GameKind.TONIGHTS_PLANS, {"category": "romantic"})


@pytest.fixture
def written(session, play):
    return play(
        session,
        ("alice", Action.submit_response("Cook dinner together")),
        ("bob", Action.submit_response("Watch the sunset")),
    )


class TestPrompt:
    def test_start_draws_prompt_in_category(self, session):
        assert session.state.mode == TonightsPlansMode.WRITING
        assert session.state.category == "romantic"
        assert session.state.prompt_id.startswith("plans_romantic_")
        assert session.state.chooser == "alice"

    def test_chooser_changes_category(self, session, play):
        session = play(session, ("alice", Action.select_mode("playful")))

        assert session.state.category == "playful"

    def test_non_chooser_cannot_change_category(self, session, reducer):
        result = reducer.apply(session, Action.select_mode("playful"), "bob")

        assert result.error_code == ErrorCode.NOT_YOUR_TURN

    def test_category_locked_once_writing_started(self, session, play, reducer):
        session = play(session, ("bob", Action.submit_response("Dinner")))
        result = reducer.apply(session, Action.select_mode("playful"), "alice")

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_spicy_category_needs_spicy_round(self, session, reducer):
        """Non-spicy rounds never draw spicy prompts."""
        result = reducer.apply(session, Action.select_mode("spicy"), "alice")

        assert result.error_code == ErrorCode.INVALID_ACTION

    def test_unknown_start_category(self, reducer, link):
        result = reducer.new_session(link, GameKind.TONIGHTS_PLANS, "alice", {"category": "nope"})

        assert result.error_code == ErrorCode.INVALID_ACTION


class TestResponses:
    def test_one_response_each(self, written, reducer):
        assert written.state.responses == {
            "alice": "Cook dinner together",
            "bob": "Watch the sunset",
        }
        again = reducer.apply(written, Action.submit_response("Something else"), "bob")
        same = reducer.apply(written, Action.submit_response("Watch the sunset"), "bob")

        assert again.error_code == ErrorCode.WRONG_PHASE
        assert same.success and not same.changed

    def test_empty_response(self, session, reducer):
        assert reducer.apply(session, Action.submit_response("  "), "bob").error_code == ErrorCode.INVALID_ACTION


class TestRevealAndAdvance:
    def test_reveal_needs_both_plans(self, session, play, both_ready, reducer):
        session = play(session, ("alice", Action.submit_response("Dinner")), *both_ready(session))
        result = reducer.apply(session, Action.reveal(), "alice")

        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_reveal_needs_both_ready(self, written, reducer):
        assert reducer.apply(written, Action.reveal(), "alice").error_code == ErrorCode.WRONG_PHASE

    def test_reveal_once(self, written, play, both_ready, reducer):
        session = play(written, *both_ready(written), ("bob", Action.reveal()))
        again = reducer.apply(session, Action.reveal(), "alice")

        assert session.state.mode == TonightsPlansMode.REVEALED
        assert session.state.rounds_revealed == 1
        assert again.success and not again.changed

    def test_reveal_moves_to_next_prompt_index(self, written, play, both_ready, reducer):
        moves = both_ready(written)
        session = play(written, *moves, ("bob", Action.reveal()))
        user, action = moves[1]

        assert session.current_index == written.current_index + 1
        assert reducer.apply(session, action, user).error_code == ErrorCode.WRONG_PHASE

    def test_advance_passes_chooser(self, written, play, both_ready):
        session = play(written, *both_ready(written), ("bob", Action.reveal()))
        session = play(session, *both_ready(session), ("alice", Action.advance_card()))

        assert session.state.mode == TonightsPlansMode.WRITING
        assert session.state.responses == {}
        assert session.state.chooser == "bob"
        assert session.current_index == written.current_index + 2
        assert not session.is_terminal

    def test_advance_requires_both_ready(self, written, play, both_ready, reducer):
        session = play(written, *both_ready(written), ("bob", Action.reveal()))
        result = reducer.apply(session, Action.advance_card(), "alice")

        assert result.error_code == ErrorCode.WRONG_PHASE
