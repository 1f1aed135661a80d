"""
Tests for the command-line entry point.
"""

import pytest

from ..cli import main


class TestDemo:
    @pytest.mark.parametrize("game", ["two_truths", "this_or_that"])
    def test_demo_finishes(self, game, capsys):
        """Each demo plays a round through to a recorded outcome."""
        main(["demo", "--game", game, "--seed", "3"])

        out = capsys.readouterr().out
        assert "Score:" in out
        assert "rejected" not in out

    def test_two_truths_demo_reveals(self, capsys):
        main(["demo", "--game", "two_truths", "--seed", "3"])

        out = capsys.readouterr().out
        assert "fooledPartner: True" in out


class TestArguments:
    def test_no_command(self):
        with pytest.raises(SystemExit):
            main([])

    def test_unknown_game(self):
        with pytest.raises(SystemExit):
            main(["demo", "--game", "chess"])
