"""
Scoring - Derived scores computed by consumers, never persisted mid-game.

Compatibility is always recomputed from the answer map so it cannot drift
from the answers it summarizes.
"""

from __future__ import annotations
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class CompatibilityScore:
    """Matches over questions answered by both partners."""
    matches: int
    answered_by_both: int
    total_questions: int

    @property
    def denominator(self) -> int:
        return min(self.answered_by_both, self.total_questions)

    @property
    def has_data(self) -> bool:
        return self.denominator > 0

    @property
    def percent(self) -> int | None:
        """Rounded percentage, or None when nothing was answered by both."""
        if not self.has_data:
            return None
        return round_half_up(self.matches / self.denominator * 100)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def compatibility_score(
    answers: dict[int, dict[str, str]],
    players: list[str],
    total_questions: int,
) -> CompatibilityScore:
    """
    Compute compatibility from a ``{question_index: {user_id: answer}}`` map.

    Only questions answered by both players count.
    """
    if len(players) != 2:
        return CompatibilityScore(matches=0, answered_by_both=0, total_questions=total_questions)

    first, second = players
    matches = 0
    answered_by_both = 0
    for per_user in answers.values():
        if first in per_user and second in per_user:
            answered_by_both += 1
            if per_user[first] == per_user[second]:
                matches += 1

    return CompatibilityScore(
        matches=matches,
        answered_by_both=answered_by_both,
        total_questions=total_questions,
    )


def compatibility_label(percent: int | None) -> str:
    """Short verdict shown next to a compatibility score."""
    if percent is None:
        return "Waiting for your partner's answers"
    if percent >= 80:
        return "Amazing! You two think alike!"
    if percent >= 60:
        return "Great compatibility!"
    if percent >= 40:
        return "Interesting differences!"
    return "Opposites attract!"
