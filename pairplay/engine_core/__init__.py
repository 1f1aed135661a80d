"""
Engine Core - Pure session state and action handling.

The engine is the part both clients run locally:
1. Holds the shared GameSession record
2. Describes partner actions and their results
3. Derives scores from answers

The Reducer lives in ``pairplay.engine_core.reducer``; it is not imported
here because it depends on the per-kind machines in ``pairplay.games``.
"""

from .state import GameKind, GameSession, GameState, PartnerLink
from .action import Action, ActionType, ActionPayload, ActionResult, ErrorCode, RULE_REJECTIONS
from .scoring import CompatibilityScore, compatibility_label, compatibility_score, round_half_up

__all__ = [
    "GameKind",
    "GameSession",
    "GameState",
    "PartnerLink",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "ErrorCode",
    "RULE_REJECTIONS",
    "CompatibilityScore",
    "compatibility_label",
    "compatibility_score",
    "round_half_up",
]
