"""
Reducer - Applies actions to a game session.

The reducer is the single point of state transition.
All session changes must go through apply().

Design principles:
- Pure function: (session, action, acting_user) -> ActionResult
- Never suspends and never performs I/O
- Rejections are returned, never raised
- Generic actions (ready flags, ending) are handled here; game moves are
  delegated to the machine registered for the session's game kind
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import random
import uuid

from .action import Action, ActionResult, ActionType, ErrorCode
from .state import GameKind, GameSession, PartnerLink
from ..games import MachineContext, OutcomeDraft, machine_for
from ..games.content import ContentPool, StaticContentPool


@dataclass
class Reducer:
    """
    Reducer applies actions to sessions.

    Stateless - all state is in GameSession.
    The content pool and random source are the only collaborators.
    """
    content: ContentPool = field(default_factory=StaticContentPool)
    rng: random.Random = field(default_factory=random.Random)

    @property
    def context(self) -> MachineContext:
        return MachineContext(content=self.content, rng=self.rng)

    def new_session(
        self,
        partner_link: PartnerLink,
        game_kind: GameKind,
        started_by: str,
        payload: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> ActionResult:
        """
        Build the first record of a round, in the kind's initial mode.

        The record is not persisted; version and timestamps are assigned by
        the store.
        """
        if started_by not in partner_link.members:
            return ActionResult.failure(
                f"{started_by} is not part of partner link {partner_link.link_id}",
                error_code=ErrorCode.NOT_A_PARTICIPANT,
            )

        machine = machine_for(game_kind)
        try:
            state = machine.initial_state(
                started_by, list(partner_link.members), payload or {}, self.context,
            )
        except ValueError as e:
            return ActionResult.failure(str(e), error_code=ErrorCode.INVALID_ACTION)

        session = GameSession(
            session_id=session_id or str(uuid.uuid4()),
            partner_link_id=partner_link.link_id,
            game_kind=game_kind,
            started_by=started_by,
            state=state,
            readiness={player: False for player in partner_link.members},
            current_index=0,
        )
        return ActionResult.success_with_state(
            session,
            changes=[f"{started_by} started {game_kind.label}"],
        )

    def apply(
        self,
        session: GameSession | None,
        action: Action,
        acting_user: str,
    ) -> ActionResult:
        """
        Apply an action to the session on behalf of acting_user.

        Returns ActionResult with the new session or a rejection.
        """
        if session is None:
            return ActionResult.failure("No active session", error_code=ErrorCode.SESSION_NOT_FOUND)

        if not session.is_participant(acting_user):
            return ActionResult.failure(
                f"{acting_user} is not playing this session",
                error_code=ErrorCode.NOT_A_PARTICIPANT,
            )

        handler = self._get_handler(action.action_type)
        if handler:
            return handler(session, action, acting_user)

        return machine_for(session.game_kind).transition(
            session, action, acting_user, self.context,
        )

    def outcome(self, session: GameSession) -> OutcomeDraft:
        """Score of a terminal session."""
        return machine_for(session.game_kind).outcome(session)

    def _get_handler(self, action_type: ActionType):
        """Get the generic handler for an action type, if any."""
        handlers = {
            ActionType.MARK_READY: self._handle_mark_ready,
            ActionType.END_GAME: self._handle_end_game,
        }
        return handlers.get(action_type)

    def _handle_mark_ready(
        self, session: GameSession, action: Action, acting_user: str,
    ) -> ActionResult:
        player = action.payload.player_id or acting_user
        if player != acting_user:
            return ActionResult.failure(
                "You can only mark yourself ready",
                error_code=ErrorCode.NOT_YOUR_TURN,
            )

        if session.is_terminal:
            return ActionResult.failure("Round is over", error_code=ErrorCode.WRONG_PHASE)

        # A flag sent for an older prompt must not count for the current one
        index = action.payload.index
        if index is not None and index != session.current_index:
            return ActionResult.failure(
                f"Ready for prompt {index}, but the current prompt is {session.current_index}",
                error_code=ErrorCode.WRONG_PHASE,
            )

        if session.readiness.get(player):
            return ActionResult.unchanged(session, f"{player} is already ready")

        return ActionResult.success_with_state(
            session.with_ready(player),
            changes=[f"{player} is ready"],
        )

    def _handle_end_game(
        self, session: GameSession, action: Action, acting_user: str,
    ) -> ActionResult:
        if session.is_terminal:
            return ActionResult.unchanged(session, "Round already over")

        machine = machine_for(session.game_kind)
        return ActionResult.success_with_state(
            session.with_state(machine.ended(session.state)),
            changes=[f"{acting_user} ended the game"],
        )


def apply_action(
    session: GameSession | None,
    action: Action,
    acting_user: str,
    content: ContentPool | None = None,
) -> ActionResult:
    """
    Convenience function to apply an action with a fresh reducer.

    Usage:
        result = apply_action(session, Action.reveal(), "alice")
        if result.success:
            session = result.new_state
    """
    reducer = Reducer(content=content) if content else Reducer()
    return reducer.apply(session, action, acting_user)
