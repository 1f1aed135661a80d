"""
Pytest fixtures for PairPlay tests.
"""

import random

import pytest

from ..config import SyncSettings
from ..engine_core.action import Action
from ..engine_core.reducer import Reducer
from ..engine_core.state import GameKind, GameSession, PartnerLink
from ..session import (
    ChangeFeed,
    InMemoryHistoryRecorder,
    InMemorySessionStore,
    LoggingNotificationBridge,
    SessionCoordinator,
)


@pytest.fixture
def link() -> PartnerLink:
    """Alice and Bob's partnership."""
    return PartnerLink(link_id="link-1", user_a="alice", user_b="bob")


@pytest.fixture
def reducer() -> Reducer:
    """Reducer with a seeded random source."""
    return Reducer(rng=random.Random(7))


@pytest.fixture
def start(reducer: Reducer, link: PartnerLink):
    """Factory for a fresh, unpersisted session started by alice."""
    def _start(kind: GameKind, payload=None, started_by: str = "alice") -> GameSession:
        result = reducer.new_session(link, kind, started_by, payload)
        assert result.success, result.error
        return result.new_state._copy_with(version=1)
    return _start


@pytest.fixture
def play(reducer: Reducer):
    """Apply a sequence of (user, action) pairs, failing on any rejection."""
    def _play(session: GameSession, *moves: tuple[str, Action]) -> GameSession:
        for user, action in moves:
            result = reducer.apply(session, action, user)
            assert result.success, f"{user} {action.action_type.value}: {result.error}"
            session = result.new_state
        return session
    return _play


@pytest.fixture
def both_ready():
    """The two MarkReady moves for the session's current prompt."""
    def _both_ready(session: GameSession) -> list[tuple[str, Action]]:
        return [
            ("alice", Action.mark_ready("alice", index=session.current_index)),
            ("bob", Action.mark_ready("bob", index=session.current_index)),
        ]
    return _both_ready


@pytest.fixture
def settings() -> SyncSettings:
    """Fast settings so tests don't wait on backoff or rate limits."""
    return SyncSettings(min_refetch_interval=0.0, read_retries=3, read_backoff=0.0)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def store(feed: ChangeFeed) -> InMemorySessionStore:
    return InMemorySessionStore(feed=feed)


@pytest.fixture
def history() -> InMemoryHistoryRecorder:
    return InMemoryHistoryRecorder()


@pytest.fixture
def notifier() -> LoggingNotificationBridge:
    return LoggingNotificationBridge()


@pytest.fixture
def make_coordinator(link, history, notifier, settings):
    """Factory for a coordinator over a given store (feed optional)."""
    def _make(store, user_id: str, kind: GameKind, feed=None, **kwargs) -> SessionCoordinator:
        return SessionCoordinator(
            store,
            link,
            kind,
            user_id,
            feed=feed,
            history=kwargs.pop("history", history),
            notifier=kwargs.pop("notifier", notifier),
            reducer=kwargs.pop("reducer", Reducer(rng=random.Random(11))),
            settings=kwargs.pop("settings", settings),
            **kwargs,
        )
    return _make
