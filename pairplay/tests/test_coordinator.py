"""
Tests for the session coordinator.

Tests:
- Lost updates under concurrent writes (blind vs versioned store)
- Conflict replay and the second-conflict failure
- Transport failures and read retries
- Starting, ending and consuming rounds
- Push updates from the change feed
- Partner notifications
"""

import asyncio
import time

import pytest

from ..config import SyncSettings
from ..engine_core.action import Action, ErrorCode
from ..engine_core.state import GameKind
from ..games import TruthOrDareMode, TwoTruthsMode
from ..session import (
    ChangeEvent,
    ConflictError,
    DuplicateSessionError,
    EventType,
    InMemorySessionStore,
    PartnerEvent,
    SessionCoordinator,
    TransportError,
)

STATEMENTS = ["I skied once", "I hate coffee", "I have a twin"]


class FlakyStore(InMemorySessionStore):
    """In-memory store that fails a set number of reads, and optionally every write."""

    def __init__(self, *args, failing_reads=0, failing_writes=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing_reads = failing_reads
        self.failing_writes = failing_writes
        self.read_attempts = 0

    def _maybe_fail_read(self):
        self.read_attempts += 1
        if self.failing_reads > 0:
            self.failing_reads -= 1
            raise TransportError("connection reset")

    async def get(self, session_id):
        self._maybe_fail_read()
        return await super().get(session_id)

    async def find_live(self, partner_link_id, game_kind=None):
        self._maybe_fail_read()
        return await super().find_live(partner_link_id, game_kind)

    async def replace(self, session, expected_version):
        if self.failing_writes:
            raise TransportError("connection reset")
        return await super().replace(session, expected_version)


class AlwaysConflictingStore(InMemorySessionStore):
    """Every write loses the race."""

    async def replace(self, session, expected_version):
        raise ConflictError(session.session_id, expected_version, expected_version + 1)


class TakenIdStore(InMemorySessionStore):
    """Every new record collides with one written elsewhere."""

    async def create(self, session):
        raise DuplicateSessionError(session.session_id)


async def eventually(predicate, timeout=1.0):
    """Wait until ``predicate()`` holds, yielding to the loop between checks."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def ready(coordinator):
    return Action.mark_ready(coordinator.user_id, index=coordinator.view.current_index)


async def play_two_truths_to_reveal(alice, bob):
    """Alice writes (lie 1), bob guesses 2, both get ready and alice reveals."""
    await alice.start()
    await alice.apply(Action.submit_statements(STATEMENTS, 1))
    await bob.open()
    await bob.apply(Action.guess(2))
    await bob.apply(ready(bob))
    await alice.refresh()
    await alice.apply(ready(alice))
    return await alice.apply(Action.reveal())


@pytest.fixture
def pair(store, make_coordinator):
    """Alice and Bob coordinating Truth or Dare on the shared store."""
    return (
        make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE),
        make_coordinator(store, "bob", GameKind.TRUTH_OR_DARE),
    )


class TestConcurrentWrites:
    """Tests for the lost-update race on readiness."""

    async def _race_ready(self, store, make_coordinator):
        alice = make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE)
        bob = make_coordinator(store, "bob", GameKind.TRUTH_OR_DARE)
        await alice.start()
        await bob.open()

        results = await asyncio.gather(alice.apply(ready(alice)), bob.apply(ready(bob)))
        return results, await store.get(alice.view.session_id)

    @pytest.mark.asyncio
    async def test_blind_writes_lose_an_update(self, make_coordinator):
        """Without version checks one partner's readiness is overwritten."""
        store = InMemorySessionStore(check_versions=False, latency=0.01)

        results, stored = await self._race_ready(store, make_coordinator)

        assert all(r.success for r in results)
        assert sum(stored.readiness.values()) == 1

    @pytest.mark.asyncio
    async def test_versioned_writes_keep_both(self, make_coordinator):
        """The losing write conflicts, is replayed on the fresh record, and both flags survive."""
        store = InMemorySessionStore(latency=0.01)

        results, stored = await self._race_ready(store, make_coordinator)

        assert all(r.success for r in results)
        assert stored.readiness == {"alice": True, "bob": True}
        assert stored.version == 3

    @pytest.mark.asyncio
    async def test_second_conflict_reported(self, make_coordinator):
        store = AlwaysConflictingStore()
        alice = make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE)
        await alice.start()

        result = await alice.apply(ready(alice))

        assert result.error_code == ErrorCode.CONFLICT
        assert result.error == "Something changed, please try again"
        assert alice.view.readiness == {"alice": False, "bob": False}

    @pytest.mark.asyncio
    async def test_stale_read_never_moves_view_back(self, store, pair, monkeypatch):
        alice, _ = pair
        await alice.start()
        old = alice.view
        await alice.apply(ready(alice))

        async def stale_get(session_id):
            return old

        monkeypatch.setattr(store, "get", stale_get)
        await alice.refresh()

        assert alice.view.version == 2
        assert alice.view.readiness["alice"]


class TestTransport:
    """Tests for unreachable stores."""

    @pytest.mark.asyncio
    async def test_write_failure_rolls_back(self, make_coordinator):
        store = FlakyStore()
        alice = make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE)
        await alice.start()
        store.failing_writes = True

        result = await alice.apply(ready(alice))

        assert result.error_code == ErrorCode.TRANSPORT_ERROR
        assert not alice.view.readiness["alice"]
        assert not (await store.get(alice.view.session_id)).readiness["alice"]

    @pytest.mark.asyncio
    async def test_reads_retried(self, make_coordinator):
        store = FlakyStore()
        alice = make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE)
        await alice.start()
        store.failing_reads = 2
        store.read_attempts = 0

        view = await alice.refresh()

        assert view is not None
        assert store.read_attempts == 3

    @pytest.mark.asyncio
    async def test_reads_give_up(self, make_coordinator):
        """After read_retries extra attempts the failure surfaces."""
        store = FlakyStore(failing_reads=10)
        bob = make_coordinator(store, "bob", GameKind.TRUTH_OR_DARE)

        with pytest.raises(TransportError):
            await bob.refresh()
        assert store.read_attempts == 4

    @pytest.mark.asyncio
    async def test_start_failure_reported(self, make_coordinator):
        store = FlakyStore(failing_reads=10)
        alice = make_coordinator(store, "alice", GameKind.QUIZ_GAME)

        result = await alice.start()

        assert result.error_code == ErrorCode.TRANSPORT_ERROR
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_taken_id_is_a_conflict(self, make_coordinator):
        """A duplicate id comes back as a failed result, not an exception."""
        store = TakenIdStore()
        alice = make_coordinator(store, "alice", GameKind.QUIZ_GAME)

        result = await alice.start()

        assert result.error_code == ErrorCode.CONFLICT
        assert alice.view is None


class TestStart:
    """Tests for starting rounds."""

    @pytest.mark.asyncio
    async def test_restart_replaces_live_round(self, store, pair):
        alice, _ = pair
        await alice.start()
        first = alice.view.session_id
        await alice.start()

        live = await store.find_live("link-1", GameKind.TRUTH_OR_DARE)
        assert [s.session_id for s in live] == [alice.view.session_id]
        assert alice.view.session_id != first

    @pytest.mark.asyncio
    async def test_concurrent_starts_leave_one_round(self, make_coordinator):
        store = InMemorySessionStore(latency=0.01)
        alice = make_coordinator(store, "alice", GameKind.THIS_OR_THAT)
        bob = make_coordinator(store, "bob", GameKind.THIS_OR_THAT)

        results = await asyncio.gather(alice.start(), bob.start())

        live = await store.find_live("link-1", GameKind.THIS_OR_THAT)
        assert all(r.success for r in results)
        assert len(live) == 1
        assert live[0].session_id in {alice.view.session_id, bob.view.session_id}

    @pytest.mark.asyncio
    async def test_other_kinds_untouched(self, store, make_coordinator):
        quiz = make_coordinator(store, "alice", GameKind.QUIZ_GAME)
        plans = make_coordinator(store, "alice", GameKind.TONIGHTS_PLANS)
        await quiz.start()
        await plans.start()

        assert len(await store.find_live("link-1")) == 2

    @pytest.mark.asyncio
    async def test_invalid_payload_writes_nothing(self, store, pair):
        alice, _ = pair
        quiz = SessionCoordinator(store, alice.partner_link, GameKind.QUIZ_GAME, "alice")

        result = await quiz.start({"question_count": 0})

        assert result.error_code == ErrorCode.INVALID_ACTION
        assert store.write_count == 0

    def test_keeps_empty_collaborators(self, store, link, history, notifier):
        """An empty history log is still the one the caller handed in."""
        coordinator = SessionCoordinator(
            store, link, GameKind.QUIZ_GAME, "alice", history=history, notifier=notifier,
        )

        assert len(history) == 0
        assert coordinator.history is history
        assert coordinator.notifier is notifier

    @pytest.mark.asyncio
    async def test_outcome_lands_in_shared_history(self, store, link, history, settings):
        kind = GameKind.TWO_TRUTHS_ONE_LIE
        alice = SessionCoordinator(store, link, kind, "alice", history=history, settings=settings)
        bob = SessionCoordinator(store, link, kind, "bob", history=history, settings=settings)

        await play_two_truths_to_reveal(alice, bob)

        assert len(history) == 1
        assert (await history.list_outcomes("link-1"))[0].game_kind == GameKind.TWO_TRUTHS_ONE_LIE

    def test_non_member_rejected(self, store, link):
        with pytest.raises(ValueError):
            SessionCoordinator(store, link, GameKind.QUIZ_GAME, "mallory")


class TestRules:
    """Tests for rule enforcement through the coordinator."""

    @pytest.mark.asyncio
    async def test_turn_rule(self, store, pair):
        alice, bob = pair
        await alice.start()
        await bob.open()
        writes = store.write_count

        result = await bob.apply(Action.select_mode("dare"))

        assert result.error_code == ErrorCode.NOT_YOUR_TURN
        assert store.write_count == writes

    @pytest.mark.asyncio
    async def test_readiness_gate(self, pair):
        alice, bob = pair
        await alice.start()
        await bob.open()
        await alice.apply(Action.select_mode("truth"))
        await alice.apply(ready(alice))
        await bob.refresh()

        early = await bob.apply(Action.reveal())
        await bob.apply(ready(bob))
        revealed = await bob.apply(Action.reveal())

        assert early.error_code == ErrorCode.WRONG_PHASE
        assert revealed.success
        assert bob.view.state.mode == TruthOrDareMode.REVEALED

    @pytest.mark.asyncio
    async def test_noop_writes_nothing(self, store, pair):
        alice, _ = pair
        await alice.start()
        await alice.apply(ready(alice))
        writes = store.write_count

        result = await alice.apply(ready(alice))

        assert result.success and not result.changed
        assert store.write_count == writes

    @pytest.mark.asyncio
    async def test_without_round(self, pair):
        alice, _ = pair

        result = await alice.apply(Action.reveal())

        assert result.error_code == ErrorCode.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_partner_ended_round(self, pair):
        alice, bob = pair
        await alice.start()
        await bob.open()
        await bob.end()

        result = await alice.apply(ready(alice))

        assert result.error_code == ErrorCode.SESSION_NOT_FOUND
        assert alice.view is None


class TestTwoTruthsRound:
    """A full Two Truths & a Lie round between two coordinators."""

    @pytest.fixture
    def players(self, store, make_coordinator):
        return (
            make_coordinator(store, "alice", GameKind.TWO_TRUTHS_ONE_LIE),
            make_coordinator(store, "bob", GameKind.TWO_TRUTHS_ONE_LIE),
        )

    @pytest.mark.asyncio
    async def test_reveal_records_outcome_once(self, players, history):
        alice, bob = players

        result = await play_two_truths_to_reveal(alice, bob)
        await bob.refresh()

        assert result.success
        assert alice.view.state.mode == TwoTruthsMode.REVEALED
        assert result.outcome.details["fooledPartner"] is True
        assert result.outcome.details["guessedCorrectly"] is False
        assert bob.view.state.guess == 2
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_second_reveal_is_idempotent(self, store, players):
        alice, bob = players
        await play_two_truths_to_reveal(alice, bob)
        await bob.refresh()
        writes = store.write_count

        again = await bob.apply(Action.reveal())

        assert again.success and not again.changed
        assert store.write_count == writes

    @pytest.mark.asyncio
    async def test_consume_terminal(self, store, players, history):
        alice, bob = players
        await play_two_truths_to_reveal(alice, bob)
        session_id = alice.view.session_id

        result = await alice.consume_terminal()
        await bob.refresh()

        assert result.success
        assert result.outcome.session_id == session_id
        assert await store.get(session_id) is None
        assert alice.view is None
        assert bob.view is None
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_consume_live_round(self, players):
        alice, _ = players
        await alice.start()

        result = await alice.consume_terminal()

        assert result.error_code == ErrorCode.WRONG_PHASE
        assert alice.view is not None

    @pytest.mark.asyncio
    async def test_record_outcome_repeatable(self, players, history):
        alice, bob = players
        await alice.start()
        assert await alice.record_outcome() is None

        await play_two_truths_to_reveal(alice, bob)
        first = await alice.record_outcome()
        second = await alice.record_outcome()

        assert first.outcome_id == second.outcome_id
        assert len(history) == 1


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_deletes_without_outcome(self, store, pair, history):
        alice, _ = pair
        await alice.start()
        session_id = alice.view.session_id

        result = await alice.end()

        assert result.success
        assert await store.get(session_id) is None
        assert len(history) == 0
        assert (await alice.end()).error_code == ErrorCode.SESSION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_end_game_records_nothing(self, store, make_coordinator, history):
        """A round quit through EndGame leaves the history and its average alone."""
        alice = make_coordinator(store, "alice", GameKind.THIS_OR_THAT)
        bob = make_coordinator(store, "bob", GameKind.THIS_OR_THAT)
        await alice.start({"question_count": 3})
        await bob.open()

        ended = await alice.apply(Action.end_game())
        await bob.refresh()
        consumed = await alice.consume_terminal()

        assert ended.success
        assert alice.view is None
        assert ended.outcome is None
        assert consumed.success and consumed.outcome is None
        assert consumed.state_changes == ["Round closed"]
        assert await bob.record_outcome() is None
        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_completed_round_still_recorded(self, store, make_coordinator, history):
        alice = make_coordinator(store, "alice", GameKind.THIS_OR_THAT)
        bob = make_coordinator(store, "bob", GameKind.THIS_OR_THAT)
        await alice.start({"question_count": 1})
        await bob.open()

        await alice.apply(Action.answer(0, "A"))
        finished = await bob.apply(Action.answer(0, "A"))

        assert bob.view.is_completed
        assert finished.outcome is not None
        assert len(history) == 1


class TestRemoteChanges:
    """Tests for reacting to the change feed."""

    @pytest.mark.asyncio
    async def test_partner_sees_start_and_moves(self, store, feed, make_coordinator):
        alice = make_coordinator(store, "alice", GameKind.TRUTH_OR_DARE, feed=feed)
        bob = make_coordinator(store, "bob", GameKind.TRUTH_OR_DARE, feed=feed)

        async with alice, bob:
            assert bob.is_open
            await alice.start()
            await eventually(lambda: bob.view is not None)

            await alice.apply(Action.select_mode("dare"))
            await eventually(lambda: bob.view.state.mode == TruthOrDareMode.AWAITING_BOTH_READY)

            await alice.end()
            await eventually(lambda: bob.view is None)

        assert not bob.is_open
        assert feed.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_burst_coalesced(self, store, pair):
        alice, bob = pair
        await alice.start()
        event = ChangeEvent(EventType.UPDATE, alice.view.session_id, "link-1")

        await asyncio.gather(*(bob.on_remote_change(event) for _ in range(10)))

        assert bob.refetch_count == 2
        assert bob.view.session_id == alice.view.session_id

    @pytest.mark.asyncio
    async def test_refetches_rate_limited(self, store, make_coordinator):
        settings = SyncSettings(min_refetch_interval=0.05, read_backoff=0.0)
        bob = make_coordinator(store, "bob", GameKind.QUIZ_GAME, settings=settings)
        event = ChangeEvent(EventType.INSERT, "s1", "link-1")

        started = time.monotonic()
        await bob.on_remote_change(event)
        await bob.on_remote_change(event)

        assert bob.refetch_count == 2
        assert time.monotonic() - started >= 0.05

    @pytest.mark.asyncio
    async def test_other_partnership_ignored(self, pair):
        _, bob = pair

        await bob.on_remote_change(ChangeEvent(EventType.INSERT, "s1", "link-2"))

        assert bob.refetch_count == 0

    @pytest.mark.asyncio
    async def test_unrelated_record_ignored(self, pair):
        alice, bob = pair
        await alice.start()
        await bob.open()

        await bob.on_remote_change(ChangeEvent(EventType.UPDATE, "other-session", "link-1"))

        assert bob.refetch_count == 0


class TestNotifications:
    """Tests for partner alerts."""

    @pytest.mark.asyncio
    async def test_start_alerts_partner(self, store, make_coordinator, notifier):
        alice = make_coordinator(store, "alice", GameKind.QUIZ_GAME, display_name="Alice")
        await alice.start()

        alert = notifier.sent[-1]
        assert alert.user_id == "bob"
        assert alert.event == PartnerEvent.GAME_STARTED
        assert alert.context["sender_name"] == "Alice"
        assert alert.context["game_label"] == GameKind.QUIZ_GAME.label
        assert alert.context["session_id"] == alice.view.session_id

    @pytest.mark.asyncio
    async def test_finishing_alerts_partner(self, store, make_coordinator, notifier):
        alice = make_coordinator(store, "alice", GameKind.TWO_TRUTHS_ONE_LIE)
        bob = make_coordinator(store, "bob", GameKind.TWO_TRUTHS_ONE_LIE)
        await play_two_truths_to_reveal(alice, bob)

        alert = notifier.sent[-1]
        assert alert.user_id == "bob"
        assert alert.event == PartnerEvent.ASSESSMENT_COMPLETE
        assert alert.context["score"] == 0

    @pytest.mark.asyncio
    async def test_quitting_sends_no_assessment(self, pair, notifier):
        alice, _ = pair
        await alice.start()
        await alice.apply(Action.end_game())

        assert [n.event for n in notifier.sent] == [PartnerEvent.GAME_STARTED]

    @pytest.mark.asyncio
    async def test_remind_partner(self, pair, notifier):
        alice, _ = pair
        assert not alice.remind_partner()

        await alice.start()
        assert alice.remind_partner()
        assert [n.event for n in notifier.sent] == [PartnerEvent.GAME_STARTED] * 2
