"""
Session Coordinator - One client's owner of a partnership's game round.

LIFECYCLE:
1. open(): subscribe to the change feed, adopt the live round (if any)
2. start(): replace any live round of this kind with a fresh one
3. apply(): validate locally, update the view optimistically, then
   compare-and-swap the whole record against the version it was based on
4. on_remote_change(): refetch the record and replace the view wholesale
5. consume_terminal(): record a completed round's outcome durably, then delete the record
   (or end() to quit without an outcome)
6. close(): stop listening

CONSISTENCY RULES:
- The view is only ever replaced by a whole record read in one call
- A stale write is never silently applied: on conflict the action is
  replayed once against a fresh record, a second conflict is reported
- Writes are never retried on transport failure; the view rolls back to
  the last persisted record
- Reads are retried with exponential backoff
- Outcomes are recorded at most once per session, and never for a round
  closed early by EndGame
"""

from __future__ import annotations
from typing import Any, Awaitable, Callable
import asyncio
import contextlib
import logging
import time

from ..config import SyncSettings
from ..engine_core.action import Action, ActionResult, ErrorCode
from ..engine_core.reducer import Reducer
from ..engine_core.state import GameKind, GameSession, PartnerLink
from .errors import ConflictError, DuplicateSessionError, SessionNotFoundError, SyncError, TransportError
from .feed import ChangeEvent, ChangeFeed, EventType, Subscription
from .history import GameOutcome, HistoryRecorder, InMemoryHistoryRecorder
from .notifications import LoggingNotificationBridge, NotificationBridge, PartnerEvent
from .store import SessionStore

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "Something changed, please try again"


class SessionCoordinator:
    """
    Per-client coordinator for one (partnership, game kind).

    Args:
        store: SessionStore holding the shared record
        partner_link: The pairing this client plays in
        game_kind: Which mini-game this coordinator drives
        user_id: The local user (one of the pairing's members)
        feed: ChangeFeed to listen on (None disables push updates)
        history: Outcome log (in-memory if omitted)
        notifier: Partner alerts (logging only if omitted)
        reducer: State machine (default content pool if omitted)
        settings: Retry and rate-limit tuning
        display_name: Name shown to the partner in alerts
    """

    def __init__(
        self,
        store: SessionStore,
        partner_link: PartnerLink,
        game_kind: GameKind,
        user_id: str,
        feed: ChangeFeed | None = None,
        history: HistoryRecorder | None = None,
        notifier: NotificationBridge | None = None,
        reducer: Reducer | None = None,
        settings: SyncSettings | None = None,
        display_name: str | None = None,
    ):
        if user_id not in partner_link.members:
            raise ValueError(f"{user_id} is not part of partner link {partner_link.link_id}")

        self.store = store
        self.partner_link = partner_link
        self.game_kind = game_kind
        self.user_id = user_id
        self.feed = feed
        self.history = history if history is not None else InMemoryHistoryRecorder()
        self.notifier = notifier if notifier is not None else LoggingNotificationBridge()
        self.reducer = reducer if reducer is not None else Reducer()
        self.settings = settings if settings is not None else SyncSettings()
        self.display_name = display_name or user_id

        self.view: GameSession | None = None
        self._persisted: GameSession | None = None

        # Serializes every change to the view made by this client
        self._lock = asyncio.Lock()

        # Coalesced, rate-limited refetching
        self._refetch_lock = asyncio.Lock()
        self._refetch_dirty = False
        self._last_refetch: float | None = None
        self.refetch_count = 0

        self._subscription: Subscription | None = None
        self._listener: asyncio.Task | None = None
        self._recorded: dict[str, GameOutcome] = {}

    @property
    def partner_id(self) -> str:
        return self.partner_link.partner_of(self.user_id)

    @property
    def is_open(self) -> bool:
        return self._listener is not None

    # -- lifecycle ---------------------------------------------------------

    async def open(self) -> GameSession | None:
        """Start listening for partner changes and adopt the live round."""
        if self.feed is not None and self._subscription is None:
            # Subscribe before reading so no change slips between the two
            self._subscription = self.feed.subscribe(self.partner_link.link_id)
            self._listener = asyncio.create_task(self._listen(self._subscription))

        async with self._lock:
            await self._refresh()
        logger.info(
            "%s opened %s (%s)",
            self.user_id, self.game_kind.value,
            self.view.session_id if self.view else "no live round",
        )
        return self.view

    async def close(self):
        """Stop listening. The shared record is left untouched."""
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._listener is not None:
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None

    async def __aenter__(self) -> SessionCoordinator:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _listen(self, subscription: Subscription):
        async for event in subscription:
            await self.on_remote_change(event)

    # -- operations --------------------------------------------------------

    async def start(self, initial_payload: dict[str, Any] | None = None) -> ActionResult:
        """
        Replace any live round of this kind with a fresh one.

        Concurrent starts from both partners converge on the earliest
        surviving record.
        """
        async with self._lock:
            result = self.reducer.new_session(
                self.partner_link, self.game_kind, self.user_id, initial_payload,
            )
            if not result.success:
                return result

            fresh: GameSession = result.new_state
            created = False
            try:
                existing = await self._read(
                    self.store.find_live, self.partner_link.link_id, self.game_kind,
                )
                for session in existing:
                    await self.store.delete(session.session_id)

                created = True
                await self.store.create(fresh)

                survivors = await self._read(
                    self.store.find_live, self.partner_link.link_id, self.game_kind,
                )
                for extra in survivors[1:]:
                    await self.store.delete(extra.session_id)
            except DuplicateSessionError as e:
                # The id belongs to a record someone else wrote; leave it alone
                logger.warning("Could not start %s: %s", self.game_kind.value, e)
                return ActionResult.failure(CONFLICT_MESSAGE, error_code=ErrorCode.CONFLICT)
            except SyncError as e:
                if created:
                    await self._delete_quietly(fresh.session_id)
                logger.warning("Could not start %s: %s", self.game_kind.value, e)
                return ActionResult.failure(
                    f"Could not start the game: {e}", error_code=ErrorCode.TRANSPORT_ERROR,
                )

            if not survivors:
                return ActionResult.failure(
                    "The new round was removed by the partner",
                    error_code=ErrorCode.SESSION_NOT_FOUND,
                )

            self._adopt(survivors[0], force=True)

        self.notifier.notify_partner(self.partner_id, PartnerEvent.GAME_STARTED, self._alert_context())
        return ActionResult.success_with_state(self.view, changes=result.state_changes)

    async def apply(self, action: Action) -> ActionResult:
        """
        Apply a local action and persist the resulting record.

        Rule rejections come back from the reducer untouched; nothing is
        written for a rejected or no-op action.
        """
        async with self._lock:
            for attempt in range(2):
                base = self.view
                result = self.reducer.apply(base, action, self.user_id)
                if not result.success or not result.changed:
                    return result

                # Optimistic: the local view moves before the write lands
                self.view = result.new_state
                try:
                    stored = await self.store.replace(result.new_state, expected_version=base.version)
                except ConflictError as e:
                    logger.warning(
                        "Conflict applying %s for %s (attempt %d): %s",
                        action.action_type.value, self.user_id, attempt + 1, e,
                    )
                    self.view = self._persisted
                    try:
                        await self._refresh()
                    except TransportError as te:
                        return self._transport_failure(te)
                    continue
                except SessionNotFoundError:
                    self._drop_view()
                    return ActionResult.failure(
                        "The round was ended by your partner",
                        error_code=ErrorCode.SESSION_NOT_FOUND,
                    )
                except TransportError as e:
                    return self._transport_failure(e)

                self._adopt(stored)
                result.new_state = stored
                if stored.is_completed:
                    result.outcome = await self._record_quietly(stored)
                    self.notifier.notify_partner(
                        self.partner_id,
                        PartnerEvent.ASSESSMENT_COMPLETE,
                        self._alert_context(score=result.outcome.score if result.outcome else None),
                    )
                return result

        return ActionResult.failure(CONFLICT_MESSAGE, error_code=ErrorCode.CONFLICT)

    async def on_remote_change(self, event: ChangeEvent):
        """
        React to a feed event by refetching the record.

        Bursts of events are coalesced into one refetch, and refetches are
        spaced at least ``min_refetch_interval`` apart.
        """
        if event.partner_link_id != self.partner_link.link_id:
            return
        if (
            self.view is not None
            and event.record_id != self.view.session_id
            and event.event_type != EventType.INSERT
        ):
            logger.debug("Ignoring %s for unrelated record %s", event.event_type.value, event.record_id)
            return

        self._refetch_dirty = True
        if self._refetch_lock.locked():
            return

        async with self._refetch_lock:
            while self._refetch_dirty:
                if self._last_refetch is not None:
                    wait = self._last_refetch + self.settings.min_refetch_interval - time.monotonic()
                    if wait > 0:
                        await asyncio.sleep(wait)

                self._refetch_dirty = False
                self._last_refetch = time.monotonic()
                self.refetch_count += 1
                try:
                    await self.refresh()
                except TransportError as e:
                    logger.warning("Refetch after %s failed: %s", event.event_type.value, e)
                    return

    async def refresh(self) -> GameSession | None:
        """Refetch the live round and replace the view with it."""
        async with self._lock:
            await self._refresh()
        return self.view

    async def end(self) -> ActionResult:
        """Quit: delete the record without recording an outcome."""
        async with self._lock:
            if self.view is None:
                return ActionResult.failure("No active session", error_code=ErrorCode.SESSION_NOT_FOUND)

            session_id = self.view.session_id
            try:
                await self.store.delete(session_id)
            except TransportError as e:
                return self._transport_failure(e)

            self._drop_view()
            logger.info("%s ended session %s", self.user_id, session_id)
            return ActionResult(success=True, state_changes=[f"{self.user_id} quit the game"])

    async def consume_terminal(self) -> ActionResult:
        """
        Record the finished round's outcome, then delete the record.

        A round closed by EndGame has no outcome; it is only deleted.
        """
        async with self._lock:
            session = self.view
            if session is None:
                return ActionResult.failure("No active session", error_code=ErrorCode.SESSION_NOT_FOUND)
            if not session.is_terminal:
                return ActionResult.failure(
                    "The round is still in progress", error_code=ErrorCode.WRONG_PHASE,
                )

            try:
                outcome = await self._record(session)
                await self.store.delete(session.session_id)
            except TransportError as e:
                return self._transport_failure(e)

            self._drop_view()
            changes = ["Outcome saved"] if outcome is not None else ["Round closed"]
            result = ActionResult(success=True, state_changes=changes)
            result.outcome = outcome
            return result

    async def record_outcome(self) -> GameOutcome | None:
        """
        Record the current round's outcome if it was played to completion.

        Safe to call repeatedly; returns None while the round is live or
        after it was ended early.
        """
        session = self.view
        if session is None or not session.is_completed:
            return None
        return await self._record(session)

    def remind_partner(self) -> bool:
        """Re-send the game-started alert for a round still in progress."""
        if self.view is None or self.view.is_terminal:
            return False
        self.notifier.notify_partner(self.partner_id, PartnerEvent.GAME_STARTED, self._alert_context())
        return True

    # -- internals ---------------------------------------------------------

    async def _read(self, fetch: Callable[..., Awaitable[Any]], *args) -> Any:
        """Run a store read, retrying transport failures with backoff."""
        delay = self.settings.read_backoff
        attempts = max(self.settings.read_retries, 0) + 1
        for attempt in range(1, attempts + 1):
            try:
                return await fetch(*args)
            except TransportError as e:
                if attempt == attempts:
                    raise
                logger.warning("Read failed (attempt %d/%d): %s", attempt, attempts, e)
                await asyncio.sleep(delay)
                delay *= 2

    async def _refresh(self):
        fresh = None
        if self.view is not None:
            fresh = await self._read(self.store.get, self.view.session_id)
        if fresh is None:
            live = await self._read(
                self.store.find_live, self.partner_link.link_id, self.game_kind,
            )
            fresh = live[0] if live else None

        if fresh is None:
            self._drop_view()
            return

        self._adopt(fresh)
        if self.view.is_completed:
            await self._record_quietly(self.view)

    def _adopt(self, session: GameSession, force: bool = False):
        """Make a fetched or written record the view, never moving backwards."""
        current = self._persisted
        if (
            not force
            and current is not None
            and current.session_id == session.session_id
            and session.version < current.version
        ):
            logger.debug(
                "Ignoring stale read of %s (v%d < v%d)",
                session.session_id, session.version, current.version,
            )
            self.view = current
            return
        self.view = session
        self._persisted = session

    def _drop_view(self):
        self.view = None
        self._persisted = None

    def _transport_failure(self, error: TransportError) -> ActionResult:
        self.view = self._persisted
        logger.warning("Transport failure for %s: %s", self.user_id, error)
        return ActionResult.failure(
            f"Could not reach the game service: {error}",
            error_code=ErrorCode.TRANSPORT_ERROR,
        )

    async def _record(self, session: GameSession) -> GameOutcome | None:
        if not session.is_completed:
            return None
        known = self._recorded.get(session.session_id)
        if known is not None:
            return known

        draft = self.reducer.outcome(session)
        outcome = GameOutcome.from_session(session, draft.score, draft.details)
        outcome.outcome_id = await self.history.record(outcome)
        self._recorded[session.session_id] = outcome
        return outcome

    async def _record_quietly(self, session: GameSession) -> GameOutcome | None:
        try:
            return await self._record(session)
        except SyncError as e:
            logger.warning("Could not record outcome of %s yet: %s", session.session_id, e)
            return None

    async def _delete_quietly(self, session_id: str):
        try:
            await self.store.delete(session_id)
        except SyncError as e:
            logger.warning("Could not clean up session %s: %s", session_id, e)

    def _alert_context(self, **extra) -> dict[str, Any]:
        context = {
            "sender_name": self.display_name,
            "game_kind": self.game_kind.value,
            "game_label": self.game_kind.label,
        }
        if self.view is not None:
            context["session_id"] = self.view.session_id
        context.update({k: v for k, v in extra.items() if v is not None})
        return context
