"""
Session Module - Keeps two partners' views of a game round in sync.

A session is one round of a mini-game shared by a partnership:
- Created when either partner starts a game
- Advanced by both partners through whole-record, versioned writes
- Announced to the other partner through the change feed
- Deleted once its outcome is in the history log

Sessions are EPHEMERAL: only finished outcomes are kept.
"""

from .errors import SyncError, ConflictError, DuplicateSessionError, SessionNotFoundError, TransportError
from .feed import ChangeFeed, ChangeEvent, EventType, Subscription
from .store import SessionStore, InMemorySessionStore
from .history import (
    GameOutcome,
    HistoryRecorder,
    HistorySummary,
    InMemoryHistoryRecorder,
    TwoTruthsTally,
    summarize,
    two_truths_scoreboard,
)
from .notifications import (
    NotificationBridge,
    LoggingNotificationBridge,
    WebhookNotificationBridge,
    PartnerEvent,
    Notification,
)
from .coordinator import SessionCoordinator
from .remote import HttpSessionStore, HttpHistoryRecorder

__all__ = [
    "SyncError",
    "ConflictError",
    "DuplicateSessionError",
    "SessionNotFoundError",
    "TransportError",
    "ChangeFeed",
    "ChangeEvent",
    "EventType",
    "Subscription",
    "SessionStore",
    "InMemorySessionStore",
    "GameOutcome",
    "HistoryRecorder",
    "HistorySummary",
    "InMemoryHistoryRecorder",
    "TwoTruthsTally",
    "summarize",
    "two_truths_scoreboard",
    "NotificationBridge",
    "LoggingNotificationBridge",
    "WebhookNotificationBridge",
    "PartnerEvent",
    "Notification",
    "SessionCoordinator",
    "HttpSessionStore",
    "HttpHistoryRecorder",
]
