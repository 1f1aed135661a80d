"""
API Module - Network interface for partner clients.

Hosts the shared pieces two clients need to play over a network:
1. The session store (whole-record, versioned writes)
2. The change feed (WebSocket)
3. The history log

Game rules stay on the clients; the service only stores records.
"""

from .schemas import (
    # Requests
    ReplaceSessionRequest,
    # Responses
    SessionRecord,
    SessionListResponse,
    DeleteSessionResponse,
    OutcomeRecord,
    RecordOutcomeResponse,
    HistoryResponse,
    HistorySummaryInfo,
    TwoTruthsTallyInfo,
    TwoTruthsScoreResponse,
    PurgeResponse,
    FeedMessage,
    HealthResponse,
    ErrorResponse,
    ErrorCode,
)
from ..session import DuplicateSessionError
from .service import SyncService, decode_record
from .app import create_app

__all__ = [
    # Requests
    "ReplaceSessionRequest",
    # Responses
    "SessionRecord",
    "SessionListResponse",
    "DeleteSessionResponse",
    "OutcomeRecord",
    "RecordOutcomeResponse",
    "HistoryResponse",
    "HistorySummaryInfo",
    "TwoTruthsTallyInfo",
    "TwoTruthsScoreResponse",
    "PurgeResponse",
    "FeedMessage",
    "HealthResponse",
    "ErrorResponse",
    "ErrorCode",
    # Service
    "SyncService",
    "DuplicateSessionError",
    "decode_record",
    "create_app",
]
