"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between partner clients and the sync
service. Session records are passed through whole; the service never
merges fields.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist (ended or never created)
- CONFLICT: Write was based on a stale version of the record
- ALREADY_EXISTS: A session with this id was already created
- VALIDATION_ERROR: Request body or record is malformed
- INTERNAL_ERROR: Unexpected server failure
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, field_validator

from ..engine_core.state import GameKind


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    CONFLICT = "CONFLICT"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class SessionRecord(BaseModel):
    """One live game round, exactly as stored."""
    id: str = Field(..., min_length=1, description="Session id")
    partner_link_id: str = Field(..., min_length=1)
    game_kind: GameKind
    started_by: str
    state: dict[str, Any] = Field(..., description="Per-kind state payload, always with a mode")
    readiness: dict[str, bool] = Field(..., description="Ready flag per partner")
    current_index: int = Field(0, ge=0, description="Prompt the ready flags refer to")
    version: int = Field(0, ge=0, description="Assigned by the store")
    created_at: float = 0.0
    updated_at: float = 0.0

    @field_validator("state")
    @classmethod
    def state_has_mode(cls, value: dict[str, Any]) -> dict[str, Any]:
        if "mode" not in value:
            raise ValueError("state must include a mode")
        return value

    @field_validator("readiness")
    @classmethod
    def two_partners(cls, value: dict[str, bool]) -> dict[str, bool]:
        if len(value) != 2:
            raise ValueError("readiness must have exactly one entry per partner")
        return value


class OutcomeRecord(BaseModel):
    """A finished round in the history log."""
    outcome_id: Optional[str] = None
    session_id: str
    partner_link_id: str
    game_kind: GameKind
    played_by: list[str] = Field(default_factory=list)
    score: int = 0
    details: dict[str, Any] = Field(default_factory=dict)
    completed_at: Optional[float] = None


class TwoTruthsTallyInfo(BaseModel):
    """One player's Two Truths record."""
    guessed_correctly: int = Field(0, ge=0, description="Lies spotted as the guesser")
    fooled_partner: int = Field(0, ge=0, description="Partners fooled as the creator")


class HistorySummaryInfo(BaseModel):
    """Aggregates over a partnership's outcomes."""
    games_played: int = 0
    total_matches: int = 0
    average_score: Optional[float] = None
    last_played_at: Optional[float] = None
    two_truths: dict[str, TwoTruthsTallyInfo] = Field(
        default_factory=dict, description="Two Truths tallies keyed by user id",
    )


# =============================================================================
# Request Models
# =============================================================================

class ReplaceSessionRequest(BaseModel):
    """Whole-record overwrite conditioned on the version it was based on."""
    record: SessionRecord
    expected_version: int = Field(..., ge=0, description="Version the client last read")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SessionListResponse(BaseModel):
    """Live sessions of a partnership."""
    sessions: list[SessionRecord]
    count: int


class DeleteSessionResponse(BaseModel):
    """Response after deleting a session."""
    deleted: bool
    session_id: str


class RecordOutcomeResponse(BaseModel):
    outcome_id: str
    session_id: str


class HistoryResponse(BaseModel):
    """Outcomes of a partnership, newest first, with a summary."""
    outcomes: list[OutcomeRecord]
    count: int
    summary: HistorySummaryInfo


class TwoTruthsScoreResponse(TwoTruthsTallyInfo):
    """One player's Two Truths record within a partnership."""
    partner_link_id: str
    user_id: str


class PurgeResponse(BaseModel):
    """Finished sessions removed by a maintenance purge."""
    purged: list[str]
    count: int


class FeedMessage(BaseModel):
    """A change notification pushed over the feed WebSocket."""
    type: str = "change"
    event_type: str = Field(description="insert, update, delete")
    record_id: str
    partner_link_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    environment: str
