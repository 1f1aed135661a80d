"""
FastAPI Application - Hosted session store, change feed and history log.

Endpoints:
    GET    /health                          Health check
    POST   /api/v1/sessions                 Create a session record
    GET    /api/v1/sessions                 List a partnership's live sessions
    GET    /api/v1/sessions/{id}            Fetch one record
    PUT    /api/v1/sessions/{id}            Versioned whole-record overwrite
    DELETE /api/v1/sessions/{id}            Delete a record
    POST   /api/v1/maintenance/purge        Remove old finished sessions
    POST   /api/v1/history                  Append a finished outcome
    GET    /api/v1/history                  Outcomes and summary
    GET    /api/v1/history/two-truths/score  One player's Two Truths tally
    WS     /api/v1/feed/{partner_link_id}   Change notifications

The service holds no game logic: clients validate moves locally and send
whole records. A PUT whose expected_version is stale is rejected with 409,
and the client is expected to refetch and replay.
"""

from dataclasses import asdict
from typing import Annotated, Optional, Union
import asyncio
import json
import logging

from ..config import SyncSettings
from ..engine_core.state import GameKind
from ..session.errors import ConflictError, SessionNotFoundError

logger = logging.getLogger(__name__)


def create_app(service=None, settings: Optional[SyncSettings] = None):
    """
    Create the FastAPI application.

    Args:
        service: Optional SyncService instance (creates new if not provided)
        settings: Optional settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Body, Query, WebSocket, WebSocketDisconnect
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .. import __version__
    from ..session import DuplicateSessionError
    from .service import SyncService
    from .schemas import (
        # Request models
        ReplaceSessionRequest,
        SessionRecord,
        OutcomeRecord,
        # Response models
        DeleteSessionResponse,
        ErrorResponse,
        FeedMessage,
        HealthResponse,
        HistoryResponse,
        HistorySummaryInfo,
        PurgeResponse,
        TwoTruthsScoreResponse,
        TwoTruthsTallyInfo,
        RecordOutcomeResponse,
        SessionListResponse,
        # Enums
        ErrorCode,
    )

    settings = settings if settings is not None else SyncSettings.from_env()

    app = FastAPI(
        title="PairPlay Sync API",
        description="""
Shared game records for couples mini-games.

## Writing

Every write replaces the whole record. `PUT /api/v1/sessions/{id}` must
carry the `expected_version` the client last read; a stale version is
rejected with `409 CONFLICT`.

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `CONFLICT` | Write based on a stale version |
| `ALREADY_EXISTS` | Session id already used |
| `VALIDATION_ERROR` | Malformed record |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # CORS for partner clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service if service is not None else SyncService()
    app.state.sync_service = api_service

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def not_found(session_id: str) -> JSONResponse:
        return make_error_response(
            ErrorCode.SESSION_NOT_FOUND,
            f"Session {session_id} not found",
            status_code=404,
            details={"session_id": session_id},
        )

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionRecord,
        status_code=201,
        responses={
            400: {"model": ErrorResponse, "description": "Malformed record"},
            409: {"model": ErrorResponse, "description": "Session id already used"},
        },
        tags=["Sessions"],
        summary="Create a session record",
    )
    async def create_session(record: SessionRecord) -> Union[SessionRecord, JSONResponse]:
        """Insert a new record; version and timestamps are assigned here."""
        try:
            created = await api_service.create_session(record.model_dump(mode="json"))
        except DuplicateSessionError as e:
            return make_error_response(ErrorCode.ALREADY_EXISTS, str(e), status_code=409)
        except ValueError as e:
            return make_error_response(ErrorCode.VALIDATION_ERROR, str(e))
        return SessionRecord(**created)

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List live sessions of a partnership",
    )
    async def list_sessions(
        partner_link_id: Annotated[str, Query(description="Partnership to list")],
        game_kind: Annotated[Optional[GameKind], Query(description="Only this game")] = None,
    ) -> SessionListResponse:
        """Live sessions, oldest first."""
        records = await api_service.list_sessions(partner_link_id, game_kind)
        return SessionListResponse(
            sessions=[SessionRecord(**record) for record in records],
            count=len(records),
        )

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionRecord,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Fetch one session record",
    )
    async def get_session(session_id: str) -> Union[SessionRecord, JSONResponse]:
        record = await api_service.get_session(session_id)
        if record is None:
            return not_found(session_id)
        return SessionRecord(**record)

    @app.put(
        "/api/v1/sessions/{session_id}",
        response_model=SessionRecord,
        responses={
            400: {"model": ErrorResponse, "description": "Malformed record"},
            404: {"model": ErrorResponse, "description": "Session not found"},
            409: {"model": ErrorResponse, "description": "Stale expected_version"},
        },
        tags=["Sessions"],
        summary="Overwrite a session record",
    )
    async def replace_session(
        session_id: str,
        request: ReplaceSessionRequest,
    ) -> Union[SessionRecord, JSONResponse]:
        """
        Replace the whole record if it is still at `expected_version`.

        On 409 the client must refetch, replay its action and retry.
        """
        try:
            replaced = await api_service.replace_session(
                session_id,
                request.record.model_dump(mode="json"),
                request.expected_version,
            )
        except ConflictError as e:
            return make_error_response(
                ErrorCode.CONFLICT,
                "Something changed, please try again",
                status_code=409,
                details={
                    "expected_version": e.expected_version,
                    "current_version": e.actual_version,
                },
            )
        except SessionNotFoundError:
            return not_found(session_id)
        except ValueError as e:
            return make_error_response(ErrorCode.VALIDATION_ERROR, str(e))
        return SessionRecord(**replaced)

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=DeleteSessionResponse,
        tags=["Sessions"],
        summary="Delete a session record",
    )
    async def delete_session(session_id: str) -> DeleteSessionResponse:
        """Deleting a missing session succeeds with `deleted=false`."""
        deleted = await api_service.delete_session(session_id)
        return DeleteSessionResponse(deleted=deleted, session_id=session_id)

    @app.post(
        "/api/v1/maintenance/purge",
        response_model=PurgeResponse,
        tags=["Sessions"],
        summary="Remove old finished sessions",
    )
    async def purge_sessions(
        max_age_seconds: Annotated[float, Query(ge=0, description="Minimum idle time")] = 3600,
    ) -> PurgeResponse:
        """Live sessions are never purged."""
        purged = await api_service.purge_terminal(max_age_seconds)
        return PurgeResponse(purged=purged, count=len(purged))

    # =========================================================================
    # History Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/history",
        response_model=RecordOutcomeResponse,
        status_code=201,
        tags=["History"],
        summary="Append a finished outcome",
    )
    async def record_outcome(
        outcome: Annotated[OutcomeRecord, Body()],
    ) -> RecordOutcomeResponse:
        """Recording the same session twice returns the first outcome id."""
        outcome_id = await api_service.record_outcome(outcome.model_dump(mode="json"))
        return RecordOutcomeResponse(outcome_id=outcome_id, session_id=outcome.session_id)

    @app.get(
        "/api/v1/history",
        response_model=HistoryResponse,
        tags=["History"],
        summary="Outcomes of a partnership",
    )
    async def get_history(
        partner_link_id: Annotated[str, Query(description="Partnership to list")],
        game_kind: Annotated[Optional[GameKind], Query(description="Only this game")] = None,
        limit: Annotated[int, Query(ge=1, le=500)] = 50,
    ) -> HistoryResponse:
        outcomes, summary = await api_service.history(partner_link_id, game_kind, limit)
        return HistoryResponse(
            outcomes=[OutcomeRecord(**outcome.to_dict()) for outcome in outcomes],
            count=len(outcomes),
            summary=HistorySummaryInfo(
                games_played=summary.games_played,
                total_matches=summary.total_matches,
                average_score=summary.average_score,
                last_played_at=summary.last_played_at,
                two_truths={
                    user_id: TwoTruthsTallyInfo(**asdict(tally))
                    for user_id, tally in summary.two_truths.items()
                },
            ),
        )

    @app.get(
        "/api/v1/history/two-truths/score",
        response_model=TwoTruthsScoreResponse,
        tags=["History"],
        summary="One player's Two Truths tally",
    )
    async def get_two_truths_score(
        partner_link_id: Annotated[str, Query(description="Partnership to count")],
        user_id: Annotated[str, Query(description="Player whose tally to return")],
    ) -> TwoTruthsScoreResponse:
        tally = await api_service.two_truths_score(partner_link_id, user_id)
        return TwoTruthsScoreResponse(
            partner_link_id=partner_link_id,
            user_id=user_id,
            **asdict(tally),
        )

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/feed/{partner_link_id}")
    async def feed_endpoint(websocket: WebSocket, partner_link_id: str):
        """
        Change notifications for one partnership.

        Messages from server:
        - subscribed: Subscription is active
        - change: A record changed (event_type, record_id, partner_link_id)
        - pong: Reply to ping
        - error: Unreadable client message

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()
        subscription = api_service.feed.subscribe(partner_link_id)
        await websocket.send_json({"type": "subscribed", "partner_link_id": partner_link_id})

        async def pump():
            try:
                async for event in subscription:
                    message = FeedMessage(**event.to_dict())
                    await websocket.send_json(message.model_dump())
            except (WebSocketDisconnect, RuntimeError) as e:
                # Socket closed while a change was in flight
                logger.debug("Feed pump for %s stopped: %s", partner_link_id, e)

        pump_task = asyncio.create_task(pump())
        try:
            # Listen for messages
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            logger.debug("Feed socket for %s disconnected", partner_link_id)
            return
        finally:
            subscription.close()
            pump_task.cancel()

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="pairplay-sync",
            version=__version__,
            environment=settings.env,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "PairPlay Sync API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app
