"""
HTTP adapters - SessionStore and HistoryRecorder backed by the sync API.

Both talk to a service created by ``pairplay.api.create_app``. HTTP status
codes are mapped back onto the store contract:
- 404 on a session -> None (get) or SessionNotFoundError (replace)
- 409 -> ConflictError
- network errors and 5xx -> TransportError
"""

from __future__ import annotations
from typing import Any
import logging

import httpx

from ..config import SyncSettings
from ..engine_core.state import GameKind, GameSession
from .errors import ConflictError, DuplicateSessionError, SessionNotFoundError, TransportError
from .history import GameOutcome, HistoryRecorder
from .store import SessionStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _make_client(base_url: str, timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
    )


class _ApiClient:
    """Shared request handling for the HTTP adapters."""

    def __init__(self, base_url: str = "", timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        self._owns_client = client is None
        self._client = client or _make_client(base_url, timeout)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, f"{API_PREFIX}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 500:
            raise TransportError(f"{method} {path} returned {response.status_code}")
        return response

    @staticmethod
    def _details(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        if not isinstance(body, dict):
            return {}
        return body.get("details") or {}

    @staticmethod
    def _unexpected(response: httpx.Response) -> TransportError:
        return TransportError(
            f"{response.request.method} {response.request.url.path} "
            f"returned {response.status_code}: {response.text[:200]}"
        )

    async def close(self):
        if self._owns_client:
            await self._client.aclose()


class HttpSessionStore(_ApiClient, SessionStore):
    """SessionStore talking to a remote sync API."""

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> HttpSessionStore:
        if not settings.api_url:
            raise ValueError("PAIRPLAY_API_URL is not set")
        return cls(base_url=settings.api_url, timeout=settings.http_timeout)

    async def get(self, session_id: str) -> GameSession | None:
        response = await self._request("GET", f"/sessions/{session_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._unexpected(response)
        return GameSession.from_record(response.json())

    async def find_live(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
    ) -> list[GameSession]:
        params = {"partner_link_id": partner_link_id}
        if game_kind is not None:
            params["game_kind"] = game_kind.value
        response = await self._request("GET", "/sessions", params=params)
        if response.status_code != 200:
            raise self._unexpected(response)
        return [GameSession.from_record(record) for record in response.json()["sessions"]]

    async def create(self, session: GameSession) -> GameSession:
        response = await self._request("POST", "/sessions", json=session.to_record())
        if response.status_code == 409:
            raise DuplicateSessionError(session.session_id)
        if response.status_code != 201:
            raise self._unexpected(response)
        return GameSession.from_record(response.json())

    async def replace(self, session: GameSession, expected_version: int) -> GameSession:
        response = await self._request(
            "PUT",
            f"/sessions/{session.session_id}",
            json={"record": session.to_record(), "expected_version": expected_version},
        )
        if response.status_code == 409:
            details = self._details(response)
            raise ConflictError(session.session_id, expected_version, details.get("current_version"))
        if response.status_code == 404:
            raise SessionNotFoundError(session.session_id)
        if response.status_code != 200:
            raise self._unexpected(response)
        return GameSession.from_record(response.json())

    async def delete(self, session_id: str) -> bool:
        response = await self._request("DELETE", f"/sessions/{session_id}")
        if response.status_code != 200:
            raise self._unexpected(response)
        return bool(response.json().get("deleted"))


class HttpHistoryRecorder(_ApiClient, HistoryRecorder):
    """HistoryRecorder talking to a remote sync API."""

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> HttpHistoryRecorder:
        if not settings.api_url:
            raise ValueError("PAIRPLAY_API_URL is not set")
        return cls(base_url=settings.api_url, timeout=settings.http_timeout)

    async def record(self, outcome: GameOutcome) -> str:
        response = await self._request("POST", "/history", json=outcome.to_dict())
        if response.status_code not in (200, 201):
            raise self._unexpected(response)
        return response.json()["outcome_id"]

    async def list_outcomes(
        self,
        partner_link_id: str,
        game_kind: GameKind | None = None,
        limit: int = 50,
    ) -> list[GameOutcome]:
        params: dict[str, Any] = {"partner_link_id": partner_link_id, "limit": limit}
        if game_kind is not None:
            params["game_kind"] = game_kind.value
        response = await self._request("GET", "/history", params=params)
        if response.status_code != 200:
            raise self._unexpected(response)
        return [GameOutcome.from_dict(item) for item in response.json()["outcomes"]]
