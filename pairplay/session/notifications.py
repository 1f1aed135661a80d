"""
Notification Bridge - Fire-and-forget alerts to the partner.

A failed notification never affects the game: bridges log the failure
and move on.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import asyncio
import logging
import time

import httpx

logger = logging.getLogger(__name__)


class PartnerEvent(str, Enum):
    GAME_STARTED = "GAME_STARTED"
    GOAL_COMPLETED = "GOAL_COMPLETED"
    ASSESSMENT_COMPLETE = "ASSESSMENT_COMPLETE"


@dataclass
class Notification:
    user_id: str
    event: PartnerEvent
    context: dict[str, Any] = field(default_factory=dict)
    sent_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "event": self.event.value,
            "context": dict(self.context),
            "sent_at": self.sent_at,
        }


class NotificationBridge(ABC):
    @abstractmethod
    def notify_partner(
        self,
        user_id: str,
        event: PartnerEvent,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Alert ``user_id``; returns immediately and never raises."""

    async def aclose(self):
        """Wait for in-flight notifications and release resources."""


class LoggingNotificationBridge(NotificationBridge):
    """Default bridge: logs the alert and keeps it for inspection."""

    def __init__(self):
        self.sent: list[Notification] = []

    def notify_partner(
        self,
        user_id: str,
        event: PartnerEvent,
        context: dict[str, Any] | None = None,
    ) -> None:
        notification = Notification(user_id=user_id, event=event, context=dict(context or {}))
        self.sent.append(notification)
        logger.info("Notify %s: %s %s", user_id, event.value, notification.context)


class WebhookNotificationBridge(NotificationBridge):
    """
    POSTs each alert to a webhook (an SMS or push relay) in the background.

    The request runs as a task on the caller's loop; delivery errors are
    logged as warnings.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, 5.0)),
        )
        self._tasks: set[asyncio.Task] = set()

    def notify_partner(
        self,
        user_id: str,
        event: PartnerEvent,
        context: dict[str, Any] | None = None,
    ) -> None:
        notification = Notification(user_id=user_id, event=event, context=dict(context or {}))
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No event loop, dropping %s for %s", event.value, user_id)
            return

        task = loop.create_task(self._post(notification))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, notification: Notification):
        try:
            response = await self._client.post(self.url, json=notification.to_dict())
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Failed to deliver %s to %s: %s",
                notification.event.value, notification.user_id, e,
            )
            return
        logger.info("Delivered %s to %s", notification.event.value, notification.user_id)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def aclose(self):
        if self._tasks:
            await asyncio.gather(*self._tasks)
        if self._owns_client:
            await self._client.aclose()
