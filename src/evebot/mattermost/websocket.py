"""Mattermost websocket event stream built on the websockets library."""

from __future__ import annotations

from typing import Any, AsyncIterator, Awaitable, Callable, Optional
import asyncio
import json
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from evebot.mattermost.client import API_PATH
from evebot.mattermost.errors import CONNECTING_ERROR_ID, AppError
from evebot.mattermost.models import WebSocketEvent


Connector = Callable[[str], Awaitable[Any]]


class EventStream:
    """Authenticated websocket connection yielding :class:`WebSocketEvent` values."""

    def __init__(
        self,
        *,
        url: str,
        auth_token: str,
        connector: Optional[Connector] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url.rstrip("/") + API_PATH + "/websocket"
        self._auth_token = auth_token
        self._connector = connector or websockets.connect
        self._logger = logger or logging.getLogger("evebot.mattermost.websocket")
        self._connection: Any = None
        self._seq = 0

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        try:
            self._connection = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise AppError(
                f"We failed to connect to {self.url}.",
                id=CONNECTING_ERROR_ID,
                detailed_error=str(exc),
            ) from exc

        try:
            await self._send_action("authentication_challenge", {"token": self._auth_token})
        except AppError:
            await self.close()
            raise
        self._logger.info("Websocket connected: %s", self.url)

    async def events(self) -> AsyncIterator[WebSocketEvent]:
        """Yield events until the connection closes."""
        if self._connection is None:
            raise AppError("Websocket is not connected.", id=CONNECTING_ERROR_ID)

        try:
            async for raw in self._connection:
                event = self._decode(raw)
                if event is not None:
                    yield event
        except ConnectionClosed as exc:
            self._logger.warning("Websocket connection closed: %s", exc)

    async def close(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()
            self._logger.info("Websocket closed.")

    async def _send_action(self, action: str, data: dict[str, Any]) -> None:
        self._seq += 1
        message = {"seq": self._seq, "action": action, "data": data}
        try:
            await self._connection.send(json.dumps(message))
        except (OSError, WebSocketException) as exc:
            raise AppError(
                f"We failed to send '{action}' over the web socket.",
                id=CONNECTING_ERROR_ID,
                detailed_error=str(exc),
            ) from exc

    def _decode(self, raw: Any) -> Optional[WebSocketEvent]:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            self._logger.warning("Dropping undecodable websocket frame.")
            return None

        if not isinstance(payload, dict):
            return None

        # Replies to our own actions carry seq_reply/status instead of an event.
        if "event" not in payload:
            self._logger.debug(
                "Websocket reply seq_reply=%s status=%s",
                payload.get("seq_reply"),
                payload.get("status"),
            )
            return None

        return WebSocketEvent.from_dict(payload)
