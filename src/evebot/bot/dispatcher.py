"""Routes websocket events from the logging channel into the reply engine."""

from __future__ import annotations

from typing import AsyncIterable, Optional, Protocol
import logging

from evebot.bot.replies import Reply
from evebot.mattermost.models import WEBSOCKET_EVENT_POSTED, Post, WebSocketEvent


class ReplyProducer(Protocol):
    def reply_to(self, post: Post) -> Optional[Reply]:
        ...


class ReplySender(Protocol):
    async def send_message(self, message: str, reply_to_id: str = "") -> bool:
        ...


class EventRouter:
    """Decides whether an event should reach the reply engine."""

    def __init__(self, channel_id: Optional[str]) -> None:
        self._channel_id = channel_id or None

    @property
    def channel_id(self) -> Optional[str]:
        return self._channel_id

    def should_dispatch(self, event: WebSocketEvent) -> bool:
        if self._channel_id is None:
            return False

        if event.channel_id != self._channel_id:
            return False

        return event.event == WEBSOCKET_EVENT_POSTED


class EventDispatcher:
    """Single consumer: each event is fully handled before the next is read."""

    def __init__(
        self,
        *,
        router: EventRouter,
        reply_engine: ReplyProducer,
        sender: ReplySender,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._router = router
        self._reply_engine = reply_engine
        self._sender = sender
        self._logger = logger or logging.getLogger("evebot.dispatcher")

    async def handle_event(self, event: WebSocketEvent) -> bool:
        """Handle one event. Returns True when it was routed to the reply engine."""
        if not self._router.should_dispatch(event):
            return False

        post = event.post()
        if post is None:
            self._logger.warning("Dropping posted event without a decodable post (seq=%s).", event.seq)
            return False

        self._logger.info("Responding to logging channel message post_id=%s", post.id)
        reply = self._reply_engine.reply_to(post)
        if reply is None:
            return True

        self._logger.debug("Reply keyword=%s root_id=%s", reply.keyword, reply.root_id)
        await self._sender.send_message(reply.message, reply_to_id=reply.root_id)
        return True

    async def run(self, events: AsyncIterable[WebSocketEvent]) -> None:
        async for event in events:
            try:
                await self.handle_event(event)
            except Exception:
                self._logger.exception("Event handler failed")
        self._logger.warning("Event stream ended; no further messages will be handled.")
