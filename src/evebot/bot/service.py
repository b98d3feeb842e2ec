"""Bot service: bootstrap, event consumer and shutdown announcement."""

from __future__ import annotations

from typing import Optional
import asyncio
import logging

from evebot.bot.bootstrap import (
    STOPPED_MESSAGE,
    BootstrapSequencer,
    BotContext,
    ChatClient,
    StreamFactory,
)
from evebot.bot.dispatcher import EventDispatcher, EventRouter
from evebot.bot.replies import ReplyEngine
from evebot.bot.sender import LoggingChannelSender
from evebot.config.settings import AppSettings
from evebot.mattermost.websocket import EventStream


class EveBotService:
    """Runtime service wiring bootstrap state into the event dispatcher."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        client: ChatClient,
        stream_factory: Optional[StreamFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._stream_factory = stream_factory
        self._logger = logger or logging.getLogger("evebot.service")
        self._context: Optional[BotContext] = None
        self._sender: Optional[LoggingChannelSender] = None
        self._stream: Optional[EventStream] = None
        self._consumer: Optional[asyncio.Task] = None

    @property
    def context(self) -> Optional[BotContext]:
        return self._context

    async def start(self) -> None:
        sequencer = BootstrapSequencer(
            client=self._client,
            settings=self._settings,
            stream_factory=self._stream_factory,
        )
        context = await sequencer.run()
        sender = LoggingChannelSender(client=self._client, channel=context.channel)

        # Context and sender are complete before the consumer can observe them.
        self._context = context
        self._sender = sender
        self._stream = await sequencer.open_event_stream()
        if self._stream is None:
            self._logger.warning("Running without an event stream; waiting for shutdown.")
            return

        dispatcher = EventDispatcher(
            router=EventRouter(context.channel_id),
            reply_engine=ReplyEngine(bot_user_id=context.user.id),
            sender=sender,
        )
        self._consumer = asyncio.create_task(
            dispatcher.run(self._stream.events()),
            name="evebot-dispatcher",
        )
        self._consumer.add_done_callback(self._on_consumer_done)

    def _on_consumer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error(
                "Event consumer stopped unexpectedly; no further messages will be handled.",
                exc_info=exc,
            )

    async def stop(self) -> None:
        if self._context is None:
            return

        consumer, self._consumer = self._consumer, None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                await stream.close()
            except Exception:
                self._logger.exception("Closing the event stream failed.")

        sender, self._sender = self._sender, None
        self._context = None
        if sender is not None:
            await sender.send_message(STOPPED_MESSAGE)
