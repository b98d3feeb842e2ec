"""Posting to the logging channel."""

from __future__ import annotations

from typing import Optional, Protocol
import logging

from evebot.mattermost.errors import AppError, log_app_error
from evebot.mattermost.models import Channel, Post


class PostCreator(Protocol):
    async def create_post(self, *, channel_id: str, message: str, root_id: str = "") -> Post:
        ...


class LoggingChannelSender:
    """Sends messages to the logging channel; failures are logged, never raised."""

    def __init__(
        self,
        *,
        client: PostCreator,
        channel: Optional[Channel],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._channel = channel
        self._logger = logger or logging.getLogger("evebot.sender")

    async def send_message(self, message: str, reply_to_id: str = "") -> bool:
        if self._channel is None:
            # Channel creation failed during bootstrap.
            self._logger.error(
                "We failed to send a message to the logging channel: "
                "logging channel unavailable (message=%r)",
                message,
            )
            return False

        try:
            await self._client.create_post(
                channel_id=self._channel.id,
                message=message,
                root_id=reply_to_id,
            )
        except AppError as exc:
            log_app_error(self._logger, "We failed to send a message to the logging channel", exc)
            return False
        return True
