"""Factory for wiring up the EVE runtime."""

from __future__ import annotations

from typing import Optional
import logging

from evebot.bot.service import EveBotService
from evebot.config.settings import AppSettings
from evebot.mattermost.client import MattermostClient, MattermostTransport
from evebot.mattermost.websocket import EventStream


def create_bot_service(
    settings: AppSettings,
    *,
    transport: Optional[MattermostTransport] = None,
    logger: Optional[logging.Logger] = None,
) -> EveBotService:
    """Create the bot service with a Mattermost client and websocket factory."""

    _logger = logger or logging.getLogger("evebot.factory")
    _logger.debug(
        "Creating Mattermost client url=%s ws_url=%s",
        settings.server.mm_url,
        settings.server.websocket_url,
    )

    client = MattermostClient(
        url=settings.server.mm_url,
        timeout_seconds=settings.server.http_timeout,
        transport=transport,
        logger=logging.getLogger("evebot.mattermost.client"),
    )

    def open_stream(auth_token: str) -> EventStream:
        return EventStream(
            url=settings.server.websocket_url,
            auth_token=auth_token,
            logger=logging.getLogger("evebot.mattermost.websocket"),
        )

    return EveBotService(
        settings=settings,
        client=client,
        stream_factory=open_stream,
        logger=logging.getLogger("evebot.service"),
    )
