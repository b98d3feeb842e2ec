"""Bot behaviour: bootstrap, event dispatch and replies."""

from evebot.bot.bootstrap import (
    STARTED_MESSAGE,
    STOPPED_MESSAGE,
    BootstrapError,
    BootstrapSequencer,
    BotContext,
)
from evebot.bot.dispatcher import EventDispatcher, EventRouter
from evebot.bot.replies import AFFIRMATIVE_REPLY, FALLBACK_REPLY, Reply, ReplyEngine
from evebot.bot.sender import LoggingChannelSender
from evebot.bot.service import EveBotService

__all__ = [
    "AFFIRMATIVE_REPLY",
    "FALLBACK_REPLY",
    "STARTED_MESSAGE",
    "STOPPED_MESSAGE",
    "BootstrapError",
    "BootstrapSequencer",
    "BotContext",
    "EventDispatcher",
    "EventRouter",
    "EveBotService",
    "LoggingChannelSender",
    "Reply",
    "ReplyEngine",
]
