"""Mattermost-facing clients and models."""

from evebot.mattermost.client import (
    HttpResponse,
    MattermostClient,
    MattermostTransport,
    UrllibTransport,
)
from evebot.mattermost.errors import AppError, log_app_error
from evebot.mattermost.models import (
    CHANNEL_OPEN,
    WEBSOCKET_EVENT_POSTED,
    Channel,
    InitialLoad,
    Post,
    Team,
    User,
    WebSocketEvent,
)
from evebot.mattermost.websocket import EventStream

__all__ = [
    "CHANNEL_OPEN",
    "WEBSOCKET_EVENT_POSTED",
    "AppError",
    "Channel",
    "EventStream",
    "HttpResponse",
    "InitialLoad",
    "MattermostClient",
    "MattermostTransport",
    "Post",
    "Team",
    "UrllibTransport",
    "User",
    "WebSocketEvent",
    "log_app_error",
]
