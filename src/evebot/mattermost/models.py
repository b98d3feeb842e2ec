"""Mattermost API payload models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
import json


CHANNEL_OPEN = "O"

WEBSOCKET_EVENT_POSTED = "posted"


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "User":
        return cls(
            id=_as_text(payload.get("id")),
            username=_as_text(payload.get("username")),
            email=_as_text(payload.get("email")),
            first_name=_as_text(payload.get("first_name")),
            last_name=_as_text(payload.get("last_name")),
        )


@dataclass(frozen=True)
class Team:
    id: str
    name: str
    display_name: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Team":
        return cls(
            id=_as_text(payload.get("id")),
            name=_as_text(payload.get("name")),
            display_name=_as_text(payload.get("display_name")),
        )


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    team_id: str = ""
    display_name: str = ""
    purpose: str = ""
    type: str = CHANNEL_OPEN

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Channel":
        return cls(
            id=_as_text(payload.get("id")),
            name=_as_text(payload.get("name")),
            team_id=_as_text(payload.get("team_id")),
            display_name=_as_text(payload.get("display_name")),
            purpose=_as_text(payload.get("purpose")),
            type=_as_text(payload.get("type")) or CHANNEL_OPEN,
        )


@dataclass(frozen=True)
class Post:
    id: str
    channel_id: str
    user_id: str
    message: str
    root_id: str = ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Post":
        return cls(
            id=_as_text(payload.get("id")),
            channel_id=_as_text(payload.get("channel_id")),
            user_id=_as_text(payload.get("user_id")),
            message=_as_text(payload.get("message")),
            root_id=_as_text(payload.get("root_id")),
        )

    @classmethod
    def from_json(cls, raw: str) -> Optional["Post"]:
        """Decode a post from its JSON text, or return None if it is not one."""
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(payload, Mapping):
            return None
        return cls.from_dict(payload)


@dataclass(frozen=True)
class WebSocketEvent:
    event: str
    data: Mapping[str, Any] = field(default_factory=dict)
    channel_id: str = ""
    seq: int = 0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WebSocketEvent":
        data = payload.get("data")
        broadcast = payload.get("broadcast")
        if not isinstance(broadcast, Mapping):
            broadcast = {}
        seq = payload.get("seq")
        return cls(
            event=_as_text(payload.get("event")),
            data=dict(data) if isinstance(data, Mapping) else {},
            channel_id=_as_text(broadcast.get("channel_id")),
            seq=seq if isinstance(seq, int) and not isinstance(seq, bool) else 0,
        )

    def post(self) -> Optional[Post]:
        """Decode the post carried by a ``posted`` event."""
        raw = self.data.get("post")
        if not isinstance(raw, str):
            return None
        return Post.from_json(raw)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return ""


@dataclass(frozen=True)
class InitialLoad:
    """Metadata loaded once at startup."""

    teams: tuple[Team, ...] = ()

    def find_team(self, name: str) -> Optional[Team]:
        for team in self.teams:
            if team.name == name:
                return team
        return None
