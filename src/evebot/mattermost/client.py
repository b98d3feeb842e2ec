"""Mattermost REST API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol
import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.request

from evebot.mattermost.errors import CONNECTING_ERROR_ID, DECODE_ERROR_ID, AppError
from evebot.mattermost.models import CHANNEL_OPEN, Channel, InitialLoad, Post, Team, User


API_PATH = "/api/v4"
TOKEN_HEADER = "token"
VERSION_HEADER = "x-version-id"


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)


class MattermostTransport(Protocol):
    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout_seconds: float,
    ) -> HttpResponse:
        ...


class UrllibTransport:
    """Blocking urllib transport executed in a worker thread."""

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes],
        timeout_seconds: float,
    ) -> HttpResponse:
        def _do_request() -> HttpResponse:
            try:
                request = urllib.request.Request(url, data=body, method=method, headers=dict(headers))
                with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
                    return HttpResponse(
                        status=response.status,
                        body=response.read(),
                        headers=_lower_headers(response.headers),
                    )
            except urllib.error.HTTPError as exc:
                # Non-2xx responses still carry the server's error payload.
                return HttpResponse(
                    status=exc.code,
                    body=exc.read() or b"",
                    headers=_lower_headers(exc.headers),
                )
            except (OSError, http.client.HTTPException, ValueError) as exc:
                raise AppError(
                    f"We could not connect to {url}.",
                    id=CONNECTING_ERROR_ID,
                    detailed_error=str(exc),
                ) from exc

        return await asyncio.to_thread(_do_request)


class MattermostClient:
    """Subset of the Mattermost v4 API used by the bot.

    The client keeps the session token returned by :meth:`login` and the team
    selected with :meth:`set_team_id`; both are used by later calls.
    """

    def __init__(
        self,
        *,
        url: str,
        timeout_seconds: float = 30.0,
        transport: Optional[MattermostTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.api_url = self.url + API_PATH
        self.auth_token: Optional[str] = None
        self.team_id: Optional[str] = None
        self._timeout_seconds = timeout_seconds
        self._transport = transport or UrllibTransport()
        self._logger = logger or logging.getLogger("evebot.mattermost.client")

    async def ping(self) -> dict[str, str]:
        response, payload = await self._do_api_request("GET", "/system/ping")
        props = {
            str(key): str(value)
            for key, value in (_as_mapping(payload) if payload is not None else {}).items()
            if isinstance(value, (str, int, float))
        }
        props.setdefault("version", response.headers.get(VERSION_HEADER, "unknown"))
        return props

    async def login(self, login_id: str, password: str) -> User:
        response, payload = await self._do_api_request(
            "POST",
            "/users/login",
            {"login_id": login_id, "password": password},
        )
        token = response.headers.get(TOKEN_HEADER)
        if not token:
            raise AppError(
                "Login response did not include a session token.",
                id="model.client.login.app_error",
                status_code=response.status,
            )
        self.auth_token = token
        return User.from_dict(_as_mapping(payload))

    async def update_user(self, user: User) -> User:
        _, payload = await self._do_api_request(
            "PUT",
            f"/users/{user.id}/patch",
            {
                "username": user.username,
                "first_name": user.first_name,
                "last_name": user.last_name,
            },
        )
        return User.from_dict(_as_mapping(payload))

    async def get_initial_load(self) -> InitialLoad:
        _, payload = await self._do_api_request("GET", "/users/me/teams")
        teams = tuple(Team.from_dict(item) for item in _as_list(payload))
        return InitialLoad(teams=teams)

    def set_team_id(self, team_id: str) -> None:
        self.team_id = team_id

    async def get_channels(self) -> list[Channel]:
        _, payload = await self._do_api_request(
            "GET",
            f"/users/me/teams/{self._require_team_id()}/channels",
        )
        return [Channel.from_dict(item) for item in _as_list(payload)]

    async def create_channel(self, channel: Channel) -> Channel:
        _, payload = await self._do_api_request(
            "POST",
            "/channels",
            {
                "team_id": channel.team_id or self._require_team_id(),
                "name": channel.name,
                "display_name": channel.display_name,
                "purpose": channel.purpose,
                "type": channel.type or CHANNEL_OPEN,
            },
        )
        return Channel.from_dict(_as_mapping(payload))

    async def create_post(self, *, channel_id: str, message: str, root_id: str = "") -> Post:
        body: dict[str, Any] = {"channel_id": channel_id, "message": message}
        if root_id:
            body["root_id"] = root_id
        _, payload = await self._do_api_request("POST", "/posts", body)
        return Post.from_dict(_as_mapping(payload))

    def _require_team_id(self) -> str:
        if not self.team_id:
            raise AppError(
                "No team selected for this request.",
                id="model.client.team_id.app_error",
            )
        return self.team_id

    async def _do_api_request(
        self,
        method: str,
        path: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> tuple[HttpResponse, Any]:
        headers = {
            "Accept": "application/json",
            "X-Requested-With": "XMLHttpRequest",
        }
        body = None
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"

        url = self.api_url + path
        self._logger.debug("%s %s", method, url)
        response = await self._transport.request(
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=self._timeout_seconds,
        )

        decoded = _decode_json(response)
        if response.status >= 300:
            raise AppError.from_payload(decoded, status_code=response.status)
        return response, decoded


def _decode_json(response: HttpResponse) -> Any:
    if not response.body:
        return None
    try:
        return json.loads(response.body.decode("utf-8", errors="replace"))
    except ValueError as exc:
        if response.status >= 300:
            return None
        raise AppError(
            "Server response was not valid JSON.",
            id=DECODE_ERROR_ID,
            detailed_error=str(exc),
            status_code=response.status,
        ) from exc


def _as_mapping(payload: Any) -> Mapping[str, Any]:
    if isinstance(payload, Mapping):
        return payload
    raise AppError("Server response has invalid structure.", id=DECODE_ERROR_ID)


def _as_list(payload: Any) -> list[Mapping[str, Any]]:
    if not isinstance(payload, list):
        raise AppError("Server response has invalid structure.", id=DECODE_ERROR_ID)
    return [item for item in payload if isinstance(item, Mapping)]


def _lower_headers(headers: Any) -> dict[str, str]:
    if headers is None:
        return {}
    return {str(key).lower(): str(value) for key, value in headers.items()}
