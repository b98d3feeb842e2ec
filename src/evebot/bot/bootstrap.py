"""One-time startup sequence: server, identity, team and logging channel."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, NoReturn, Optional, Protocol
import logging

from evebot.bot.sender import LoggingChannelSender
from evebot.config.settings import AppSettings
from evebot.mattermost.errors import AppError, log_app_error
from evebot.mattermost.models import CHANNEL_OPEN, Channel, InitialLoad, Post, Team, User
from evebot.mattermost.websocket import EventStream


ROBOT_NAME = "EVE"
STARTED_MESSAGE = f"_{ROBOT_NAME} has **started** running_"
STOPPED_MESSAGE = f"_{ROBOT_NAME} has **stopped** running_"

CHANNEL_DISPLAY_NAME = "Debugging For Sample Bot"
CHANNEL_PURPOSE = "This is used as a test channel for logging bot debug messages"


class BootstrapError(RuntimeError):
    """Raised when a startup step fails and the bot cannot run."""


class ChatClient(Protocol):
    auth_token: Optional[str]

    async def ping(self) -> dict[str, str]:
        ...

    async def login(self, login_id: str, password: str) -> User:
        ...

    async def update_user(self, user: User) -> User:
        ...

    async def get_initial_load(self) -> InitialLoad:
        ...

    def set_team_id(self, team_id: str) -> None:
        ...

    async def get_channels(self) -> list[Channel]:
        ...

    async def create_channel(self, channel: Channel) -> Channel:
        ...

    async def create_post(self, *, channel_id: str, message: str, root_id: str = "") -> Post:
        ...


StreamFactory = Callable[[str], EventStream]


@dataclass(frozen=True)
class BotContext:
    """State established by bootstrap; read-only afterwards."""

    client: ChatClient
    user: User
    team: Team
    channel: Optional[Channel]

    @property
    def channel_id(self) -> Optional[str]:
        return self.channel.id if self.channel is not None else None


class BootstrapSequencer:
    """Runs the startup steps in order, failing fast on fatal errors."""

    def __init__(
        self,
        *,
        client: ChatClient,
        settings: AppSettings,
        stream_factory: Optional[StreamFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._stream_factory = stream_factory or self._default_stream_factory
        self._logger = logger or logging.getLogger("evebot.bootstrap")

    async def run(self) -> BotContext:
        await self.check_server()
        user = await self.login()
        user = await self.update_user_if_needed(user)
        initial_load = await self.load_initial_data()
        team = self.find_team(initial_load)

        # Team-scoped requests from here on use this team.
        self._client.set_team_id(team.id)

        channel = await self.ensure_logging_channel(team)
        context = BotContext(client=self._client, user=user, team=team, channel=channel)

        sender = LoggingChannelSender(client=self._client, channel=channel, logger=self._logger)
        await sender.send_message(STARTED_MESSAGE)
        return context

    async def check_server(self) -> None:
        try:
            props = await self._client.ping()
        except AppError as exc:
            self._fail(
                "There was a problem pinging the Mattermost server. Are you sure it's running?",
                exc,
            )
        self._logger.info("Server detected and is running version %s", props.get("version", "unknown"))

    async def login(self) -> User:
        identity = self._settings.identity
        try:
            user = await self._client.login(identity.user_email, identity.user_passwd)
        except AppError as exc:
            self._fail("There was a problem logging into the Mattermost server.", exc)
        self._logger.info("Logged in as %s (id=%s)", user.username, user.id)
        return user

    async def update_user_if_needed(self, user: User) -> User:
        identity = self._settings.identity
        if (
            user.first_name == identity.user_first
            and user.last_name == identity.user_last
            and user.username == identity.user_name
        ):
            return user

        wanted = replace(
            user,
            first_name=identity.user_first,
            last_name=identity.user_last,
            username=identity.user_name,
        )
        try:
            updated = await self._client.update_user(wanted)
        except AppError as exc:
            self._fail("We failed to update the bot user.", exc)
        self._logger.info(
            "Looks like this might be the first run so we've updated the bot's account settings"
        )
        return updated

    async def load_initial_data(self) -> InitialLoad:
        try:
            return await self._client.get_initial_load()
        except AppError as exc:
            self._fail("We failed to get the initial load.", exc)

    def find_team(self, initial_load: InitialLoad) -> Team:
        team_name = self._settings.server.team_name
        team = initial_load.find_team(team_name)
        if team is None:
            self._logger.error("We do not appear to be a member of the team '%s'", team_name)
            raise BootstrapError(f"Not a member of team '{team_name}'.")
        return team

    async def ensure_logging_channel(self, team: Team) -> Optional[Channel]:
        channel_name = self._settings.server.channel_log
        try:
            channels = await self._client.get_channels()
        except AppError as exc:
            log_app_error(self._logger, "We failed to get the channels", exc)
        else:
            for channel in channels:
                if channel.name == channel_name:
                    self._logger.info("Using logging channel %s (id=%s)", channel.name, channel.id)
                    return channel

        wanted = Channel(
            id="",
            name=channel_name,
            team_id=team.id,
            display_name=CHANNEL_DISPLAY_NAME,
            purpose=CHANNEL_PURPOSE,
            type=CHANNEL_OPEN,
        )
        try:
            created = await self._client.create_channel(wanted)
        except AppError as exc:
            # Non-fatal: the bot keeps running without a logging channel.
            log_app_error(self._logger, f"We failed to create the channel {channel_name}", exc)
            return None

        self._logger.info(
            "Looks like this might be the first run so we've created the channel %s",
            channel_name,
        )
        return created

    async def open_event_stream(self) -> Optional[EventStream]:
        """Connect the event stream; failures are logged and yield None."""
        token = self._client.auth_token
        if not token:
            self._logger.error("We failed to connect to the web socket: not logged in")
            return None

        stream = self._stream_factory(token)
        try:
            await stream.connect()
        except AppError as exc:
            log_app_error(self._logger, "We failed to connect to the web socket", exc)
            return None
        return stream

    def _default_stream_factory(self, auth_token: str) -> EventStream:
        return EventStream(url=self._settings.server.websocket_url, auth_token=auth_token)

    def _fail(self, summary: str, error: AppError) -> NoReturn:
        log_app_error(self._logger, summary, error)
        raise BootstrapError(summary) from error
