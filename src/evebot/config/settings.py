"""Typed settings loader for EVE."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Tuple
import configparser
import os


_MISSING = object()
_VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

INI_SECTION = "Application Options"
DEFAULT_CONFIG_PATH = Path("conf/eve.ini")
ENV_PREFIX = "EVE_"

# Keys that may be overridden from the command line or the environment.
OPTION_NAMES = (
    "user_name",
    "user_first",
    "user_last",
    "user_email",
    "user_passwd",
    "team_name",
    "mm_url",
    "channel_log",
    "ws_url",
    "http_timeout",
    "log_level",
)


class SettingsError(ValueError):
    """Raised when settings cannot be loaded or validated."""


@dataclass(frozen=True)
class IdentitySettings:
    user_name: str
    user_email: str
    user_passwd: str = field(repr=False)
    user_first: str = "Eve"
    user_last: str = "Bot"

    def __post_init__(self) -> None:
        user_name = self.user_name.strip()
        if not user_name:
            raise SettingsError("user_name cannot be empty.")

        user_email = self.user_email.strip()
        if "@" not in user_email:
            raise SettingsError("user_email must be an email address.")

        if not self.user_passwd:
            raise SettingsError("user_passwd cannot be empty.")

        object.__setattr__(self, "user_name", user_name)
        object.__setattr__(self, "user_email", user_email)
        object.__setattr__(self, "user_first", self.user_first.strip())
        object.__setattr__(self, "user_last", self.user_last.strip())


@dataclass(frozen=True)
class ServerSettings:
    mm_url: str
    team_name: str
    channel_log: str
    ws_url: Optional[str] = None
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        mm_url = self.mm_url.strip().rstrip("/")
        if not mm_url.startswith(("http://", "https://")):
            raise SettingsError("mm_url must start with http:// or https://.")

        team_name = self.team_name.strip()
        if not team_name:
            raise SettingsError("team_name cannot be empty.")

        channel_log = self.channel_log.strip()
        if not channel_log:
            raise SettingsError("channel_log cannot be empty.")

        ws_url = self.ws_url.strip().rstrip("/") if self.ws_url else None
        if ws_url == "":
            ws_url = None
        if ws_url is not None and not ws_url.startswith(("ws://", "wss://")):
            raise SettingsError("ws_url must start with ws:// or wss://.")

        if self.http_timeout <= 0:
            raise SettingsError("http_timeout must be > 0.")

        object.__setattr__(self, "mm_url", mm_url)
        object.__setattr__(self, "team_name", team_name)
        object.__setattr__(self, "channel_log", channel_log)
        object.__setattr__(self, "ws_url", ws_url)

    @property
    def websocket_url(self) -> str:
        """Websocket base URL, derived from mm_url unless set explicitly."""
        if self.ws_url is not None:
            return self.ws_url
        if self.mm_url.startswith("https://"):
            return "wss://" + self.mm_url[len("https://"):]
        return "ws://" + self.mm_url[len("http://"):]


@dataclass(frozen=True)
class RuntimeSettings:
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        log_level = self.log_level.strip().upper()
        if log_level not in _VALID_LOG_LEVELS:
            raise SettingsError(
                "log_level must be one of: " + ", ".join(sorted(_VALID_LOG_LEVELS))
            )

        object.__setattr__(self, "log_level", log_level)


@dataclass(frozen=True)
class AppSettings:
    identity: IdentitySettings
    server: ServerSettings
    runtime: RuntimeSettings


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    require_config: bool = False,
) -> AppSettings:
    """Load validated settings.

    Precedence, highest first: ``overrides`` (command-line flags), environment
    variables named ``EVE_<OPTION>``, the INI file, built-in defaults. A
    missing config file is only an error when ``require_config`` is set.
    """

    env = dict(environ) if environ is not None else dict(os.environ)
    flags = {key: value for key, value in (overrides or {}).items() if value is not None}
    config = _load_config(config_path, require_config=require_config)

    def read(key: str, caster: Callable[[Any], Any], default: Any = _MISSING) -> Any:
        return _read_value(config, env, flags, key=key, caster=caster, default=default)

    identity = IdentitySettings(
        user_name=read("user_name", _as_str, "eve"),
        user_first=read("user_first", _as_str, "Eve"),
        user_last=read("user_last", _as_str, "Bot"),
        user_email=read("user_email", _as_str, "eve@localhost"),
        user_passwd=read("user_passwd", _as_secret),
    )

    server = ServerSettings(
        mm_url=read("mm_url", _as_str, "http://localhost:8065"),
        team_name=read("team_name", _as_str, "upmedia"),
        channel_log=read("channel_log", _as_str, "eve"),
        ws_url=read("ws_url", _as_optional_str, None),
        http_timeout=read("http_timeout", _as_float, 30.0),
    )

    runtime = RuntimeSettings(
        log_level=read("log_level", _as_str, "INFO"),
    )

    return AppSettings(identity=identity, server=server, runtime=runtime)


def settings_summary(settings: AppSettings) -> dict:
    """Render redacted settings for diagnostics."""

    return {
        "identity": {
            "user_name": settings.identity.user_name,
            "user_first": settings.identity.user_first,
            "user_last": settings.identity.user_last,
            "user_email": settings.identity.user_email,
            "user_passwd": "***",
        },
        "server": {
            "mm_url": settings.server.mm_url,
            "ws_url": settings.server.websocket_url,
            "team_name": settings.server.team_name,
            "channel_log": settings.server.channel_log,
            "http_timeout": settings.server.http_timeout,
        },
        "runtime": {
            "log_level": settings.runtime.log_level,
        },
    }


def _load_config(config_path: Optional[Path], *, require_config: bool) -> Mapping[str, str]:
    if config_path is None:
        return {}

    resolved = config_path.expanduser()
    if not resolved.exists():
        if require_config:
            raise SettingsError(f"Config file does not exist: {resolved}")
        return {}

    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Config file cannot be read: {resolved}") from exc

    # Top-level keys without a section header belong to the default section.
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    try:
        parser.read_string(f"[{INI_SECTION}]\n{text}", source=str(resolved))
    except configparser.Error as exc:
        raise SettingsError(f"Config file is not valid INI: {resolved}") from exc

    loaded = {}
    for key, value in parser.items(INI_SECTION):
        if key not in OPTION_NAMES:
            raise SettingsError(f"Unknown option '{key}' in {resolved}.")
        loaded[key] = _unquote(value)
    return loaded


def _read_value(
    config: Mapping[str, Any],
    environ: Mapping[str, str],
    flags: Mapping[str, Any],
    *,
    key: str,
    caster: Callable[[Any], Any],
    default: Any = _MISSING,
) -> Any:
    raw_value, source = _resolve_raw_value(
        config=config,
        environ=environ,
        flags=flags,
        key=key,
        default=default,
    )

    try:
        return caster(raw_value)
    except SettingsError as exc:
        raise SettingsError(f"Invalid value for {key} from {source}: {exc}") from exc
    except Exception as exc:
        raise SettingsError(f"Invalid value for {key} from {source}: {raw_value!r}") from exc


def _resolve_raw_value(
    *,
    config: Mapping[str, Any],
    environ: Mapping[str, str],
    flags: Mapping[str, Any],
    key: str,
    default: Any,
) -> Tuple[Any, str]:
    if key in flags:
        return flags[key], "command line"

    env_key = ENV_PREFIX + key.upper()
    env_value = environ.get(env_key)
    if env_value not in (None, ""):
        return env_value, "environment"

    if key in config:
        return config[key], "config"

    if default is not _MISSING:
        return default, "default"

    raise SettingsError(
        f"Missing required setting '{key}'. "
        f"Provide it in the config file, via --{key} or via '{env_key}'."
    )


def _unquote(value: str) -> str:
    text = value.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    return text


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise SettingsError("Value cannot be empty.")
        return text

    raise SettingsError("Expected string value.")


def _as_secret(value: Any) -> str:
    if isinstance(value, str) and value:
        return value

    raise SettingsError("Expected non-empty string value.")


def _as_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return text if text else None
    raise SettingsError("Expected string value.")


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise SettingsError("Boolean is not a valid float value.")

    if isinstance(value, (int, float)):
        return float(value)

    if isinstance(value, str):
        return float(value.strip())

    raise SettingsError("Expected float value.")
