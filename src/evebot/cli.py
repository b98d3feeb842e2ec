"""CLI for the EVE bot."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence
import argparse
import asyncio
import json
import logging
import sys

from evebot import __version__
from evebot.bot.bootstrap import BootstrapError
from evebot.config.settings import (
    DEFAULT_CONFIG_PATH,
    OPTION_NAMES,
    SettingsError,
    load_settings,
    settings_summary,
)
from evebot.runtime.app import configure_logging, run_runtime


_OPTION_HELP = {
    "user_name": "user name",
    "user_first": "user first name",
    "user_last": "user last name",
    "user_email": "user email",
    "user_passwd": "user password",
    "team_name": "team name",
    "mm_url": "mattermost http service url",
    "channel_log": "channel log name",
    "ws_url": "mattermost websocket url (derived from --mm_url by default)",
    "http_timeout": "HTTP request timeout in seconds",
    "log_level": "log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="evebot", description="EVE Mattermost bot")
    parser.add_argument(
        "--config",
        type=Path,
        help=f"INI config file (default: {DEFAULT_CONFIG_PATH}). Flags override file values.",
    )
    for name in OPTION_NAMES:
        parser.add_argument(f"--{name}", dest=name, default=None, help=_OPTION_HELP[name])
    parser.add_argument(
        "--check",
        action="store_true",
        help="Validate settings and print a redacted summary.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"evebot {__version__}",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # --help/--version exit 0; usage errors are configuration failures.
        return 0 if exc.code in (0, None) else 1

    overrides = {name: getattr(args, name) for name in OPTION_NAMES}
    try:
        settings = load_settings(
            config_path=args.config or DEFAULT_CONFIG_PATH,
            overrides=overrides,
            require_config=args.config is not None,
        )
    except SettingsError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    if args.check:
        print(json.dumps(settings_summary(settings), indent=2, sort_keys=True))
        return 0

    configure_logging(settings.runtime.log_level)
    try:
        asyncio.run(run_runtime(settings=settings))
    except BootstrapError as exc:
        logging.getLogger("evebot").error("Startup failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        # Interrupted before the runtime installed its signal handlers.
        return 130

    return 0
