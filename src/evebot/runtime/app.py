"""Runtime lifecycle wiring for EVE."""

from __future__ import annotations

from typing import Optional, Protocol
import asyncio
import logging
import signal

from evebot.config.settings import AppSettings


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RuntimeService(Protocol):
    """Small lifecycle contract used by the runtime host."""

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class RuntimeApp:
    """Application host: start services, wait for a stop signal, stop them in reverse."""

    def __init__(
        self,
        settings: AppSettings,
        services: Optional[list[RuntimeService]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger("evebot.runtime")
        self._services = services or []
        self._started: list[RuntimeService] = []

    async def start(self) -> None:
        for service in self._services:
            if service in self._started:
                continue
            await service.start()
            self._started.append(service)

    async def stop(self) -> None:
        while self._started:
            service = self._started.pop()
            try:
                await service.stop()
            except Exception:
                self.logger.exception("Service shutdown failed.")

    async def run(self, shutdown_event: Optional[asyncio.Event] = None) -> None:
        stop_event = shutdown_event or asyncio.Event()
        added_signals = self._install_signal_handlers(stop_event)

        try:
            await self.start()
            self.logger.info(
                "Runtime started for '%s' (team=%s channel=%s).",
                self.settings.identity.user_name,
                self.settings.server.team_name,
                self.settings.server.channel_log,
            )
            await stop_event.wait()
            self.logger.info("Runtime shutdown requested.")
        finally:
            await self.stop()
            self._remove_signal_handlers(added_signals)

    @staticmethod
    def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        added = []

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
                added.append(sig)
            except (NotImplementedError, RuntimeError):
                # Signal handlers may be unsupported on some environments.
                break

        return added

    @staticmethod
    def _remove_signal_handlers(signals_to_remove: list[signal.Signals]) -> None:
        loop = asyncio.get_running_loop()

        for sig in signals_to_remove:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                break


def configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


async def run_runtime(settings: AppSettings, shutdown_event: Optional[asyncio.Event] = None) -> None:
    from evebot.runtime.factory import create_bot_service

    logger = logging.getLogger("evebot.runtime")
    service = create_bot_service(settings, logger=logger)

    app = RuntimeApp(settings=settings, services=[service], logger=logger)
    await app.run(shutdown_event=shutdown_event)
