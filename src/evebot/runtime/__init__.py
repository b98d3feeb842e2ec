"""Runtime host and wiring."""

from evebot.runtime.app import RuntimeApp, configure_logging, run_runtime

__all__ = ["RuntimeApp", "configure_logging", "run_runtime"]
