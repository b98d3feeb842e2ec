"""Mattermost API error type and diagnostics."""

from __future__ import annotations

from typing import Any, Mapping, Optional
import logging


CONNECTING_ERROR_ID = "model.client.connecting.app_error"
DECODE_ERROR_ID = "model.client.decode_json.app_error"
UNKNOWN_ERROR_ID = "model.client.unknown.app_error"


class AppError(RuntimeError):
    """Error reported by the Mattermost server or raised while talking to it."""

    def __init__(
        self,
        message: str,
        *,
        id: str = UNKNOWN_ERROR_ID,
        detailed_error: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.id = id
        self.detailed_error = detailed_error
        self.status_code = status_code

    @classmethod
    def from_payload(cls, payload: Any, *, status_code: int) -> "AppError":
        if not isinstance(payload, Mapping):
            return cls(f"Unexpected HTTP status {status_code}.", status_code=status_code)

        message = payload.get("message")
        error_id = payload.get("id")
        detailed_error = payload.get("detailed_error")
        return cls(
            message if isinstance(message, str) and message else f"HTTP {status_code}",
            id=error_id if isinstance(error_id, str) and error_id else UNKNOWN_ERROR_ID,
            detailed_error=detailed_error if isinstance(detailed_error, str) else "",
            status_code=status_code,
        )


def log_app_error(logger: logging.Logger, summary: str, error: AppError) -> None:
    """Log a failure summary followed by the server's error details."""
    logger.error(
        "%s\n\tError Details:\n\t\t%s\n\t\t%s\n\t\t%s",
        summary,
        error.message,
        error.id,
        error.detailed_error,
    )
