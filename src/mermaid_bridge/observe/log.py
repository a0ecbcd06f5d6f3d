"""Structured logger: ``[timestamp] [LEVEL] message`` lines with a pass-through context.

Records go to the stdlib ``logging`` tree under ``mermaid_bridge``. The context
object is attached to the ``LogRecord`` as ``record.context`` exactly as given
(exceptions, ``None``, nested dicts), never stringified into the line.

Level gating happens here, not in ``logging``: every non-debug record is handed
to the logger's handlers regardless of the logger's level. With no handler
configured at all, stdlib's last-resort handler still prints only warnings and
above, so embedders should attach one (``configure_stderr_logging`` does this
for the CLI). ``log`` always returns the formatted line.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

LOGGER_NAME = "mermaid_bridge"

LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_UNSET: Any = object()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_line(level: str, message: str) -> str:
    return f"[{_timestamp()}] [{level.upper()}] {message}"


class StructuredLogger:
    """Level-gated logger. ``debug`` only emits when ``debug_mode`` is on."""

    def __init__(self, debug_mode: bool = False, logger: logging.Logger | None = None) -> None:
        self.debug_mode = debug_mode
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    @classmethod
    def from_config(cls, config: Any, logger: logging.Logger | None = None) -> "StructuredLogger":
        return cls(debug_mode=bool(getattr(config, "debug_mode", False)), logger=logger)

    def log(self, level: str, message: str, context: Any = _UNSET) -> str | None:
        """Emit one line. Returns the formatted line, or None when suppressed."""
        key = level.lower() if isinstance(level, str) else level
        if key not in LEVELS:
            return self.log("error", f"Invalid log level: {level}")
        if key == "debug" and not self.debug_mode:
            return None

        line = format_line(key, message)
        has_context = context is not _UNSET
        # Bypass the stdlib level check; gating is done above.
        record = self._logger.makeRecord(
            self._logger.name,
            LEVELS[key],
            "(structured)",
            0,
            "%s",
            (line,),
            None,
            extra={"context": context if has_context else None, "has_context": has_context},
        )
        self._logger.handle(record)
        return line

    def error(self, message: str, context: Any = _UNSET) -> str | None:
        return self.log("error", message, context)

    def warn(self, message: str, context: Any = _UNSET) -> str | None:
        return self.log("warn", message, context)

    def info(self, message: str, context: Any = _UNSET) -> str | None:
        return self.log("info", message, context)

    def debug(self, message: str, context: Any = _UNSET) -> str | None:
        return self.log("debug", message, context)


class ContextFormatter(logging.Formatter):
    """Formatter for CLI output: appends ``repr(context)`` after the line when present."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if getattr(record, "has_context", False):
            text = f"{text} {record.context!r}"
        return text


def configure_stderr_logging(level: int = logging.DEBUG) -> logging.Handler:
    """Attach a stderr handler to the package logger. Used by the CLI."""
    handler = logging.StreamHandler()
    handler.setFormatter(ContextFormatter("%(message)s"))
    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return handler
