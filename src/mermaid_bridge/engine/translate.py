"""Timeout-bounded adapter around the host's callback-style translation capability.

The host may call ``on_success`` or ``on_failure`` once, twice, from another
thread, or never. Whichever of {success, failure, timer} claims ``SettleOnce``
first decides the result; everything after that is logged and dropped.
Cancellation is soft: the host is never told to stop.
"""

from __future__ import annotations

import asyncio
import re
import threading
from typing import Any, Callable, Mapping

from mermaid_bridge.config import DEFAULT_PARSE_TIMEOUT_MS
from mermaid_bridge.contracts.common import ErrorCode, TextPosition, TranslationError
from mermaid_bridge.observe.log import StructuredLogger

HostTranslate = Callable[[str, Any, Callable[[str], None], Callable[[Any], None]], None]

_POSITION_PATTERNS = (
    ("line", re.compile(r"line\s+(\d+)", re.IGNORECASE)),
    ("position", re.compile(r"position\s+(\d+)", re.IGNORECASE)),
    ("column", re.compile(r"\bat\s+(\d+)", re.IGNORECASE)),
)


class SettleOnce:
    """Single-assignment flag. ``claim()`` returns True for exactly one caller."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def claim(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
            return True


def _field(err: Any, name: str) -> Any:
    if isinstance(err, Mapping):
        return err.get(name)
    return getattr(err, name, None)


def _error_message(err: Any) -> str:
    if isinstance(err, str):
        return err
    message = _field(err, "message")
    if isinstance(message, str) and message:
        return message
    if isinstance(err, BaseException) and str(err):
        return str(err)
    if err is None or isinstance(err, Mapping):
        return "Unknown translation error"
    return str(err)


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def extract_position(err: Any, message: str) -> TextPosition | None:
    """Explicit ``line``/``position``/``column`` fields first, then the message text."""
    explicit = TextPosition(
        line=_as_int(_field(err, "line")),
        position=_as_int(_field(err, "position")),
        column=_as_int(_field(err, "column")),
    ) if not isinstance(err, str) else TextPosition()
    if not explicit.is_empty():
        return explicit

    found: dict[str, int] = {}
    for name, pattern in _POSITION_PATTERNS:
        match = pattern.search(message)
        if match:
            found[name] = int(match.group(1))
    return TextPosition(**found) if found else None


def normalize_translation_error(err: Any) -> TranslationError:
    """Turn whatever the host passed to ``on_failure`` into a ``TranslationError``."""
    if isinstance(err, TranslationError):
        return err
    message = _error_message(err)
    code = _field(err, "code") if not isinstance(err, str) else None
    if isinstance(code, ErrorCode):
        code = code.value
    if not isinstance(code, str) or not code:
        code = ErrorCode.PARSE_ERROR.value
    return TranslationError(
        code,
        message,
        details=err,
        position=extract_position(err, message),
    )


async def translate_with_timeout(
    host_translate: HostTranslate | None,
    payload: str,
    timeout_ms: float = DEFAULT_PARSE_TIMEOUT_MS,
    *,
    options: Any = None,
    log: StructuredLogger | None = None,
) -> str:
    """Run ``host_translate`` and wait at most ``timeout_ms`` for its answer.

    Returns the translated text unchanged, or raises ``TranslationError``
    (``PARSE_ERROR``, ``UNSUPPORTED_TYPE``, ``TIMEOUT``, or a host-supplied code).
    """
    log = log or StructuredLogger()
    if not callable(host_translate):
        raise TranslationError(ErrorCode.PARSE_ERROR.value, "Translation capability is unavailable")

    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()
    settle = SettleOnce()

    def deliver(outcome: Any) -> None:
        timer.cancel()
        if future.done():
            return
        if isinstance(outcome, BaseException):
            future.set_exception(outcome)
        else:
            future.set_result(outcome)

    def settle_with(source: str, outcome: Any) -> None:
        if not settle.claim():
            log.debug(f"Ignoring {source} after translation already settled")
            return
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(deliver, outcome)

    def on_success(text: str) -> None:
        settle_with("success callback", text)

    def on_failure(err: Any) -> None:
        settle_with("failure callback", normalize_translation_error(err))

    def on_timeout() -> None:
        settle_with("timeout", TranslationError.timed_out(timeout_ms))

    timer = loop.call_later(timeout_ms / 1000, on_timeout)
    try:
        host_translate(payload, options, on_success, on_failure)
    except Exception as e:
        on_failure(e)

    try:
        return await future
    finally:
        timer.cancel()
        settle.claim()
