"""Response envelope construction and transmission."""

from __future__ import annotations

import asyncio
import inspect
import sys
from typing import Any, Protocol

import orjson

from mermaid_bridge.contracts.common import (
    CommandEnvelope,
    ErrorCode,
    ErrorDetail,
    LegacyResponse,
    Metrics,
    ResponseEnvelope,
)
from mermaid_bridge.contracts.requests import GENERATE_MERMAID
from mermaid_bridge.observe.log import StructuredLogger

LEGACY_TARGET_ORIGIN = "*"

# Strong references to in-flight async sends; the loop only keeps weak ones.
_pending_sends: set[asyncio.Future[Any]] = set()


class ResponseSender(Protocol):
    """Reply channel of the requesting window (``event.source`` in the browser)."""

    def post_message(self, message: str, target_origin: str) -> Any: ...


def build_envelope(
    ok: bool,
    error: str | None = None,
    error_code: Any = None,
    data: dict[str, Any] | None = None,
    *,
    event: str = GENERATE_MERMAID,
) -> ResponseEnvelope:
    code = getattr(error_code, "value", error_code)
    if ok:
        return ResponseEnvelope(event=event, status="ok", data=data)
    return ResponseEnvelope(event=event, status="error", error=error, error_code=code)


def output_json(envelope: ResponseEnvelope | LegacyResponse) -> str:
    """Serialize envelope to compact JSON using orjson. Absent fields are omitted."""
    if isinstance(envelope, LegacyResponse):
        data = envelope.model_dump(mode="json")
    else:
        data = envelope.model_dump(mode="json", by_alias=True, exclude_none=True)
    return orjson.dumps(data).decode()


def _log_transport_failure(log: StructuredLogger, error: BaseException) -> None:
    log.error("Failed to send response", error)


def _transmit(sender: Any, text: str, target_origin: str, log: StructuredLogger) -> bool:
    post = getattr(sender, "post_message", None)
    if not callable(post):
        log.error("Cannot send response: no valid reply channel", {"targetOrigin": target_origin})
        return False
    try:
        result = post(text, target_origin)
    except Exception as e:
        _log_transport_failure(log, e)
        return False

    if inspect.isawaitable(result):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            # No running loop to drive the send.
            if inspect.iscoroutine(result):
                result.close()
            _log_transport_failure(log, e)
            return False
        future = asyncio.ensure_future(result, loop=loop)
        _pending_sends.add(future)

        def _done(fut: asyncio.Future[Any]) -> None:
            _pending_sends.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                _log_transport_failure(log, exc)

        future.add_done_callback(_done)
    return True


def send_envelope(
    sender: Any,
    destination_origin: str | None,
    envelope: ResponseEnvelope,
    *,
    log: StructuredLogger | None = None,
) -> bool:
    """Post an already-built envelope. Returns False when nothing was sent."""
    log = log or StructuredLogger()
    target = destination_origin or LEGACY_TARGET_ORIGIN
    if not _transmit(sender, output_json(envelope), target, log):
        return False
    log.debug("Response sent", {"targetOrigin": target, "envelope": envelope.model_dump(by_alias=True, exclude_none=True)})
    return True


def respond(
    sender: Any,
    destination_origin: str | None,
    ok: bool,
    error: str | None = None,
    error_code: Any = None,
    data: dict[str, Any] | None = None,
    *,
    event: str = GENERATE_MERMAID,
    log: StructuredLogger | None = None,
) -> ResponseEnvelope | None:
    """Build one envelope and post it to ``destination_origin``.

    Returns the envelope when it was handed to the sender, None otherwise.
    Transport failures never propagate.
    """
    envelope = build_envelope(ok, error, error_code, data, event=event)
    if not send_envelope(sender, destination_origin, envelope, log=log):
        return None
    return envelope


def respond_legacy(
    sender: Any,
    event: str,
    success: bool,
    error: str | None = None,
    *,
    log: StructuredLogger | None = None,
) -> LegacyResponse | None:
    """Send the ``{event, success, error}`` reply used by the older actions, to ``'*'``."""
    log = log or StructuredLogger()
    response = LegacyResponse(event=event, success=success, error=error)
    if not _transmit(sender, output_json(response), LEGACY_TARGET_ORIGIN, log):
        return None
    return response


# ---------------------------------------------------------------------------
# CLI command envelopes
# ---------------------------------------------------------------------------

# Exit code mapping
EXIT_CODES = {
    "success": 0,
    "validation": 10,
    "io": 50,
    "internal": 90,
}

VALIDATION_CODES = frozenset(
    {
        ErrorCode.INVALID_FORMAT.value,
        ErrorCode.EMPTY_MERMAID.value,
        ErrorCode.ORIGIN_DENIED.value,
        ErrorCode.SIZE_EXCEEDED.value,
        ErrorCode.XSS_DETECTED.value,
        "ERR_CONFIG_INVALID",
        "ERR_USAGE",
    }
)


def success_envelope(command: str, result: Any, *, duration_ms: float = 0) -> CommandEnvelope:
    return CommandEnvelope(ok=True, command=command, result=result, metrics=Metrics(duration_ms=duration_ms))


def error_envelope(
    command: str,
    code: str,
    message: str,
    *,
    result: Any = None,
    details: dict | None = None,
    duration_ms: float = 0,
) -> CommandEnvelope:
    return CommandEnvelope(
        ok=False,
        command=command,
        result=result,
        errors=[ErrorDetail(code=code, message=message, details=details)],
        metrics=Metrics(duration_ms=duration_ms),
    )


def print_response(envelope: CommandEnvelope) -> None:
    """Print a command envelope as indented JSON to stdout."""
    data = envelope.model_dump(mode="json", by_alias=True)
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode() + "\n")


def exit_code_for(envelope: CommandEnvelope) -> int:
    """Determine exit code from envelope errors."""
    if envelope.ok:
        return EXIT_CODES["success"]
    if not envelope.errors:
        return EXIT_CODES["internal"]
    code = envelope.errors[0].code.upper()
    if code in VALIDATION_CODES:
        return EXIT_CODES["validation"]
    if code.startswith("ERR_IO") or code.endswith("NOT_FOUND"):
        return EXIT_CODES["io"]
    return EXIT_CODES["internal"]
