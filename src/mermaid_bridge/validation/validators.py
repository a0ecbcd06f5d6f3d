"""Validation of inbound generateMermaid messages.

Checks run in a fixed order and the first failure wins:
size, origin, format, injection pattern, emptiness.
"""

from __future__ import annotations

from typing import Any, Mapping

import orjson
from pydantic import ValidationError

from mermaid_bridge.config import DEFAULT_CONFIG, Config
from mermaid_bridge.contracts.common import ErrorCode, ValidationResult
from mermaid_bridge.contracts.requests import GENERATE_MERMAID, InsertOptions
from mermaid_bridge.validation.policy import find_injection, origin_allowed


def canonical_size(message: Any) -> int:
    """Length in characters of the compact JSON text of ``message``."""
    text = orjson.dumps(message, default=str, option=orjson.OPT_NON_STR_KEYS)
    return len(text.decode())


def check_envelope(origin: str | None, message: Any, config: Config = DEFAULT_CONFIG) -> ValidationResult:
    """Size and origin checks shared by every action."""
    try:
        size = canonical_size(message)
    except orjson.JSONEncodeError as e:
        return ValidationResult.fail(ErrorCode.INVALID_FORMAT, f"Message cannot be serialized: {e}")
    if size > config.max_message_size:
        return ValidationResult.fail(
            ErrorCode.SIZE_EXCEEDED,
            f"Message size {size} exceeds limit of {config.max_message_size}",
        )

    if not origin_allowed(origin, config.allowed_origins):
        return ValidationResult.fail(ErrorCode.ORIGIN_DENIED, f"Origin not allowed: {origin}")

    return ValidationResult.ok()


def validate_message(origin: str | None, message: Any, config: Config = DEFAULT_CONFIG) -> ValidationResult:
    """Validate one inbound message from ``origin``.

    Messages whose ``action`` is a string other than ``generateMermaid`` pass
    through as valid: they are not this handler's concern.
    """
    result = check_envelope(origin, message, config)
    if not result.valid:
        return result

    if not isinstance(message, Mapping):
        return ValidationResult.fail(ErrorCode.INVALID_FORMAT, "Message must be an object")
    action = message.get("action")
    if not isinstance(action, str):
        return ValidationResult.fail(ErrorCode.INVALID_FORMAT, "Missing or invalid 'action' field")
    if action != GENERATE_MERMAID:
        return ValidationResult.ok()

    payload = message.get("mermaid")
    if not isinstance(payload, str):
        return ValidationResult.fail(ErrorCode.INVALID_FORMAT, "Missing or invalid 'mermaid' field")

    options = message.get("options")
    if options is not None:
        if not isinstance(options, Mapping):
            return ValidationResult.fail(ErrorCode.INVALID_FORMAT, "'options' must be an object")
        try:
            InsertOptions.model_validate(dict(options))
        except ValidationError as e:
            return ValidationResult.fail(ErrorCode.INVALID_FORMAT, f"Invalid 'options': {e.errors()[0]['msg']}")

    violation = find_injection(payload)
    if violation is not None:
        return ValidationResult.fail(
            ErrorCode.XSS_DETECTED,
            f"Potentially malicious content detected ({violation})",
        )

    if not payload.strip():
        return ValidationResult.fail(ErrorCode.EMPTY_MERMAID, "Mermaid text is empty")

    return ValidationResult.ok()
