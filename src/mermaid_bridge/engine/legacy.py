"""The older importMermaid / insertMermaid actions and their ``{event, success, error}`` replies."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from mermaid_bridge.config import DEFAULT_CONFIG, Config
from mermaid_bridge.contracts.common import LegacyResponse, TranslationError
from mermaid_bridge.contracts.requests import DEFAULT_POSITION, IMPORT_MERMAID, INSERT_MERMAID, MessageEvent
from mermaid_bridge.engine.dispatcher import respond_legacy
from mermaid_bridge.engine.translate import translate_with_timeout
from mermaid_bridge.observe.log import StructuredLogger
from mermaid_bridge.validation.validators import check_envelope

MISSING_PAYLOAD = "Missing mermaid payload"


def legacy_payload(data: Mapping[str, Any]) -> str | None:
    """``mermaid`` wins over the older ``data`` field; blank counts as missing."""
    payload = data.get("mermaid") or data.get("data") or ""
    if not isinstance(payload, str) or not payload.strip():
        return None
    return payload


def replace_document(host: Any, xml: str) -> None:
    host.set_file_data(xml)


def insert_at_default_position(host: Any, xml: str) -> None:
    x, y = DEFAULT_POSITION
    cells = host.import_at(xml, x, y, True)
    if cells:
        host.select(list(cells))


LEGACY_ACTIONS: dict[str, Callable[[Any, str], None]] = {
    IMPORT_MERMAID: replace_document,
    INSERT_MERMAID: insert_at_default_position,
}


async def handle_legacy_action(
    host: Any,
    event: MessageEvent,
    data: Mapping[str, Any],
    action: str,
    *,
    config: Config = DEFAULT_CONFIG,
    log: StructuredLogger | None = None,
) -> LegacyResponse | None:
    """Translate the payload and apply it with the action's canvas operation."""
    log = log or StructuredLogger.from_config(config)
    apply = LEGACY_ACTIONS[action]

    def reply(success: bool, error: str | None = None) -> LegacyResponse | None:
        if not success:
            log.warn(f"{action} failed: {error}")
        return respond_legacy(event.source, action, success, error, log=log)

    checked = check_envelope(event.origin, data, config)
    if not checked.valid:
        return reply(False, checked.error)

    payload = legacy_payload(data)
    if payload is None:
        return reply(False, MISSING_PAYLOAD)

    try:
        xml = await translate_with_timeout(
            getattr(host, "translate", None), payload, config.parse_timeout_ms, log=log
        )
    except TranslationError as e:
        return reply(False, e.message)

    try:
        apply(host, xml)
        host.set_modified(True)
    except Exception as e:
        return reply(False, str(e) or type(e).__name__)

    return reply(True)
