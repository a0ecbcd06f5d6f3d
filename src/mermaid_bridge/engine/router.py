"""Inbound message routing by ``action``."""

from __future__ import annotations

from typing import Any, Mapping

import orjson

from mermaid_bridge.config import DEFAULT_CONFIG, Config
from mermaid_bridge.contracts.common import LegacyResponse, ResponseEnvelope
from mermaid_bridge.contracts.requests import (
    GENERATE_MERMAID,
    IMPORT_MERMAID,
    INSERT_MERMAID,
    MODIFY_STYLE,
    MessageEvent,
)
from mermaid_bridge.engine.handler import handle_generate_mermaid
from mermaid_bridge.engine.legacy import handle_legacy_action
from mermaid_bridge.engine.styles import handle_modify_style
from mermaid_bridge.observe.log import StructuredLogger

__all__ = ["MessageEvent", "MessageRouter", "decode_message"]

_NOT_JSON: Any = object()


def decode_message(data: Any) -> Any:
    """Parse JSON text; other values pass through. Returns ``_NOT_JSON`` for bad text."""
    if isinstance(data, (str, bytes, bytearray)):
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError:
            return _NOT_JSON
    return data


class MessageRouter:
    """Dispatches each inbound message to the handler for its action."""

    def __init__(self, host: Any, config: Config = DEFAULT_CONFIG, log: StructuredLogger | None = None) -> None:
        self.host = host
        self.config = config
        self.log = log or StructuredLogger.from_config(config)

    async def handle_message(self, event: MessageEvent) -> ResponseEnvelope | LegacyResponse | None:
        data = decode_message(event.data)
        if data is _NOT_JSON:
            self.log.debug("Ignoring message that is not valid JSON")
            return None
        if not isinstance(data, Mapping) or data.get("action") is None:
            return None

        action = data["action"]
        try:
            if action == GENERATE_MERMAID:
                return await handle_generate_mermaid(
                    self.host, event, data, config=self.config, log=self.log
                )
            if action == MODIFY_STYLE:
                return handle_modify_style(self.host, event, data, config=self.config, log=self.log)
            if action in (IMPORT_MERMAID, INSERT_MERMAID):
                return await handle_legacy_action(
                    self.host, event, data, action, config=self.config, log=self.log
                )
        except Exception as e:
            self.log.error(f"Unhandled error while processing {action}", e)
            return None

        self.log.debug(f"Ignoring unknown action: {action}")
        return None
