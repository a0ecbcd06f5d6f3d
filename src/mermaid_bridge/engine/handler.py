"""generateMermaid orchestration: validate, translate, insert, respond.

One ``GenerateMermaidPipeline`` per inbound request. Stage failures are
raised as exceptions inside the stage and turned into exactly one error
envelope at this seam; nothing escapes to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import ValidationError

from mermaid_bridge.config import DEFAULT_CONFIG, Config
from mermaid_bridge.contracts.common import (
    ErrorCode,
    InsertionError,
    InsertionOutcome,
    ResponseEnvelope,
    TranslationError,
)
from mermaid_bridge.contracts.requests import GenerateMermaidRequest, MessageEvent
from mermaid_bridge.engine.canvas import insert_diagram_async
from mermaid_bridge.engine.dispatcher import build_envelope, send_envelope
from mermaid_bridge.engine.translate import translate_with_timeout
from mermaid_bridge.observe.events import measure_performance, measure_performance_async
from mermaid_bridge.observe.log import StructuredLogger
from mermaid_bridge.validation.validators import validate_message


class Stage(str, Enum):
    RECEIVED = "received"
    VALIDATE = "validate"
    TRANSLATE = "translate"
    INSERT = "insert"
    RESPOND_OK = "respond_ok"
    RESPOND_ERROR = "respond_error"


class GenerateMermaidPipeline:
    """State machine for a single generateMermaid request."""

    def __init__(
        self,
        host: Any,
        event: MessageEvent,
        data: Any,
        *,
        config: Config = DEFAULT_CONFIG,
        log: StructuredLogger | None = None,
    ) -> None:
        self.host = host
        self.event = event
        self.data = data
        self.config = config
        self.log = log or StructuredLogger.from_config(config)
        self.stage = Stage.RECEIVED
        self.envelope: ResponseEnvelope | None = None

    @property
    def responded(self) -> bool:
        return self.envelope is not None

    def _respond(self, ok: bool, error: str | None = None, error_code: Any = None, data: dict | None = None) -> ResponseEnvelope:
        if self.envelope is not None:
            self.log.warn("Response already sent, dropping duplicate", {"stage": self.stage.value})
            return self.envelope
        self.stage = Stage.RESPOND_OK if ok else Stage.RESPOND_ERROR
        self.envelope = build_envelope(ok, error, error_code, data)
        send_envelope(self.event.source, self.event.origin, self.envelope, log=self.log)
        return self.envelope

    def _fail(self, code: Any, message: str, context: Any = None) -> ResponseEnvelope:
        code_text = getattr(code, "value", code)
        self.log.error(f"generateMermaid failed at {self.stage.value}: {message}", context)
        return self._respond(False, message, code_text)

    async def run(self) -> ResponseEnvelope:
        try:
            return await self._run()
        except Exception as e:
            # Anything not converted by a stage still produces one envelope.
            if self.responded:
                self.log.error("Unexpected error after response was sent", e)
                return self.envelope  # type: ignore[return-value]
            return self._fail(ErrorCode.INSERT_FAILED, f"Unexpected error: {e}", e)

    async def _run(self) -> ResponseEnvelope:
        self.log.debug("generateMermaid received", {"origin": self.event.origin})

        self.stage = Stage.VALIDATE
        result = measure_performance(
            self.log, "validate", validate_message, self.event.origin, self.data, self.config
        )
        if not result.valid:
            return self._fail(result.error_code, result.error or "Invalid message", result.model_dump(by_alias=True))
        try:
            request = GenerateMermaidRequest.from_message(dict(self.data))
        except (KeyError, ValidationError) as e:
            return self._fail(ErrorCode.INVALID_FORMAT, f"Invalid generateMermaid request: {e}", e)

        self.stage = Stage.TRANSLATE
        try:
            xml = await measure_performance_async(
                self.log,
                "translate",
                translate_with_timeout,
                getattr(self.host, "translate", None),
                request.mermaid,
                self.config.parse_timeout_ms,
                log=self.log,
            )
        except TranslationError as e:
            return self._fail(e.code, e.message, e.to_dict())

        self.stage = Stage.INSERT
        try:
            outcome: InsertionOutcome = await measure_performance_async(
                self.log, "insert", insert_diagram_async, self.host, xml, request.options, log=self.log
            )
        except InsertionError as e:
            return self._fail(e.code, e.message, e.original_error)

        self.log.info(f"Inserted Mermaid diagram ({outcome.cell_count} cells)")
        return self._respond(True, data={"cellCount": outcome.cell_count})


async def handle_generate_mermaid(
    host: Any,
    event: MessageEvent,
    data: Any,
    *,
    config: Config = DEFAULT_CONFIG,
    log: StructuredLogger | None = None,
) -> ResponseEnvelope:
    """Process one generateMermaid message and return the envelope sent back."""
    pipeline = GenerateMermaidPipeline(host, event, data, config=config, log=log)
    return await pipeline.run()
