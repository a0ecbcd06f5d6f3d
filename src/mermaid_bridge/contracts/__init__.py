"""Pydantic models for requests, responses, and stage results."""

from mermaid_bridge.contracts.common import (
    CommandEnvelope,
    ErrorCode,
    ErrorDetail,
    InsertionError,
    InsertionOutcome,
    LegacyResponse,
    ResponseEnvelope,
    TextPosition,
    TranslationError,
    ValidationResult,
)
from mermaid_bridge.contracts.requests import (
    GenerateMermaidRequest,
    InsertOptions,
    MessageEvent,
    ModifyStyleRequest,
    Position,
    StyleOperation,
)

__all__ = [
    "CommandEnvelope",
    "ErrorCode",
    "ErrorDetail",
    "GenerateMermaidRequest",
    "InsertOptions",
    "InsertionError",
    "InsertionOutcome",
    "LegacyResponse",
    "MessageEvent",
    "ModifyStyleRequest",
    "Position",
    "ResponseEnvelope",
    "StyleOperation",
    "TextPosition",
    "TranslationError",
    "ValidationResult",
]
