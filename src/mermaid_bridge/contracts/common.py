"""Common Pydantic models: response envelope, error codes, validation and insertion results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(str, Enum):
    """Stable machine-readable error codes sent back to the embedding page."""

    # validation-time
    INVALID_FORMAT = "INVALID_FORMAT"
    EMPTY_MERMAID = "EMPTY_MERMAID"
    ORIGIN_DENIED = "ORIGIN_DENIED"
    SIZE_EXCEEDED = "SIZE_EXCEEDED"
    XSS_DETECTED = "XSS_DETECTED"
    # translation-time
    PARSE_ERROR = "PARSE_ERROR"
    UNSUPPORTED_TYPE = "UNSUPPORTED_TYPE"
    TIMEOUT = "TIMEOUT"
    # insertion-time
    INSERT_FAILED = "INSERT_FAILED"
    # style modification
    INVALID_TARGET = "INVALID_TARGET"
    INVALID_VALUE = "INVALID_VALUE"
    UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"
    NO_TARGET_CELLS = "NO_TARGET_CELLS"
    STYLE_FAILED = "STYLE_FAILED"


class TextPosition(BaseModel):
    """Location of a translation error inside the payload."""

    line: int | None = None
    column: int | None = None
    position: int | None = None

    def is_empty(self) -> bool:
        return self.line is None and self.column is None and self.position is None


class TranslationError(Exception):
    """Raised when the host translation capability fails or times out."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: Any = None,
        position: TextPosition | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.position = position
        self.timeout = timeout

    @classmethod
    def timed_out(cls, timeout_ms: float) -> "TranslationError":
        shown = int(timeout_ms) if float(timeout_ms).is_integer() else timeout_ms
        return cls(
            ErrorCode.TIMEOUT.value,
            f"translation timed out after {shown}ms",
            timeout=timeout_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.position is not None:
            data["position"] = self.position.model_dump(exclude_none=True)
        if self.timeout is not None:
            data["timeout"] = self.timeout
        return data


class InsertionError(Exception):
    """Raised when the canvas transaction cannot complete."""

    def __init__(self, message: str, *, original_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.code = ErrorCode.INSERT_FAILED.value
        self.message = message
        self.original_error = original_error


class ValidationResult(BaseModel):
    """Outcome of validating one inbound request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    valid: bool = True
    error: str | None = None
    error_code: ErrorCode | None = Field(default=None, serialization_alias="errorCode")

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, code: ErrorCode, message: str) -> "ValidationResult":
        return cls(valid=False, error=message, error_code=code)


class InsertionOutcome(BaseModel):
    """Successful result of inserting a translated fragment into the canvas."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: Literal[True] = True
    cells: list[Any] = Field(default_factory=list)
    cell_count: int = 0


class ResponseEnvelope(BaseModel):
    """Standard response envelope returned for every handled request."""

    model_config = ConfigDict(populate_by_name=True)

    event: str = "generateMermaid"
    status: Literal["ok", "error"] = "ok"
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = Field(default=None, serialization_alias="errorCode")

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class LegacyResponse(BaseModel):
    """Response format kept for the pre-existing importMermaid/insertMermaid actions."""

    event: str
    success: bool
    error: str | None = None


class ErrorDetail(BaseModel):
    """Structured error in a CLI command envelope."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class Metrics(BaseModel):
    """Execution metrics."""

    duration_ms: float = 0


class CommandEnvelope(BaseModel):
    """Envelope printed by every CLI command."""

    ok: bool = True
    command: str = ""
    result: Any = None
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)
