"""Inbound request models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

GENERATE_MERMAID = "generateMermaid"
MODIFY_STYLE = "modifyStyle"
IMPORT_MERMAID = "importMermaid"
INSERT_MERMAID = "insertMermaid"

DEFAULT_POSITION = (20, 20)


class Position(BaseModel):
    """Canvas coordinates for the top-left corner of an inserted diagram."""

    x: int
    y: int


class InsertOptions(BaseModel):
    """Optional insertion parameters carried by a generateMermaid request."""

    model_config = ConfigDict(extra="ignore")

    position: Position | None = None
    scale: float | None = None
    select: bool | None = None
    center: bool | None = None


class GenerateMermaidRequest(BaseModel):
    """A validated generateMermaid request."""

    action: Literal["generateMermaid"] = GENERATE_MERMAID
    mermaid: str
    options: InsertOptions = Field(default_factory=InsertOptions)

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> "GenerateMermaidRequest":
        options = data.get("options") or {}
        return cls(mermaid=data["mermaid"], options=InsertOptions.model_validate(options))


StyleTarget = Literal["selected", "edges", "vertices", "all"]
STYLE_TARGETS: tuple[str, ...] = ("selected", "edges", "vertices", "all")


class StyleOperation(BaseModel):
    """Relative change to a style property, e.g. ``{"op": "increase", "value": 2}``."""

    op: str
    value: Any = None


class ModifyStyleRequest(BaseModel):
    """A validated modifyStyle request."""

    action: Literal["modifyStyle"] = MODIFY_STYLE
    target: StyleTarget
    styles: dict[str, Any] = Field(default_factory=dict)
    operations: dict[str, StyleOperation] = Field(default_factory=dict)


@dataclass
class MessageEvent:
    """One inbound cross-document message: payload, sender origin, reply channel."""

    data: Any
    origin: str | None = None
    source: Any = None
