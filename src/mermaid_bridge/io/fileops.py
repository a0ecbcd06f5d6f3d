"""File operations: BOM-tolerant text and JSON reading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


def read_text_safe(path: str | Path) -> str:
    """Read a text file with UTF-8 BOM tolerance.

    Uses ``utf-8-sig`` encoding which silently strips a leading BOM when
    present, while reading plain UTF-8 correctly.
    """
    return Path(path).read_text(encoding="utf-8-sig")


def read_json_safe(path: str | Path) -> Any:
    """Read and decode a JSON file. Raises ``orjson.JSONDecodeError`` on bad input."""
    return orjson.loads(read_text_safe(path))
