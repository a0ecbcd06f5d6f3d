"""Security policy: origin allow-list and script-injection patterns."""

from __future__ import annotations

import re
from typing import Iterable

from mermaid_bridge.config import WILDCARD_ORIGIN

# Checked in order; the first match names the violation.
INJECTION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("script tag", re.compile(r"<script\b", re.IGNORECASE)),
    ("javascript: scheme", re.compile(r"javascript\s*:", re.IGNORECASE)),
    ("inline event handler", re.compile(r"\bon\w+\s*=", re.IGNORECASE)),
    ("iframe tag", re.compile(r"<iframe\b", re.IGNORECASE)),
)


def find_injection(text: str) -> str | None:
    """Return the name of the first injection pattern found in ``text``, or None."""
    for name, pattern in INJECTION_PATTERNS:
        if pattern.search(text):
            return name
    return None


def origin_allowed(origin: str | None, allowed_origins: Iterable[str]) -> bool:
    """Exact, case-sensitive match of ``origin`` against the allow-list.

    A lone ``'*'`` entry accepts everything, including a missing origin.
    """
    allowed = tuple(allowed_origins)
    if allowed == (WILDCARD_ORIGIN,):
        return True
    if not isinstance(origin, str) or not origin:
        return False
    return origin in allowed
