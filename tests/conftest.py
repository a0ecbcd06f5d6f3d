"""Shared test fixtures: a recording fake editor host and a recording reply channel."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from typing import Any, Callable

import pytest

from mermaid_bridge.config import Config
from mermaid_bridge.contracts.requests import MessageEvent
from mermaid_bridge.observe.log import StructuredLogger

SAMPLE_XML = '<mxGraphModel><root><mxCell id="0"/><mxCell id="1" parent="0"/></root></mxGraphModel>'
FLOWCHART = "flowchart TD\n    A --> B"
ORIGIN = "https://app.example"


# ---------------------------------------------------------------------------
# Translation behaviours
# ---------------------------------------------------------------------------
def answer_with(xml: str = SAMPLE_XML) -> Callable[..., None]:
    def translate(payload, options, on_success, on_failure):
        on_success(xml)

    return translate


def fail_with(err: Any) -> Callable[..., None]:
    def translate(payload, options, on_success, on_failure):
        on_failure(err)

    return translate


def never_answer(payload, options, on_success, on_failure) -> None:
    return None


def answer_from_thread(xml: str = SAMPLE_XML, delay: float = 0.01) -> Callable[..., None]:
    def translate(payload, options, on_success, on_failure):
        threading.Timer(delay, on_success, args=(xml,)).start()

    return translate


class FakeHost:
    """In-memory editor host that records every capability call."""

    def __init__(
        self,
        *,
        translator: Callable[..., None] | None = None,
        imported: list[Any] | None = None,
        selection: list[Any] | None = None,
    ) -> None:
        self.translator = translator or answer_with()
        self.imported = ["cell-1", "cell-2"] if imported is None else imported
        self.selection: list[Any] = list(selection or [])
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, Exception] = {}
        self.edges: set[Any] = set()
        self.vertices: list[Any] = []
        self.styles: dict[Any, dict[str, Any]] = {}
        self.file_data: str | None = None
        self.batches = 0

    def fail(self, name: str, error: Exception) -> "FakeHost":
        self.failures[name] = error
        return self

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.failures:
            raise self.failures[name]

    def called(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    # translation
    def translate(self, payload, options, on_success, on_failure):
        self._record("translate", payload, options)
        self.translator(payload, options, on_success, on_failure)

    # canvas
    def import_at(self, text, x, y, crop):
        self._record("import_at", text, x, y, crop)
        return list(self.imported)

    def scale(self, cells, sx, sy):
        self._record("scale", list(cells), sx, sy)

    def select(self, cells):
        self._record("select", list(cells))
        self.selection = list(cells)

    def scroll_into_view(self, cell, center=False):
        self._record("scroll_into_view", cell, center)

    def set_modified(self, modified):
        self._record("set_modified", modified)

    def get_selection(self):
        return list(self.selection)

    def set_selection(self, cells):
        self._record("set_selection", list(cells))
        self.selection = list(cells)

    # styles
    def add_cells(self, *, edges: list[Any] = (), vertices: list[Any] = ()) -> None:
        self.edges.update(edges)
        self.vertices.extend(vertices)
        for cell in [*edges, *vertices]:
            self.styles.setdefault(cell, {})

    def child_cells(self, kind):
        if kind == "edges":
            return [c for c in self.styles if c in self.edges]
        if kind == "vertices":
            return [c for c in self.styles if c not in self.edges]
        return list(self.styles)

    def is_edge(self, cell):
        return cell in self.edges

    def get_cell_style(self, cell):
        return dict(self.styles.get(cell, {}))

    def set_cell_styles(self, key, value, cells):
        self._record("set_cell_styles", key, value, list(cells))
        for cell in cells:
            self.styles.setdefault(cell, {})[key] = value

    @contextmanager
    def batch_update(self):
        self.batches += 1
        yield

    # document
    def set_file_data(self, text):
        self._record("set_file_data", text)
        self.file_data = text


class RecordingSender:
    """Reply channel that keeps every posted message."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def post_message(self, message: str, target_origin: str) -> None:
        self.sent.append((message, target_origin))

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text, _ in self.sent]

    @property
    def last(self) -> dict[str, Any]:
        return self.messages[-1]


class BrokenSender:
    def post_message(self, message: str, target_origin: str) -> None:
        raise RuntimeError("window closed")


@pytest.fixture()
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def event(sender: RecordingSender) -> MessageEvent:
    return MessageEvent(data=None, origin=ORIGIN, source=sender)


@pytest.fixture()
def config() -> Config:
    return Config(parse_timeout_ms=1000)


@pytest.fixture()
def log() -> StructuredLogger:
    return StructuredLogger(debug_mode=True)


def generate(mermaid: Any = FLOWCHART, **extra: Any) -> dict[str, Any]:
    """Build a generateMermaid message."""
    return {"action": "generateMermaid", "mermaid": mermaid, **extra}
