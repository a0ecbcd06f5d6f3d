"""Capability interfaces consumed from the host editor.

The core never inspects a cell handle; it only counts cells and hands them
back to the host.
"""

from __future__ import annotations

from typing import Any, Callable, ContextManager, Protocol, Sequence, runtime_checkable

CellRef = Any
SuccessCallback = Callable[[str], None]
FailureCallback = Callable[[Any], None]


@runtime_checkable
class TranslationHost(Protocol):
    def translate(
        self,
        payload: str,
        options: Any,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        """Start translating ``payload``; call one callback later, or never."""
        ...


@runtime_checkable
class CanvasHost(Protocol):
    def import_at(self, text: str, x: int, y: int, crop: bool) -> Sequence[CellRef] | None: ...

    def scale(self, cells: Sequence[CellRef], sx: float, sy: float) -> None: ...

    def select(self, cells: Sequence[CellRef]) -> None: ...

    def scroll_into_view(self, cell: CellRef, center: bool = False) -> None: ...

    def set_modified(self, modified: bool) -> None: ...

    def get_selection(self) -> Sequence[CellRef]: ...

    def set_selection(self, cells: Sequence[CellRef]) -> None: ...


@runtime_checkable
class StyleHost(Protocol):
    def get_selection(self) -> Sequence[CellRef]: ...

    def child_cells(self, kind: str) -> Sequence[CellRef]:
        """Top-level cells of the default parent; ``kind`` is ``edges``, ``vertices`` or ``all``."""
        ...

    def is_edge(self, cell: CellRef) -> bool: ...

    def get_cell_style(self, cell: CellRef) -> dict[str, Any]: ...

    def set_cell_styles(self, key: str, value: Any, cells: Sequence[CellRef]) -> None: ...

    def batch_update(self) -> ContextManager[None]: ...

    def set_modified(self, modified: bool) -> None: ...


@runtime_checkable
class DocumentHost(Protocol):
    def set_file_data(self, text: str) -> None: ...


class Host(TranslationHost, CanvasHost, StyleHost, DocumentHost, Protocol):
    """Full capability set used by the message router."""
