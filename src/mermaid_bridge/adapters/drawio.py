"""draw.io binding: adapts a draw.io-shaped UI object to the host capability interfaces.

The wrapped ``ui`` exposes the editor's own method names (``parseMermaidDiagram``,
``importXml``, ``editor.graph.setSelectionCells``, ...), for example through a
JavaScript bridge proxy. Everything here is a thin rename; no behaviour is added.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from mermaid_bridge.adapters.host import CellRef, FailureCallback, SuccessCallback


class DrawioHost:
    """Host capabilities backed by a draw.io ``EditorUi``-like object."""

    def __init__(self, ui: Any) -> None:
        if ui is None or getattr(ui, "editor", None) is None:
            raise ValueError("Invalid UI object: missing editor")
        self.ui = ui

    @property
    def graph(self) -> Any:
        return self.ui.editor.graph

    # -- translation -------------------------------------------------------
    def translate(
        self,
        payload: str,
        options: Any,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        self.ui.parseMermaidDiagram(payload, options, on_success, on_failure)

    # -- canvas ------------------------------------------------------------
    def import_at(self, text: str, x: int, y: int, crop: bool) -> Sequence[CellRef] | None:
        return self.ui.importXml(text, x, y, crop)

    def scale(self, cells: Sequence[CellRef], sx: float, sy: float) -> None:
        self.graph.scaleCells(cells, sx, sy)

    def select(self, cells: Sequence[CellRef]) -> None:
        self.graph.setSelectionCells(cells)

    def scroll_into_view(self, cell: CellRef, center: bool = False) -> None:
        self.graph.scrollCellToVisible(cell, center)

    def set_modified(self, modified: bool) -> None:
        self.ui.editor.setModified(modified)

    def get_selection(self) -> Sequence[CellRef]:
        return list(self.graph.getSelectionCells() or [])

    def set_selection(self, cells: Sequence[CellRef]) -> None:
        self.graph.setSelectionCells(cells)

    # -- styles ------------------------------------------------------------
    def child_cells(self, kind: str) -> Sequence[CellRef]:
        parent = self.graph.getDefaultParent()
        if kind == "edges":
            cells = self.graph.getChildEdges(parent)
        elif kind == "vertices":
            cells = self.graph.getChildVertices(parent)
        elif kind == "all":
            cells = self.graph.getChildCells(parent)
        else:
            raise ValueError(f"Unknown cell kind: {kind}")
        return list(cells or [])

    def is_edge(self, cell: CellRef) -> bool:
        return bool(self.graph.getModel().isEdge(cell))

    def get_cell_style(self, cell: CellRef) -> dict[str, Any]:
        return dict(self.graph.getCellStyle(cell) or {})

    def set_cell_styles(self, key: str, value: Any, cells: Sequence[CellRef]) -> None:
        self.graph.setCellStyles(key, value, cells)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        model = self.graph.getModel()
        model.beginUpdate()
        try:
            yield
        finally:
            model.endUpdate()

    # -- document ----------------------------------------------------------
    def set_file_data(self, text: str) -> None:
        self.ui.setFileData(text)
