"""Tests for Pydantic contract models and the draw.io host binding."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from mermaid_bridge.adapters.drawio import DrawioHost
from mermaid_bridge.adapters.host import CanvasHost, DocumentHost, StyleHost, TranslationHost
from mermaid_bridge.contracts import (
    ErrorCode,
    GenerateMermaidRequest,
    InsertOptions,
    InsertionError,
    ResponseEnvelope,
    TranslationError,
    ValidationResult,
)

from conftest import FakeHost


def test_validation_result_helpers():
    assert ValidationResult.ok().model_dump() == {"valid": True, "error": None, "error_code": None}
    failed = ValidationResult.fail(ErrorCode.SIZE_EXCEEDED, "too big")
    assert failed.model_dump(by_alias=True, mode="json") == {
        "valid": False,
        "error": "too big",
        "errorCode": "SIZE_EXCEEDED",
    }


def test_validation_result_is_frozen():
    with pytest.raises(ValidationError):
        ValidationResult.ok().valid = False  # type: ignore[misc]


def test_envelope_ok_property():
    assert ResponseEnvelope().ok
    assert not ResponseEnvelope(status="error", error="x", error_code="TIMEOUT").ok


def test_generate_request_from_message():
    request = GenerateMermaidRequest.from_message(
        {"action": "generateMermaid", "mermaid": "graph TD", "options": {"position": {"x": 1, "y": 2}, "extra": 1}}
    )
    assert request.mermaid == "graph TD"
    assert request.options.position.x == 1
    assert request.options.scale is None


def test_insert_options_reject_bad_types():
    with pytest.raises(ValidationError):
        InsertOptions.model_validate({"position": {"x": "left", "y": 0}})


def test_translation_error_timeout_message():
    assert TranslationError.timed_out(100).message == "translation timed out after 100ms"
    assert TranslationError.timed_out(12.5).message == "translation timed out after 12.5ms"


def test_insertion_error_code():
    err = InsertionError("Failed to insert diagram: x", original_error=ValueError("x"))
    assert err.code == ErrorCode.INSERT_FAILED.value
    assert str(err) == "Failed to insert diagram: x"


def test_fake_host_satisfies_protocols():
    host = FakeHost()
    for protocol in (TranslationHost, CanvasHost, StyleHost, DocumentHost):
        assert isinstance(host, protocol)


class TestDrawioHost:
    @pytest.fixture()
    def ui(self):
        ui = MagicMock()
        ui.editor.graph.getSelectionCells.return_value = ["s1"]
        return ui

    def test_requires_editor(self):
        with pytest.raises(ValueError, match="Invalid UI object"):
            DrawioHost(None)
        with pytest.raises(ValueError, match="Invalid UI object"):
            DrawioHost(SimpleNamespace(editor=None))

    def test_translate_maps_to_parse_mermaid(self, ui):
        ok, fail = MagicMock(), MagicMock()
        DrawioHost(ui).translate("graph TD", None, ok, fail)
        ui.parseMermaidDiagram.assert_called_once_with("graph TD", None, ok, fail)

    def test_canvas_calls(self, ui):
        host = DrawioHost(ui)
        host.import_at("<x/>", 20, 20, True)
        host.scale(["c"], 2, 2)
        host.select(["c"])
        host.scroll_into_view("c", True)
        host.set_modified(True)
        ui.importXml.assert_called_once_with("<x/>", 20, 20, True)
        ui.editor.graph.scaleCells.assert_called_once_with(["c"], 2, 2)
        ui.editor.graph.setSelectionCells.assert_called_once_with(["c"])
        ui.editor.graph.scrollCellToVisible.assert_called_once_with("c", True)
        ui.editor.setModified.assert_called_once_with(True)
        assert host.get_selection() == ["s1"]

    def test_style_calls(self, ui):
        host = DrawioHost(ui)
        ui.editor.graph.getChildEdges.return_value = ["e"]
        ui.editor.graph.getCellStyle.return_value = {"strokeWidth": "2"}
        assert host.child_cells("edges") == ["e"]
        assert host.get_cell_style("e") == {"strokeWidth": "2"}
        with host.batch_update():
            host.set_cell_styles("strokeWidth", 3, ["e"])
        model = ui.editor.graph.getModel.return_value
        model.beginUpdate.assert_called_once()
        model.endUpdate.assert_called_once()
        ui.editor.graph.setCellStyles.assert_called_once_with("strokeWidth", 3, ["e"])
        with pytest.raises(ValueError):
            host.child_cells("groups")

    def test_batch_update_ends_on_error(self, ui):
        host = DrawioHost(ui)
        with pytest.raises(RuntimeError):
            with host.batch_update():
                raise RuntimeError("boom")
        ui.editor.graph.getModel.return_value.endUpdate.assert_called_once()

    def test_set_file_data(self, ui):
        DrawioHost(ui).set_file_data("<mxfile/>")
        ui.setFileData.assert_called_once_with("<mxfile/>")
