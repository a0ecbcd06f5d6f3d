"""Canvas transaction: insert translated XML, scale, select, reveal.

Rollback restores the selection captured before the import. Partially
imported cells are left on the canvas; the host offers no undo.
"""

from __future__ import annotations

from typing import Any

from mermaid_bridge.contracts.common import InsertionError, InsertionOutcome
from mermaid_bridge.contracts.requests import DEFAULT_POSITION, InsertOptions
from mermaid_bridge.observe.log import StructuredLogger

MIN_SCALE = 0.1
MAX_SCALE = 10.0

_REQUIRED_CAPABILITIES = (
    "import_at",
    "scale",
    "select",
    "scroll_into_view",
    "set_modified",
    "get_selection",
    "set_selection",
)


def _usable_host(host: Any) -> bool:
    if host is None:
        return False
    return all(callable(getattr(host, name, None)) for name in _REQUIRED_CAPABILITIES)


def _coerce_options(options: InsertOptions | dict[str, Any] | None) -> InsertOptions:
    if options is None:
        return InsertOptions()
    if isinstance(options, InsertOptions):
        return options
    return InsertOptions.model_validate(options)


def insert_diagram(
    host: Any,
    text: str,
    options: InsertOptions | dict[str, Any] | None = None,
    *,
    log: StructuredLogger | None = None,
) -> InsertionOutcome:
    """Insert ``text`` into the canvas and return the inserted cells.

    Raises ``InsertionError`` (code ``INSERT_FAILED``) on any failure.
    """
    log = log or StructuredLogger()
    if not _usable_host(host):
        raise InsertionError("Invalid UI object")
    if not isinstance(text, str) or not text:
        raise InsertionError("Invalid XML")

    opts = _coerce_options(options)
    try:
        previous_selection = list(host.get_selection() or [])
    except Exception as e:
        raise InsertionError(f"Failed to insert diagram: {e}", original_error=e) from e

    try:
        x, y = (opts.position.x, opts.position.y) if opts.position else DEFAULT_POSITION
        imported = host.import_at(text, x, y, True)
        cells = list(imported) if imported else []
        if not cells:
            raise InsertionError("No cells were inserted")

        if opts.scale is not None:
            if MIN_SCALE <= opts.scale <= MAX_SCALE:
                host.scale(cells, opts.scale, opts.scale)
            else:
                log.warn(
                    f"Scale out of range ({MIN_SCALE}-{MAX_SCALE}), ignoring: {opts.scale}",
                    {"scale": opts.scale},
                )

        if opts.select is not False:
            host.select(cells)

        host.scroll_into_view(cells[0], opts.center is True)
        host.set_modified(True)
    except Exception as e:
        try:
            host.set_selection(previous_selection)
        except Exception as restore_error:
            log.error("Failed to restore selection after insert failure", restore_error)
        original = e.original_error if isinstance(e, InsertionError) and e.original_error else e
        message = e.message if isinstance(e, InsertionError) else str(e)
        raise InsertionError(f"Failed to insert diagram: {message}", original_error=original) from e

    log.debug(f"Inserted {len(cells)} cells", {"position": [x, y], "scale": opts.scale})
    return InsertionOutcome(cells=cells, cell_count=len(cells))


async def insert_diagram_async(
    host: Any,
    text: str,
    options: InsertOptions | dict[str, Any] | None = None,
    *,
    log: StructuredLogger | None = None,
) -> InsertionOutcome:
    """Awaitable form of ``insert_diagram``; the work itself is synchronous."""
    return insert_diagram(host, text, options, log=log)
