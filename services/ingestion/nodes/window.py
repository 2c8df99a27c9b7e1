from __future__ import annotations
import uuid
from typing import Any, Dict, MutableMapping, Tuple
from ..core.state import _with_phase, _emit_callback
from ..core.types import FileDescriptor, Grid, IngestedFile, IngestionConfig, Row
from ..core.utils import now_ms


def split_grid(grid: Grid, preview_rows: int) -> Tuple[Tuple[str, ...], Tuple[Row, ...]]:
    """First row becomes the headers; the next ``preview_rows`` rows the preview."""
    if not grid:
        return (), ()
    headers = tuple(cell.display() for cell in grid[0])
    rows = tuple(tuple(row) for row in grid[1 : preview_rows + 1])
    return headers, rows


def window_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    descriptor: FileDescriptor = state["descriptor"]
    config: IngestionConfig = state["settings"]
    grid: Grid = state["grid"]
    raw_bytes: bytes = state["raw_bytes"]

    headers, rows = split_grid(grid, config.preview_rows)
    record = IngestedFile(
        id=uuid.uuid4().hex,
        name=descriptor.name,
        size_bytes=len(raw_bytes),
        mime_type=descriptor.mime_type or "",
        raw_bytes=raw_bytes,
        headers=headers,
        preview_rows=rows,
        timestamp=now_ms(),
        source_format=state.get("source_format", "unknown"),
        total_rows=max(len(grid) - 1, 0),
    )

    payload = {"headers": list(headers), "previewRows": len(rows), "totalRows": record.total_rows}
    # the grid is dropped from state once the window is taken
    update = _with_phase(state, "window", payload, record=record, grid=[])
    _emit_callback(state, "window", payload)
    return update
