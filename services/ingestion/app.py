from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from langgraph.graph import END, StateGraph

from .nodes import validate_node, read_node, decode_node, window_node
from .core.state import IngestionState
from .core.types import FileDescriptor, IngestedFile, IngestionConfig
from .io.decoders import TabularDecoder

logger = logging.getLogger(__name__)

PhaseCallback = Optional[Callable[..., None]]


def build_graph():
    g = StateGraph(IngestionState)
    g.add_node("validate", validate_node)
    g.add_node("read", read_node)
    g.add_node("decode", decode_node)
    g.add_node("window", window_node)

    g.set_entry_point("validate")
    g.add_edge("validate", "read")
    g.add_edge("read", "decode")
    g.add_edge("decode", "window")
    g.add_edge("window", END)
    return g.compile()


_GRAPH = None


def _graph():
    global _GRAPH
    if _GRAPH is None:
        _GRAPH = build_graph()
    return _GRAPH


async def run_ingestion(
    descriptor: FileDescriptor,
    config: Optional[IngestionConfig] = None,
    *,
    decoders: Optional[Mapping[str, TabularDecoder]] = None,
    on_phase: PhaseCallback = None,
) -> IngestedFile:
    """Validate, read, decode and window one upload.

    Raises one of the ``IngestError`` subclasses when the upload cannot be
    turned into a record; nothing outside the returned record is touched.
    """
    initial_state: Dict[str, Any] = {
        "descriptor": descriptor,
        "settings": config or IngestionConfig.from_env(),
        "decoders": decoders,
        "phase_outputs": {},
    }
    if on_phase:
        initial_state["callback"] = on_phase

    final_state = await _graph().ainvoke(initial_state)
    record: IngestedFile = final_state["record"]
    logger.info(
        "ingested upload",
        extra={
            "record_id": record.id,
            "file_name": record.name,
            "size_bytes": record.size_bytes,
            "source_format": record.source_format,
            "preview_rows": len(record.preview_rows),
        },
    )
    return record
