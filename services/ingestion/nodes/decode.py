from __future__ import annotations
import logging
from typing import Any, Dict, MutableMapping
from ..core.errors import ParseFailure
from ..core.state import _with_phase, _emit_callback
from ..io.decoders import decode_grid, decoder_for

logger = logging.getLogger(__name__)


def decode_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    extension: str = state["extension"]
    raw_bytes: bytes = state["raw_bytes"]
    decoders = state.get("decoders")

    try:
        source_format = decoder_for(extension, decoders).format_for(extension)
        grid = decode_grid(raw_bytes, extension, decoders)
    except Exception as exc:
        logger.warning(
            "failed to parse upload",
            extra={"file_name": state["descriptor"].name, "extension": extension, "error": str(exc)},
        )
        raise ParseFailure() from exc

    payload = {"sourceFormat": source_format, "gridRows": len(grid)}
    update = _with_phase(state, "decode", payload, grid=grid, source_format=source_format)
    _emit_callback(state, "decode", payload)
    return update
