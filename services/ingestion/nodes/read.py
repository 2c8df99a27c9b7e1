from __future__ import annotations
import logging
from typing import Any, Dict, MutableMapping
from ..core.errors import FileTooLarge, ReadFailure
from ..core.state import _with_phase, _emit_callback
from ..core.types import FileDescriptor, IngestionConfig

logger = logging.getLogger(__name__)


async def read_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    descriptor: FileDescriptor = state["descriptor"]
    config: IngestionConfig = state["settings"]

    try:
        data = await descriptor.read()
    except Exception as exc:
        logger.warning("failed to read upload", extra={"file_name": descriptor.name, "error": str(exc)})
        raise ReadFailure() from exc

    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ReadFailure("Upload read did not yield bytes.")
    raw_bytes = bytes(data)

    # declared sizes are advisory; the payload is what gets stored
    if len(raw_bytes) > config.max_file_size:
        raise FileTooLarge.for_limit(config.max_file_size)

    payload = {"bytesRead": len(raw_bytes)}
    update = _with_phase(state, "read", payload, raw_bytes=raw_bytes)
    _emit_callback(state, "read", payload)
    return update
