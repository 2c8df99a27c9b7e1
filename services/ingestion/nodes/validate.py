from __future__ import annotations
import logging
from typing import Any, Dict, MutableMapping
from ..core.errors import FileTooLarge, UnsupportedType
from ..core.state import _with_phase, _emit_callback
from ..core.types import FileDescriptor, IngestionConfig

logger = logging.getLogger(__name__)


def validate_descriptor(descriptor: FileDescriptor, config: IngestionConfig) -> str:
    """Gatekeep a candidate file by declared size and extension; returns the extension."""
    if descriptor.size_bytes > config.max_file_size:
        raise FileTooLarge.for_limit(config.max_file_size)
    extension = descriptor.extension
    if extension not in config.allowed_extensions:
        raise UnsupportedType()
    return extension


def validate_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    descriptor: FileDescriptor = state["descriptor"]
    config: IngestionConfig = state["settings"]
    try:
        extension = validate_descriptor(descriptor, config)
    except (FileTooLarge, UnsupportedType) as exc:
        logger.info("upload rejected", extra={"file_name": descriptor.name, "reason": exc.code})
        raise

    payload = {"name": descriptor.name, "sizeBytes": descriptor.size_bytes, "extension": extension}
    update = _with_phase(state, "validate", payload, extension=extension)
    _emit_callback(state, "validate", payload)
    return update
