from __future__ import annotations
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, MutableMapping, Optional, TypedDict
from .constants import PHASE_ORDER
from .types import FileDescriptor, Grid, IngestedFile, IngestionConfig

if TYPE_CHECKING:  # pragma: no cover - import only for static typing
    from ..io.decoders import TabularDecoder
else:
    TabularDecoder = Any

def _with_phase(state: MutableMapping[str, Any], phase: str, payload: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    phases = dict(state.get("phase_outputs") or {})
    phases[phase] = payload
    update: Dict[str, Any] = {"phase_outputs": phases}
    update.update(extra)
    return update

def _emit_callback(state: Mapping[str, Any], phase: str, payload: Mapping[str, Any]) -> None:
    callback = state.get("callback")
    if not callable(callback):
        return
    index = PHASE_ORDER.index(phase)
    callback(phase, payload, index, len(PHASE_ORDER))


class IngestionState(TypedDict, total=False):
    descriptor: FileDescriptor
    settings: IngestionConfig
    decoders: Optional[Mapping[str, TabularDecoder]]
    callback: Optional[Callable[..., None]]
    phase_outputs: Dict[str, Dict[str, Any]]
    extension: str
    raw_bytes: bytes
    grid: Grid
    source_format: str
    record: IngestedFile
