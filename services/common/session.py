"""Per-session state: upload history, the active preview and the chart selection."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from services.ingestion import run_ingestion
from services.ingestion.core.types import (
    DownloadPayload, FileDescriptor, IngestedFile, IngestionConfig, Row, rows_to_json,
)
from services.ingestion.io.decoders import TabularDecoder

from .charting import ChartView, GraphKind, SelectionState, build_chart_view, is_numeric_column, project_chart_data

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewState:
    headers: Tuple[str, ...] = ()
    rows: Tuple[Row, ...] = ()
    record_id: Optional[str] = None

    @classmethod
    def empty(cls) -> "PreviewState":
        return cls()

    @classmethod
    def from_record(cls, record: IngestedFile) -> "PreviewState":
        return cls(headers=record.headers, rows=record.preview_rows, record_id=record.id)

    def to_dict(self) -> Dict[str, Any]:
        return {"recordId": self.record_id, "headers": list(self.headers), "rows": rows_to_json(self.rows)}


class HistoryStore:
    """Ingested records, most recent first."""

    def __init__(self) -> None:
        self._records: List[IngestedFile] = []

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: IngestedFile) -> None:
        self._records.insert(0, record)

    def list(self) -> Tuple[IngestedFile, ...]:
        return tuple(self._records)

    def get(self, record_id: str) -> IngestedFile:
        for record in self._records:
            if record.id == record_id:
                return record
        raise KeyError(record_id)

    def remove(self, record_id: str) -> IngestedFile:
        record = self.get(record_id)
        self._records = [item for item in self._records if item.id != record_id]
        return record

    @staticmethod
    def materialize_for_download(record: IngestedFile) -> DownloadPayload:
        return DownloadPayload.for_record(record)


@dataclass
class SessionContext:
    config: IngestionConfig = field(default_factory=IngestionConfig.from_env)
    decoders: Optional[Dict[str, TabularDecoder]] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    history: HistoryStore = field(default_factory=HistoryStore)
    preview: PreviewState = field(default_factory=PreviewState.empty)
    selection: SelectionState = field(default_factory=SelectionState)

    def _show(self, preview: PreviewState, *, force_reset: bool) -> None:
        headers_changed = force_reset or preview.headers != self.preview.headers
        self.preview = preview
        if headers_changed:
            self.selection.reset_for(preview.headers)

    async def ingest(self, descriptor: FileDescriptor) -> IngestedFile:
        record = await run_ingestion(descriptor, self.config, decoders=self.decoders)
        # commit only after the whole pipeline succeeded
        self.history.append(record)
        self._show(PreviewState.from_record(record), force_reset=True)
        return record

    def select_for_preview(self, record_id: str) -> PreviewState:
        record = self.history.get(record_id)
        self._show(PreviewState.from_record(record), force_reset=False)
        return self.preview

    def remove(self, record_id: str) -> IngestedFile:
        record = self.history.remove(record_id)
        # any deletion invalidates whatever is on screen
        self._show(PreviewState.empty(), force_reset=True)
        logger.info("history record removed", extra={"session_id": self.id, "record_id": record_id})
        return record

    def download(self, record_id: str) -> DownloadPayload:
        return self.history.materialize_for_download(self.history.get(record_id))

    def set_graph_kind(self, graph_kind: GraphKind | str) -> None:
        self.selection.graph_kind = GraphKind(graph_kind)

    def _check_key(self, key: Optional[str]) -> Optional[str]:
        if key is not None and key not in self.preview.headers:
            raise ValueError(f"Unknown column: {key}")
        return key

    def set_category_key(self, key: Optional[str]) -> None:
        self.selection.category_key = self._check_key(key)

    def set_measure_key(self, key: Optional[str]) -> None:
        self.selection.measure_key = self._check_key(key)

    def is_numeric_column(self, key: Optional[str]) -> bool:
        return is_numeric_column(self.preview.headers, self.preview.rows, key)

    def chart_data(self) -> List[Dict[str, Any]]:
        return project_chart_data(
            self.preview.headers, self.preview.rows, self.selection.category_key, self.selection.measure_key
        )

    def chart_view(self) -> ChartView:
        return build_chart_view(self.preview.headers, self.preview.rows, self.selection)


class SessionRegistry:
    """In-memory sessions for the lifetime of the process."""

    def __init__(self, config: Optional[IngestionConfig] = None) -> None:
        self._config = config
        self._sessions: Dict[str, SessionContext] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> SessionContext:
        session = SessionContext(config=self._config or IngestionConfig.from_env())
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> SessionContext:
        return self._sessions[session_id]

    def drop(self, session_id: str) -> None:
        del self._sessions[session_id]
