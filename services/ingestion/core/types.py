from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union
import json
import math

from .constants import (
    ALLOWED_EXTENSIONS, DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_MAX_FILE_SIZE, DEFAULT_PREVIEW_ROWS,
    MAX_FILE_SIZE, PREVIEW_ROWS, _DEFAULT_MIME_TYPE, _env_int, _env_list,
)

TEXT = "text"
NUMBER = "number"
EMPTY = "empty"

_RADIX_PREFIXES = ("0x", "0o", "0b")
_NON_FINITE_WORDS = {"inf", "infinity", "nan"}


def _coerce_text(text: str) -> Optional[float]:
    stripped = text.strip()
    if not stripped:
        return None
    lowered = stripped.lower()
    if lowered.startswith(_RADIX_PREFIXES):
        try:
            return float(int(lowered, 0))
        except ValueError:
            return None
    if "_" in stripped or lowered.lstrip("+-") in _NON_FINITE_WORDS:
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class Cell:
    kind: str
    value: Union[str, float, None] = None

    @classmethod
    def text(cls, value: str) -> "Cell":
        return cls(TEXT, value) if value != "" else cls.empty()

    @classmethod
    def number(cls, value: float) -> "Cell":
        return cls(NUMBER, float(value))

    @classmethod
    def empty(cls) -> "Cell":
        return cls(EMPTY, None)

    @classmethod
    def from_value(cls, value: Any) -> "Cell":
        """Map a decoded primitive onto the closed cell variant."""
        if value is None:
            return cls.empty()
        if isinstance(value, Cell):
            return value
        if isinstance(value, bool):
            return cls.number(1.0 if value else 0.0)
        if isinstance(value, (int, float)):
            if isinstance(value, float) and math.isnan(value):
                return cls.empty()
            return cls.number(value)
        if isinstance(value, str):
            return cls.text(value)
        if isinstance(value, (dict, list)):
            return cls.text(json.dumps(value, default=str))
        if hasattr(value, "isoformat"):
            return cls.text(value.isoformat())
        return cls.text(str(value))

    @property
    def is_empty(self) -> bool:
        return self.kind == EMPTY

    def to_number(self) -> Optional[float]:
        if self.kind == NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            return number if math.isfinite(number) else None
        if self.kind == TEXT:
            return _coerce_text(str(self.value))
        return None

    def display(self) -> str:
        if self.kind == EMPTY:
            return ""
        if self.kind == NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            if math.isfinite(number) and number.is_integer():
                return str(int(number))
            return str(number)
        return str(self.value)

    def to_json(self) -> Union[str, float, None]:
        if self.kind == NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            return number if math.isfinite(number) else None
        return self.value


Row = Tuple[Cell, ...]
Grid = List[List[Cell]]


@dataclass(frozen=True)
class IngestionConfig:
    max_file_size: int = MAX_FILE_SIZE
    preview_rows: int = PREVIEW_ROWS
    allowed_extensions: Tuple[str, ...] = ALLOWED_EXTENSIONS

    @classmethod
    def from_env(cls) -> "IngestionConfig":
        return cls(
            max_file_size=_env_int("SHEETSCOPE_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
            preview_rows=_env_int("SHEETSCOPE_PREVIEW_ROWS", DEFAULT_PREVIEW_ROWS),
            allowed_extensions=_env_list("SHEETSCOPE_ALLOWED_EXTENSIONS", DEFAULT_ALLOWED_EXTENSIONS),
        )


def file_extension(name: str) -> str:
    """Lower-cased text after the final '.', or '' when the name has none."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


@dataclass
class FileDescriptor:
    """A candidate upload: metadata known up front plus a deferred byte read."""

    name: str
    size_bytes: int
    mime_type: str
    read: Callable[[], Awaitable[bytes]]

    @property
    def extension(self) -> str:
        return file_extension(self.name)

    @classmethod
    def from_bytes(cls, name: str, body: bytes, mime_type: str = "") -> "FileDescriptor":
        """Descriptor over an in-memory payload whose declared size is its real length."""
        data = bytes(body)

        async def _read() -> bytes:
            return data

        return cls(name=name, size_bytes=len(data), mime_type=mime_type, read=_read)


@dataclass(frozen=True)
class IngestedFile:
    id: str
    name: str
    size_bytes: int
    mime_type: str
    raw_bytes: bytes = field(repr=False)
    headers: Tuple[str, ...]
    preview_rows: Tuple[Row, ...]
    timestamp: int
    source_format: str
    total_rows: int = 0

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sizeBytes": self.size_bytes,
            "sizeKb": round(self.size_bytes / 1024, 1),
            "mimeType": self.mime_type,
            "timestamp": self.timestamp,
            "sourceFormat": self.source_format,
            "headers": list(self.headers),
            "previewRowCount": len(self.preview_rows),
            "totalRows": self.total_rows,
        }


@dataclass(frozen=True)
class DownloadPayload:
    data: bytes = field(repr=False)
    mime_type: str
    filename: str

    @classmethod
    def for_record(cls, record: IngestedFile) -> "DownloadPayload":
        return cls(data=record.raw_bytes, mime_type=record.mime_type or _DEFAULT_MIME_TYPE, filename=record.name)


def rows_to_json(rows: Sequence[Sequence[Cell]]) -> List[List[Union[str, float, None]]]:
    return [[cell.to_json() for cell in row] for row in rows]
