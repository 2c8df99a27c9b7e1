from .app import build_graph, run_ingestion
from .core.constants import ALLOWED_EXTENSIONS, MAX_FILE_SIZE, PREVIEW_ROWS
from .core.errors import FileTooLarge, IngestError, ParseFailure, ReadFailure, UnsupportedType
from .core.types import Cell, DownloadPayload, FileDescriptor, IngestedFile, IngestionConfig

__all__ = [
    "ALLOWED_EXTENSIONS",
    "MAX_FILE_SIZE",
    "PREVIEW_ROWS",
    "Cell",
    "DownloadPayload",
    "FileDescriptor",
    "FileTooLarge",
    "IngestError",
    "IngestedFile",
    "IngestionConfig",
    "ParseFailure",
    "ReadFailure",
    "UnsupportedType",
    "build_graph",
    "run_ingestion",
]
