import os

PHASE_ORDER = [
    "validate",
    "read",
    "decode",
    "window",
]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return tuple(part.strip().lower().lstrip(".") for part in raw.split(",") if part.strip())


DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024
DEFAULT_PREVIEW_ROWS = 10
DEFAULT_ALLOWED_EXTENSIONS = (
    "xls", "xlsx", "csv", "tsv", "txt", "ods", "xml", "json", "html", "htm",
)

MAX_FILE_SIZE = _env_int("SHEETSCOPE_MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE)
PREVIEW_ROWS = _env_int("SHEETSCOPE_PREVIEW_ROWS", DEFAULT_PREVIEW_ROWS)
ALLOWED_EXTENSIONS = _env_list("SHEETSCOPE_ALLOWED_EXTENSIONS", DEFAULT_ALLOWED_EXTENSIONS)

_DEFAULT_MIME_TYPE = "application/octet-stream"
_SNIFF_SAMPLE_SIZE = 64 * 1024
_SNIFF_DELIMITERS = [",", ";", "\t", "|"]
