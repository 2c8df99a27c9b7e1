from __future__ import annotations


def _format_limit(limit: int) -> str:
    if limit % (1024 * 1024) == 0:
        return f"{limit // (1024 * 1024)}MB"
    if limit % 1024 == 0:
        return f"{limit // 1024}KB"
    return f"{limit} bytes"


class IngestError(Exception):
    """Terminal failure for a single upload attempt."""

    code = "IngestError"
    default_message = "Failed to ingest file."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class FileTooLarge(IngestError):
    code = "FileTooLarge"
    default_message = "File size exceeds 2MB limit."

    @classmethod
    def for_limit(cls, limit: int) -> "FileTooLarge":
        return cls(f"File size exceeds {_format_limit(limit)} limit.")


class UnsupportedType(IngestError):
    code = "UnsupportedType"
    default_message = "Unsupported file type."


class ReadFailure(IngestError):
    code = "ReadFailure"
    default_message = "Failed to read file."


class ParseFailure(IngestError):
    code = "ParseFailure"
    default_message = "Failed to parse file."


class DecodeError(ValueError):
    """Raised by decoder adapters for content they cannot turn into a grid."""
