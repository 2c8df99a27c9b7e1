"""Decoder adapters that turn an uploaded payload into a grid of cells.

Only the first sheet/table of a document is read. Every adapter raises
``DecodeError`` (or lets a library error escape) for content it cannot read;
the ingestion pipeline turns either into a ``ParseFailure``.
"""
from __future__ import annotations
import csv, io, json, logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..core.constants import _SNIFF_DELIMITERS, _SNIFF_SAMPLE_SIZE
from ..core.errors import DecodeError
from ..core.types import Cell, Grid

logger = logging.getLogger(__name__)


def _is_blank(row: Sequence[Cell]) -> bool:
    return all(cell.is_empty for cell in row)


def _trim_trailing_empty(row: List[Cell]) -> List[Cell]:
    end = len(row)
    while end and row[end - 1].is_empty:
        end -= 1
    return row[:end]


def _decode_text(body: bytes) -> str:
    return body.decode("utf-8-sig", errors="replace")


class TabularDecoder:
    """Turns bytes plus a format hint into a grid of cells."""

    source_format = "unknown"

    def format_for(self, hint: str) -> str:
        return self.source_format

    def decode(self, body: bytes, hint: str) -> Grid:
        raise NotImplementedError


class DelimitedDecoder(TabularDecoder):
    def __init__(self, delimiter: Optional[str] = None, source_format: str = "csv") -> None:
        self.delimiter = delimiter
        self.source_format = source_format

    @staticmethod
    def sniff_delimiter(text: str) -> str:
        sample = text[:_SNIFF_SAMPLE_SIZE]
        try:
            return csv.Sniffer().sniff(sample, delimiters="".join(_SNIFF_DELIMITERS)).delimiter
        except csv.Error:
            # fallback: choose the most common likely delimiter in the sample
            cand = Counter([c for c in sample if c in _SNIFF_DELIMITERS]).most_common(1)
            return cand[0][0] if cand else ","

    def decode(self, body: bytes, hint: str) -> Grid:
        text = _decode_text(body)
        delimiter = self.delimiter or self.sniff_delimiter(text)
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
        grid: Grid = []
        try:
            for raw_row in reader:
                row = [Cell.text(cell) for cell in raw_row]
                if not row or _is_blank(row):
                    continue
                grid.append(row)
        except csv.Error as exc:
            raise DecodeError(f"Malformed delimited content: {exc}") from exc
        return grid


def _frame_cell(value: Any) -> Cell:
    if _isna(value):
        return Cell.empty()
    if isinstance(value, np.datetime64):
        return Cell.from_value(pd.Timestamp(value))
    if isinstance(value, np.generic):
        value = value.item()
    return Cell.from_value(value)


def _frame_rows(frame: pd.DataFrame) -> Grid:
    grid: Grid = []
    for values in frame.itertuples(index=False, name=None):
        row = _trim_trailing_empty([_frame_cell(value) for value in values])
        if row:
            grid.append(row)
    return grid


def _isna(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _column_labels(frame: pd.DataFrame) -> List[Cell]:
    labels: List[Cell] = []
    for label in frame.columns:
        if isinstance(label, tuple):
            label = label[-1]
        labels.append(Cell.text(str(label)))
    return labels


def _has_labelled_columns(frame: pd.DataFrame) -> bool:
    # read_html numbers the columns 0..n-1 when the table has no header row
    return list(frame.columns) != list(range(len(frame.columns)))


class SpreadsheetDecoder(TabularDecoder):
    source_format = "excel"

    _ENGINES = {"xlsx": "openpyxl", "xls": "xlrd", "ods": "odf"}

    def format_for(self, hint: str) -> str:
        return "ods" if hint == "ods" else "excel"

    def decode(self, body: bytes, hint: str) -> Grid:
        engine = self._ENGINES.get(hint)
        with io.BytesIO(body) as stream:
            frame = pd.read_excel(stream, sheet_name=0, header=None, dtype=object, engine=engine)
        return _frame_rows(frame)


class MarkupDecoder(TabularDecoder):
    source_format = "html"

    def format_for(self, hint: str) -> str:
        return "xml" if hint == "xml" else "html"

    def decode(self, body: bytes, hint: str) -> Grid:
        if hint == "xml":
            frame = pd.read_xml(io.BytesIO(body), dtype=object)
        else:
            tables = pd.read_html(io.StringIO(_decode_text(body)))
            if not tables:
                raise DecodeError("HTML document does not contain a table")
            frame = tables[0]
        grid = _frame_rows(frame)
        if _has_labelled_columns(frame):
            grid.insert(0, _column_labels(frame))
        return grid


class JsonDecoder(TabularDecoder):
    source_format = "json"

    @staticmethod
    def _records_to_grid(records: Iterable[Mapping[str, Any]]) -> Grid:
        headers: Dict[str, None] = {}
        materialized = list(records)
        for record in materialized:
            for key in record.keys():
                headers.setdefault(str(key), None)
        names = list(headers)
        grid: Grid = [[Cell.text(name) for name in names]]
        for record in materialized:
            lookup = {str(key): value for key, value in record.items()}
            grid.append(_trim_trailing_empty([Cell.from_value(lookup.get(name)) for name in names]))
        return grid

    def decode(self, body: bytes, hint: str) -> Grid:
        try:
            data = json.loads(_decode_text(body))
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Invalid JSON document: {exc.msg}") from exc

        if isinstance(data, Mapping):
            return self._records_to_grid([data])
        if not isinstance(data, list):
            raise DecodeError("JSON document does not contain a table")
        if not data:
            return []
        if all(isinstance(item, Mapping) for item in data):
            return self._records_to_grid(data)
        if all(isinstance(item, list) for item in data):
            return [[Cell.from_value(value) for value in item] for item in data]
        raise DecodeError("JSON array must hold only objects or only arrays")


def default_decoders() -> Dict[str, TabularDecoder]:
    spreadsheet = SpreadsheetDecoder()
    markup = MarkupDecoder()
    return {
        "csv": DelimitedDecoder(",", "csv"),
        "tsv": DelimitedDecoder("\t", "tsv"),
        "txt": DelimitedDecoder(None, "txt"),
        "xls": spreadsheet,
        "xlsx": spreadsheet,
        "ods": spreadsheet,
        "html": markup,
        "htm": markup,
        "xml": markup,
        "json": JsonDecoder(),
    }


def decoder_for(hint: str, decoders: Optional[Mapping[str, TabularDecoder]] = None) -> TabularDecoder:
    registry = decoders if decoders is not None else default_decoders()
    decoder = registry.get(hint.lower())
    if decoder is None:
        raise DecodeError(f"No decoder registered for '{hint}'")
    return decoder


def decode_grid(body: bytes, hint: str, decoders: Optional[Mapping[str, TabularDecoder]] = None) -> Grid:
    if not body:
        raise DecodeError("Document is empty")
    decoder = decoder_for(hint, decoders)
    grid = decoder.decode(body, hint.lower())
    logger.debug("decoded grid", extra={"hint": hint, "rows": len(grid)})
    return grid
