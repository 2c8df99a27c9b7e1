"""Column classification, chart projection and the selection state machine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from services.ingestion.core.types import Cell

ShapedRecord = Dict[str, Optional[Cell]]


class GraphKind(str, Enum):
    BAR = "Bar"
    LINE = "Line"
    PIE = "Pie"
    AREA = "Area"


class ChartStatus(str, Enum):
    NO_SELECTION = "no_selection"
    NOT_NUMERIC = "not_numeric"
    NO_NUMERIC_DATA = "no_numeric_data"
    READY = "ready"


CHART_MESSAGES = {
    ChartStatus.NO_SELECTION: "Select columns to visualize the data.",
    ChartStatus.NOT_NUMERIC: "Selected Y/value column is not numeric. Please select a numeric column.",
    ChartStatus.NO_NUMERIC_DATA: "No numeric data found in the selected column for plotting.",
    ChartStatus.READY: None,
}


def shape_records(headers: Sequence[str], rows: Sequence[Sequence[Cell]]) -> List[ShapedRecord]:
    """Zip each row against the headers; headers past the row's end map to ``None``."""
    records: List[ShapedRecord] = []
    for row in rows:
        record: ShapedRecord = {}
        for index, header in enumerate(headers):
            record[header] = row[index] if index < len(row) else None
        records.append(record)
    return records


def _number_at(record: ShapedRecord, key: str) -> Optional[float]:
    cell = record.get(key)
    if cell is None:
        return None
    return cell.to_number()


def is_numeric_column(headers: Sequence[str], rows: Sequence[Sequence[Cell]], key: Optional[str]) -> bool:
    """A column is numeric when any row holds a non-empty value that coerces to a number."""
    if not key or key not in headers:
        return False
    return any(_number_at(record, key) is not None for record in shape_records(headers, rows))


def project_chart_data(
    headers: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    category_key: Optional[str],
    measure_key: Optional[str],
) -> List[Dict[str, Any]]:
    if not category_key or not measure_key:
        return []
    if not is_numeric_column(headers, rows, measure_key):
        return []

    projected: List[Dict[str, Any]] = []
    for record in shape_records(headers, rows):
        number = _number_at(record, measure_key)
        if number is None:
            continue
        plain = {key: (cell.to_json() if cell is not None else None) for key, cell in record.items()}
        plain[measure_key] = number
        projected.append(plain)
    return projected


@dataclass
class SelectionState:
    graph_kind: GraphKind = GraphKind.BAR
    category_key: Optional[str] = None
    measure_key: Optional[str] = None

    def reset_for(self, headers: Sequence[str]) -> None:
        # graph_kind survives a dataset change
        self.category_key = headers[0] if len(headers) > 0 else None
        self.measure_key = headers[1] if len(headers) > 1 else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graphKind": self.graph_kind.value,
            "categoryKey": self.category_key,
            "measureKey": self.measure_key,
        }


@dataclass
class ChartView:
    status: ChartStatus
    graph_kind: GraphKind
    message: Optional[str] = None
    data: List[Dict[str, Any]] = field(default_factory=list)
    keys: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "graphKind": self.graph_kind.value,
            "keys": dict(self.keys),
            "data": list(self.data),
        }


def chart_keys(selection: SelectionState) -> Dict[str, Optional[str]]:
    if selection.graph_kind is GraphKind.PIE:
        return {"nameKey": selection.category_key, "dataKey": selection.measure_key}
    return {"xKey": selection.category_key, "yKey": selection.measure_key}


def build_chart_view(
    headers: Sequence[str],
    rows: Sequence[Sequence[Cell]],
    selection: SelectionState,
) -> ChartView:
    """Pick exactly one of the four render states for the current selection."""
    keys = chart_keys(selection)
    if not selection.category_key or not selection.measure_key:
        status = ChartStatus.NO_SELECTION
        data: List[Dict[str, Any]] = []
    elif not is_numeric_column(headers, rows, selection.measure_key):
        status = ChartStatus.NOT_NUMERIC
        data = []
    else:
        data = project_chart_data(headers, rows, selection.category_key, selection.measure_key)
        status = ChartStatus.READY if data else ChartStatus.NO_NUMERIC_DATA
    return ChartView(status=status, graph_kind=selection.graph_kind, message=CHART_MESSAGES[status], data=data, keys=keys)
