import anyio
import pytest

from services.common.charting import ChartStatus, GraphKind
from services.common.session import HistoryStore, PreviewState, SessionContext, SessionRegistry
from services.ingestion import FileDescriptor, FileTooLarge, IngestionConfig, ParseFailure, UnsupportedType


SALES_CSV = b"Region,Sales\nEast,100\nWest,abc\nNorth,50\n"
OTHER_SALES_CSV = b"Region,Sales\nSouth,7\n"
PEOPLE_CSV = b"Name,Age,City\nAda,36,London\n"


def _session(**config):
    return SessionContext(config=IngestionConfig(**config))


def _upload(session, name, body, mime_type="text/csv"):
    return anyio.run(session.ingest, FileDescriptor.from_bytes(name, body, mime_type))


def test_upload_sets_preview_and_default_keys():
    session = _session()
    record = _upload(session, "sales.csv", SALES_CSV)

    assert session.history.list() == (record,)
    assert session.preview.headers == ("Region", "Sales")
    assert session.preview.record_id == record.id
    assert len(session.preview.rows) == 3
    assert session.selection.category_key == "Region"
    assert session.selection.measure_key == "Sales"
    assert session.is_numeric_column("Sales") is True
    assert session.chart_data() == [{"Region": "East", "Sales": 100.0}, {"Region": "North", "Sales": 50.0}]
    assert session.chart_view().status is ChartStatus.READY


def test_single_column_document_leaves_measure_unset():
    session = _session()
    _upload(session, "names.csv", b"Name\nAda\n")
    assert session.selection.category_key == "Name"
    assert session.selection.measure_key is None
    assert session.chart_view().status is ChartStatus.NO_SELECTION


def test_history_is_most_recent_first():
    session = _session()
    first = _upload(session, "sales.csv", SALES_CSV)
    second = _upload(session, "people.csv", PEOPLE_CSV)
    assert [item.id for item in session.history.list()] == [second.id, first.id]
    assert session.preview.record_id == second.id


def test_oversized_upload_leaves_state_untouched():
    session = _session(max_file_size=2 * 1024 * 1024)
    record = _upload(session, "sales.csv", SALES_CSV)
    session.set_measure_key("Region")
    big = b"a,b\n" + b"1,2\n" * (3 * 1024 * 1024 // 4)

    with pytest.raises(FileTooLarge):
        _upload(session, "big.csv", big)

    assert session.history.list() == (record,)
    assert session.preview.record_id == record.id
    assert session.selection.measure_key == "Region"


def test_unsupported_and_unparseable_uploads_leave_state_untouched():
    session = _session()
    record = _upload(session, "sales.csv", SALES_CSV)

    with pytest.raises(UnsupportedType):
        _upload(session, "data.bmp", b"BM....")
    with pytest.raises(ParseFailure):
        _upload(session, "broken.json", b"{oops")

    assert session.history.list() == (record,)
    assert session.preview == PreviewState.from_record(record)


def test_selecting_history_with_same_headers_keeps_selection():
    session = _session()
    first = _upload(session, "sales.csv", SALES_CSV)
    _upload(session, "sales-2.csv", OTHER_SALES_CSV)
    session.set_category_key("Sales")
    session.set_measure_key("Region")

    preview = session.select_for_preview(first.id)

    assert preview.record_id == first.id
    assert (session.selection.category_key, session.selection.measure_key) == ("Sales", "Region")


def test_selecting_history_with_different_headers_resets_selection():
    session = _session()
    people = _upload(session, "people.csv", PEOPLE_CSV)
    _upload(session, "sales.csv", SALES_CSV)
    session.set_graph_kind("Pie")
    session.set_measure_key("Region")

    session.select_for_preview(people.id)

    assert session.preview.headers == ("Name", "Age", "City")
    assert (session.selection.category_key, session.selection.measure_key) == ("Name", "Age")
    assert session.selection.graph_kind is GraphKind.PIE


def test_new_upload_always_resets_keys_even_with_same_headers():
    session = _session()
    _upload(session, "sales.csv", SALES_CSV)
    session.set_category_key("Sales")
    _upload(session, "sales-2.csv", OTHER_SALES_CSV)
    assert (session.selection.category_key, session.selection.measure_key) == ("Region", "Sales")


def test_selecting_history_does_not_remove_it():
    session = _session()
    record = _upload(session, "sales.csv", SALES_CSV)
    session.select_for_preview(record.id)
    assert len(session.history) == 1


def test_removing_any_record_clears_the_preview():
    session = _session()
    older = _upload(session, "sales.csv", SALES_CSV)
    newer = _upload(session, "people.csv", PEOPLE_CSV)
    assert session.preview.record_id == newer.id

    removed = session.remove(older.id)

    assert removed is older
    assert session.history.list() == (newer,)
    assert session.preview == PreviewState.empty()
    assert session.preview.to_dict() == {"recordId": None, "headers": [], "rows": []}
    assert (session.selection.category_key, session.selection.measure_key) == (None, None)


def test_unknown_records_raise_key_error_without_side_effects():
    session = _session()
    record = _upload(session, "sales.csv", SALES_CSV)
    with pytest.raises(KeyError):
        session.remove("missing")
    with pytest.raises(KeyError):
        session.select_for_preview("missing")
    assert session.preview.record_id == record.id


def test_download_returns_original_bytes():
    session = _session(preview_rows=1)
    record = _upload(session, "sales.csv", SALES_CSV, mime_type="text/csv")
    payload = session.download(record.id)
    assert payload.data == SALES_CSV
    assert payload.mime_type == "text/csv"
    assert payload.filename == "sales.csv"


def test_download_defaults_mime_type():
    session = _session()
    record = _upload(session, "sales.csv", SALES_CSV, mime_type="")
    assert HistoryStore.materialize_for_download(record).mime_type == "application/octet-stream"


def test_selection_keys_must_be_current_headers():
    session = _session()
    _upload(session, "sales.csv", SALES_CSV)
    with pytest.raises(ValueError):
        session.set_category_key("Nope")
    with pytest.raises(ValueError):
        session.set_graph_kind("Scatter")
    session.set_measure_key(None)
    assert session.chart_view().status is ChartStatus.NO_SELECTION


def test_non_numeric_measure_is_allowed_but_reported():
    session = _session()
    _upload(session, "sales.csv", SALES_CSV)
    session.set_measure_key("Region")
    view = session.chart_view()
    assert view.status is ChartStatus.NOT_NUMERIC
    assert session.chart_data() == []


def test_registry_tracks_sessions():
    registry = SessionRegistry(IngestionConfig(preview_rows=2))
    session = registry.create()
    assert registry.get(session.id) is session
    assert session.config.preview_rows == 2
    registry.drop(session.id)
    with pytest.raises(KeyError):
        registry.get(session.id)
