"""
End-to-end ingestion tests (parse -> validate -> clean -> store -> reconcile).

Guards against:
1. Partially stored uploads when validation or storage fails
2. Dropping rows that have a container or MBL but no HB
"""
import pytest

from dock_tally.errors import SchemaError, StorageError
from dock_tally.services.csv_schema import REQUIRED_COLUMNS
from dock_tally.services.ingestion_service import IngestionService
from dock_tally.storage.base import RecordCriteria


def test_ingest_counts(storage, make_csv):
    content = make_csv([
        {"CONTAINER": "C1", "HB": "HB1", "MBL": "M1"},
        {"CONTAINER": "C1", "HB": "6.17E+08", "MBL": "M1"},
        {"CONTAINER": "C2", "MBL": "M2"},
        {"VESSEL": "EVER GIVEN"},
    ])
    result = IngestionService(storage).ingest("day1.csv", content.encode("utf-8"))

    assert result.filename == "day1.csv"
    assert result.rows_read == 4
    assert result.rows_written == 3
    assert result.rows_dropped == 1
    assert result.items_added == 2
    assert result.items_updated == 0
    assert result.missing_key == 1

    upload = storage.get_upload(result.upload_id)
    assert upload.row_count == 3
    assert storage.get_master_entry("617000000") is not None


def test_second_upload_updates_master(storage, make_csv):
    service = IngestionService(storage)
    service.ingest("day1.csv", make_csv([{"HB": "HB1"}, {"HB": "HB2"}]))
    second = service.ingest("day2.csv", make_csv([{"HB": "HB2", "FRL": "2024-03-01"}, {"HB": "HB3"}]))

    assert (second.items_added, second.items_updated) == (1, 1)
    assert len(storage.query_master_list(RecordCriteria())) == 3
    assert storage.get_master_entry("HB2")["last_update_reason"] == "FRL added"
    assert len(storage.list_uploads()) == 2


def test_missing_columns_write_nothing(storage):
    headers = [h for h in REQUIRED_COLUMNS if h != "FRL"]
    content = ",".join(headers) + "\n" + ",".join("x" for _ in headers) + "\n"

    with pytest.raises(SchemaError) as exc_info:
        IngestionService(storage).ingest("bad.csv", content)

    assert exc_info.value.missing == ["FRL"]
    assert "FRL" in str(exc_info.value)
    assert storage.list_uploads() == []
    assert storage.query_master_list(RecordCriteria()) == []


def test_header_only_file_creates_empty_upload(storage, make_csv):
    result = IngestionService(storage).ingest("empty.csv", make_csv([]))
    assert result.rows_written == 0
    assert len(storage.list_uploads()) == 1
    assert storage.query_records(RecordCriteria(upload_id=result.upload_id)) == []


def test_empty_file_is_a_schema_error(storage):
    with pytest.raises(SchemaError) as exc_info:
        IngestionService(storage).ingest("blank.csv", b"")
    assert exc_info.value.missing == REQUIRED_COLUMNS


def test_storage_failure_rolls_back_everything(storage, make_csv, monkeypatch):
    service = IngestionService(storage)
    service.ingest("day1.csv", make_csv([{"HB": "HB1"}]))

    def fail(*args, **kwargs):
        raise StorageError("disk full")

    monkeypatch.setattr(storage, "upsert_master_entry", fail)
    with pytest.raises(StorageError):
        service.ingest("day2.csv", make_csv([{"HB": "HB1", "FRL": "2024-03-01"}, {"HB": "HB2"}]))

    monkeypatch.undo()
    uploads = storage.list_uploads()
    assert [u.filename for u in uploads] == ["day1.csv"]
    assert storage.get_master_entry("HB2") is None
    assert storage.get_master_entry("HB1")["frl"] == ""
    assert len(storage.query_records(RecordCriteria())) == 1
