"""
HTTP API tests against an in-memory local store.
"""
import pytest
from fastapi.testclient import TestClient

from dock_tally.api.deps import get_storage
from dock_tally.config import get_settings
from dock_tally.errors import StorageError
from dock_tally.main import app
from dock_tally.services.csv_schema import REQUIRED_COLUMNS
from dock_tally.storage.local_store import LocalStore


@pytest.fixture
def store():
    return LocalStore(None)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_storage] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def _post(client, content, filename="manifest.csv"):
    return client.post("/uploads", files={"file": (filename, content.encode("utf-8"), "text/csv")})


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_upload_and_list(client, make_csv):
    response = _post(client, make_csv([{"HB": "HB1", "CONTAINER": "C1"}, {"CONTAINER": "C2"}]))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["rows_written"] == 2
    assert body["data"]["items_added"] == 1

    listed = client.get("/uploads").json()["data"]
    assert listed["count"] == 1
    assert listed["uploads"][0]["upload_id"] == body["data"]["upload_id"]


def test_upload_missing_columns(client):
    headers = [h for h in REQUIRED_COLUMNS if h not in ("HB", "TDF")]
    response = _post(client, ",".join(headers) + "\n")
    assert response.status_code == 422
    assert response.json()["detail"]["missing_columns"] == ["HB", "TDF"]
    assert client.get("/uploads").json()["data"]["count"] == 0


def test_upload_rejects_non_csv(client, make_csv):
    response = _post(client, make_csv([{"HB": "HB1"}]), filename="manifest.xlsx")
    assert response.status_code == 422


def test_records_with_duplicates(client, make_csv):
    _post(client, make_csv([
        {"HB": "HB1", "CONTAINER": "C1"},
        {"HB": "HB2", "CONTAINER": "C1"},
    ]))
    data = client.get("/records", params={"mode": "snapshot"}).json()["data"]
    assert data["count"] == 2
    assert data["duplicates"] == {"hb": [], "container": ["C1"]}


def test_records_bad_filter(client):
    response = client.get("/records", params={"filter": "stale"})
    assert response.status_code == 422


def test_records_unknown_upload(client):
    response = client.get("/records", params={"mode": "snapshot", "upload_id": "missing"})
    assert response.status_code == 404


def test_metrics_and_diff(client, make_csv):
    _post(client, make_csv([{"HB": "HB1"}, {"HB": "HB2"}]))
    second = _post(client, make_csv([{"HB": "HB2", "FRL": "2024-03-01"}, {"HB": "HB3"}])).json()["data"]

    metrics = client.get("/records/metrics").json()["data"]
    assert metrics["total_rows"] == 3
    assert metrics["new_items"] == 1
    assert metrics["updated_items"] == 1

    diff = client.get(f"/uploads/{second['upload_id']}/diff").json()["data"]
    assert (diff["new_items"], diff["removed_items"], diff["updated_items"]) == (1, 1, 1)


def test_export(client, make_csv):
    assert client.get("/records/export").status_code == 404

    _post(client, make_csv([{"HB": "HB1", "FRL": "2024-03-01"}, {"HB": "HB2"}]))
    response = client.get("/records/export", params={"filter": "with_frl"})
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    lines = response.text.splitlines()
    assert lines[0] == ",".join(REQUIRED_COLUMNS)
    assert len(lines) == 2


def test_dock_tally(client, make_csv):
    _post(client, make_csv([{"HB": "HB1", "MBL": "M1"}, {"HB": "HB2"}]))
    data = client.get("/records/dock-tally").json()["data"]
    assert data["count"] == 2
    assert [g["mbl"] for g in data["groups"]] == ["M1", "NO MBL"]


def test_delete_upload(client, make_csv):
    upload_id = _post(client, make_csv([{"HB": "HB1"}])).json()["data"]["upload_id"]
    assert client.delete(f"/uploads/{upload_id}").status_code == 200
    assert client.delete(f"/uploads/{upload_id}").status_code == 404
    assert client.get("/records", params={"mode": "master"}).json()["data"]["count"] == 1


def test_upload_over_size_limit(client, make_csv, monkeypatch):
    monkeypatch.setattr(get_settings(), "max_upload_mb", 0)
    response = _post(client, make_csv([{"HB": "HB1"}]))
    assert response.status_code == 413
    monkeypatch.undo()
    assert client.get("/uploads").json()["data"]["count"] == 0


# ---------------------------------------------------------------------------
# Storage failures surface as 503, not 500
# ---------------------------------------------------------------------------

def _fail(*args, **kwargs):
    raise StorageError("db down")


@pytest.mark.parametrize("path", [
    "/uploads",
    "/records",
    "/records/metrics",
    "/records/dock-tally",
])
def test_read_failures_return_503(client, store, monkeypatch, path):
    monkeypatch.setattr(store, "list_uploads", _fail)
    monkeypatch.setattr(store, "query_master_list", _fail)
    response = client.get(path)
    assert response.status_code == 503
    assert "db down" in response.json()["detail"]


def test_diff_failure_returns_503(client, store, make_csv, monkeypatch):
    upload_id = _post(client, make_csv([{"HB": "HB1"}])).json()["data"]["upload_id"]
    monkeypatch.setattr(store, "query_records", _fail)
    response = client.get(f"/uploads/{upload_id}/diff")
    assert response.status_code == 503
