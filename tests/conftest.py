"""
Shared fixtures: both storage backends, record / CSV builders.
"""
import os

# Keep test runs off the file log sinks and away from ./data
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("STORAGE_BACKEND", "local")

import pytest

from dock_tally.services.csv_schema import FIELD_NAMES, REQUIRED_COLUMNS
from dock_tally.storage.local_store import LocalStore
from dock_tally.storage.sql_store import SqlStore


def build_record(hb="", **fields):
    """Canonical record with every field present."""
    record = {name: "" for name in FIELD_NAMES}
    record["hb"] = hb
    record.update(fields)
    return record


def build_csv(rows, headers=None):
    """CSV text with the required headers; rows are dicts keyed by header label."""
    headers = headers or REQUIRED_COLUMNS
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(row.get(h, "") for h in headers))
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def make_csv():
    return build_csv


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "store.json"))


@pytest.fixture
def sql_store():
    store = SqlStore.from_url("sqlite://")
    yield store
    store.close()


@pytest.fixture(params=["local", "sql"])
def storage(request, tmp_path):
    """Runs a test once per backend; both must behave identically."""
    if request.param == "local":
        yield LocalStore(str(tmp_path / "store.json"))
    else:
        store = SqlStore.from_url("sqlite://")
        yield store
        store.close()
