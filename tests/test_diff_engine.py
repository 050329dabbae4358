"""
Snapshot diff tests.

Guards against:
1. Keyless rows leaking into removed / updated
2. Comparing with the wrong predecessor once several uploads exist
"""
import pytest

from dock_tally.errors import UploadNotFound
from dock_tally.services.diff_engine import DiffEngine, diff_snapshots
from dock_tally.services.snapshot_store import SnapshotStore


def _snapshot(store, records, name="manifest.csv"):
    upload_id = store.create_upload(name, len(records))
    store.save_snapshot(upload_id, records)
    return upload_id


def _keys(records):
    return sorted(r["hb"] for r in records)


# ---------------------------------------------------------------------------
# diff_snapshots
# ---------------------------------------------------------------------------

def test_new_and_removed_by_key(make_record):
    previous = [make_record(k) for k in ("1", "2", "3")]
    current = [make_record(k) for k in ("2", "3", "4")]
    diff = diff_snapshots(current, previous)
    assert _keys(diff.new) == ["4"]
    assert _keys(diff.removed) == ["1"]
    assert diff.updated == []


def test_first_upload_is_all_new(make_record):
    current = [make_record("1"), make_record("", container="C1")]
    diff = diff_snapshots(current, None)
    assert len(diff.new) == 2
    assert diff.removed == diff.updated == diff.new_frl == []


def test_keyless_records_are_excluded(make_record):
    previous = [make_record("", container="C1"), make_record("nan", container="C2")]
    current = [make_record("", container="C3")]
    diff = diff_snapshots(current, previous)
    assert diff.new == diff.removed == diff.updated == []


def test_updated_and_new_frl(make_record):
    previous = [make_record("1"), make_record("2", frl="2024-01-01"), make_record("3", pcs="5")]
    current = [make_record("1", frl="2024-03-01"), make_record("2", frl="2024-02-01"), make_record("3", pcs="5")]
    diff = diff_snapshots(current, previous)
    assert _keys(diff.updated) == ["1", "2"]
    assert _keys(diff.new_frl) == ["1"]


def test_exponent_keys_match_their_expansion(make_record):
    diff = diff_snapshots([make_record("617000000")], [make_record("6.17E+08")])
    assert diff.new == diff.removed == []


# ---------------------------------------------------------------------------
# DiffEngine over storage
# ---------------------------------------------------------------------------

def test_compares_with_immediate_predecessor(storage, make_record):
    store = SnapshotStore(storage)
    engine = DiffEngine(store)
    _snapshot(store, [make_record("A"), make_record("B")])
    u2 = _snapshot(store, [make_record("B"), make_record("C")])
    u3 = _snapshot(store, [make_record("C"), make_record("D")])

    assert _keys(engine.new_items(u3)) == ["D"]
    assert _keys(engine.removed_items(u3)) == ["B"]
    assert _keys(engine.new_items(u2)) == ["C"]
    assert _keys(engine.removed_items(u2)) == ["A"]
    assert engine.count_updated(u3) == 0


def test_summary_counts(storage, make_record):
    store = SnapshotStore(storage)
    engine = DiffEngine(store)
    u1 = _snapshot(store, [make_record("1"), make_record("2"), make_record("3")])
    u2 = _snapshot(store, [make_record("2", frl="2024-03-01"), make_record("3"), make_record("4")])

    summary = engine.summary(u2).to_dict()
    assert summary == {
        "upload_id": u2,
        "previous_upload_id": u1,
        "new_items": 1,
        "removed_items": 1,
        "updated_items": 1,
        "new_frl": 1,
    }
    assert engine.summary(u1).previous_upload_id is None
    assert engine.count_new(u1) == 3


def test_unknown_upload_raises(storage):
    engine = DiffEngine(SnapshotStore(storage))
    with pytest.raises(UploadNotFound):
        engine.compare("does-not-exist")
