"""
Diff Engine - snapshot-to-snapshot comparison by HB key.

Compares an upload with the one created immediately before it:

    new      current records whose key is absent from the previous snapshot
    removed  previous records whose key is absent from the current snapshot
    updated  current records whose key exists in the previous snapshot with
             different field values
    new_frl  current records whose FRL was blank in the previous snapshot

Records without a usable key never appear in removed/updated/new_frl. An
upload with no predecessor reports every current record as new.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from dock_tally.services.csv_schema import DATE_FIELD, FIELD_NAMES
from dock_tally.services.identifiers import record_key
from dock_tally.services.snapshot_store import SnapshotStore
from dock_tally.utils.helpers import as_text


@dataclass
class SnapshotDiff:
    new: List[dict] = field(default_factory=list)
    removed: List[dict] = field(default_factory=list)
    updated: List[dict] = field(default_factory=list)
    new_frl: List[dict] = field(default_factory=list)


@dataclass
class DiffSummary:
    upload_id: str
    previous_upload_id: Optional[str]
    new_items: int
    removed_items: int
    updated_items: int
    new_frl: int

    def to_dict(self) -> dict:
        return {
            "upload_id": self.upload_id,
            "previous_upload_id": self.previous_upload_id,
            "new_items": self.new_items,
            "removed_items": self.removed_items,
            "updated_items": self.updated_items,
            "new_frl": self.new_frl,
        }


def _fields_differ(a: Mapping[str, object], b: Mapping[str, object]) -> bool:
    return any(as_text(a.get(name)) != as_text(b.get(name)) for name in FIELD_NAMES)


def diff_snapshots(current: Sequence[dict], previous: Optional[Sequence[dict]]) -> SnapshotDiff:
    """Compare two record sets in O(n) using key sets."""
    if previous is None:
        return SnapshotDiff(new=list(current))

    # last record wins when a key repeats inside one snapshot
    previous_by_key: Dict[str, dict] = {}
    for record in previous:
        key = record_key(record)
        if key:
            previous_by_key[key] = record

    current_keys = set()
    for record in current:
        key = record_key(record)
        if key:
            current_keys.add(key)

    diff = SnapshotDiff()
    for record in current:
        key = record_key(record)
        if not key:
            continue
        before = previous_by_key.get(key)
        if before is None:
            diff.new.append(record)
            continue
        if _fields_differ(record, before):
            diff.updated.append(record)
        if not as_text(before.get(DATE_FIELD)).strip() and as_text(record.get(DATE_FIELD)).strip():
            diff.new_frl.append(record)

    for record in previous:
        key = record_key(record)
        if key and key not in current_keys:
            diff.removed.append(record)

    return diff


class DiffEngine:
    def __init__(self, snapshots: SnapshotStore):
        self.snapshots = snapshots

    def compare(self, upload_id: str) -> SnapshotDiff:
        current = self.snapshots.get_snapshot(upload_id)
        previous_id = self.snapshots.previous_upload_id(upload_id)
        previous = self.snapshots.get_snapshot(previous_id) if previous_id else None
        return diff_snapshots(current, previous)

    def new_items(self, upload_id: str) -> List[dict]:
        return self.compare(upload_id).new

    def removed_items(self, upload_id: str) -> List[dict]:
        return self.compare(upload_id).removed

    def updated_items(self, upload_id: str) -> List[dict]:
        return self.compare(upload_id).updated

    def new_frl_items(self, upload_id: str) -> List[dict]:
        return self.compare(upload_id).new_frl

    def count_new(self, upload_id: str) -> int:
        return len(self.new_items(upload_id))

    def count_removed(self, upload_id: str) -> int:
        return len(self.removed_items(upload_id))

    def count_updated(self, upload_id: str) -> int:
        return len(self.updated_items(upload_id))

    def summary(self, upload_id: str) -> DiffSummary:
        diff = self.compare(upload_id)
        return DiffSummary(
            upload_id=upload_id,
            previous_upload_id=self.snapshots.previous_upload_id(upload_id),
            new_items=len(diff.new),
            removed_items=len(diff.removed),
            updated_items=len(diff.updated),
            new_frl=len(diff.new_frl),
        )
