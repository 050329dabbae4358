"""
Query/Filter Facade

Single surface for fetching rows by mode (one upload's snapshot or the master
list) and named view, with optional free-text search applied afterwards.
Also computes the dashboard metrics and the dock tally grouping by MBL.
"""
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dock_tally.services.csv_schema import DATE_FIELD, FIELD_NAMES
from dock_tally.services.diff_engine import DiffEngine
from dock_tally.services.identifiers import record_key
from dock_tally.services.snapshot_store import SnapshotStore
from dock_tally.storage.base import FRL_ANY, FRL_WITH, FRL_WITHOUT, RecordCriteria, StorageBackend
from dock_tally.utils.helpers import as_text

MODE_SNAPSHOT = "snapshot"
MODE_MASTER = "master"
MODES = (MODE_SNAPSHOT, MODE_MASTER)

SEARCH_ALL = "all"
NO_MBL = "NO MBL"


class ViewFilter(str, Enum):
    ALL = "all"
    WITH_FRL = "with_frl"
    WITHOUT_FRL = "without_frl"
    NEW_ITEMS = "new_items"
    UPDATED_ITEMS = "updated_items"
    REMOVED_ITEMS = "removed_items"
    NEW_FRL = "new_frl"


_FRL_VIEWS = {
    ViewFilter.ALL: FRL_ANY,
    ViewFilter.WITH_FRL: FRL_WITH,
    ViewFilter.WITHOUT_FRL: FRL_WITHOUT,
}


def _parse_view(value) -> ViewFilter:
    try:
        return ViewFilter(value)
    except ValueError:
        options = ", ".join(v.value for v in ViewFilter)
        raise ValueError(f"Unknown filter '{value}'. Expected one of: {options}")


def has_frl(record: Mapping[str, Any]) -> bool:
    return as_text(record.get(DATE_FIELD)).strip() != ""


def search_records(
    records: Iterable[Mapping[str, Any]],
    search_text: Optional[str],
    search_field: str = SEARCH_ALL,
) -> List[Mapping[str, Any]]:
    """Case-insensitive substring match over all canonical fields or one of them."""
    if search_field != SEARCH_ALL and search_field not in FIELD_NAMES:
        raise ValueError(f"Unknown search field '{search_field}'")

    records = list(records)
    if not search_text or not search_text.strip():
        return records

    needle = search_text.strip().lower()
    fields = FIELD_NAMES if search_field == SEARCH_ALL else [search_field]
    return [
        r for r in records
        if any(needle in as_text(r.get(name)).lower() for name in fields)
    ]


def group_by_mbl(records: Iterable[Mapping[str, Any]]) -> Dict[str, dict]:
    """
    Group records for the dock tally report.

    Keys keep first-seen order; records without an MBL go under "NO MBL".
    Containers are listed once each, in first-seen order.
    """
    grouped: Dict[str, dict] = {}
    for record in records:
        mbl = as_text(record.get("mbl")).strip() or NO_MBL
        group = grouped.setdefault(mbl, {"mbl": mbl, "containers": [], "items": []})
        container = as_text(record.get("container")).strip()
        if container and container not in group["containers"]:
            group["containers"].append(container)
        group["items"].append(record)
    return grouped


class QueryService:
    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self.snapshots = SnapshotStore(storage)
        self.diff = DiffEngine(self.snapshots)

    # ── rows ────────────────────────────────────────────────────────
    def query(
        self,
        mode: str,
        filter: str = ViewFilter.ALL.value,
        search_text: Optional[str] = None,
        search_field: str = SEARCH_ALL,
        upload_id: Optional[str] = None,
    ) -> List[dict]:
        """
        Rows for a mode and named view, then narrowed by search.

        In snapshot mode upload_id defaults to the latest upload; with no
        uploads at all the result is empty.
        """
        view = _parse_view(filter)
        if mode == MODE_SNAPSHOT:
            rows = self._snapshot_rows(upload_id, view)
        elif mode == MODE_MASTER:
            rows = self._master_rows(view)
        else:
            raise ValueError(f"Unknown mode '{mode}'. Expected one of: {', '.join(MODES)}")
        return search_records(rows, search_text, search_field)

    def _snapshot_rows(self, upload_id: Optional[str], view: ViewFilter) -> List[dict]:
        upload_id = upload_id or self.snapshots.latest_upload_id()
        if upload_id is None:
            return []

        if view in _FRL_VIEWS:
            return self.snapshots.get_snapshot(upload_id, view.value)

        diff = self.diff.compare(upload_id)
        if view == ViewFilter.NEW_ITEMS:
            return diff.new
        if view == ViewFilter.UPDATED_ITEMS:
            return diff.updated
        if view == ViewFilter.REMOVED_ITEMS:
            return diff.removed
        return diff.new_frl

    def _master_rows(self, view: ViewFilter) -> List[dict]:
        if view in _FRL_VIEWS:
            return self.storage.query_master_list(RecordCriteria(frl=_FRL_VIEWS[view]))

        latest = self.snapshots.latest_upload_id()
        if latest is None:
            return []

        if view == ViewFilter.NEW_ITEMS:
            return self.storage.query_master_list(RecordCriteria(first_seen_upload_id=latest))
        if view == ViewFilter.UPDATED_ITEMS:
            return self.storage.query_master_list(
                RecordCriteria(last_updated_upload_id=latest, has_reason=True)
            )
        if view == ViewFilter.REMOVED_ITEMS:
            # the catalog keeps every key; removals only exist between snapshots
            return self.diff.removed_items(latest)
        return self.storage.query_master_list(
            RecordCriteria(last_updated_upload_id=latest, reason_contains="FRL")
        )

    # ── metrics ─────────────────────────────────────────────────────
    def metrics(self, mode: str, upload_id: Optional[str] = None) -> Dict[str, Any]:
        """Counts behind the dashboard metric cards."""
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}'. Expected one of: {', '.join(MODES)}")

        latest = self.snapshots.latest_upload_id()
        target = (upload_id or latest) if mode == MODE_SNAPSHOT else latest

        if mode == MODE_SNAPSHOT:
            rows = self.snapshots.get_snapshot(target) if target else []
        else:
            rows = self.storage.query_master_list(RecordCriteria())

        with_frl = sum(1 for r in rows if has_frl(r))
        result = {
            "mode": mode,
            "upload_id": target,
            "total_rows": len(rows),
            "with_frl": with_frl,
            "without_frl": len(rows) - with_frl,
            "unique_mbls": len({as_text(r.get("mbl")).strip() for r in rows} - {""}),
            "new_items": 0,
            "updated_items": 0,
            "removed_items": 0,
            "new_frl": 0,
            "missing_key": 0,
        }
        if target is None:
            return result

        diff = self.diff.compare(target)
        snapshot = rows if mode == MODE_SNAPSHOT else self.snapshots.get_snapshot(target)
        result["removed_items"] = len(diff.removed)
        result["missing_key"] = sum(1 for r in snapshot if not record_key(r))

        if mode == MODE_SNAPSHOT:
            result["new_items"] = len(diff.new)
            result["updated_items"] = len(diff.updated)
            result["new_frl"] = len(diff.new_frl)
        else:
            result["new_items"] = len(self._master_rows(ViewFilter.NEW_ITEMS))
            result["updated_items"] = len(self._master_rows(ViewFilter.UPDATED_ITEMS))
            result["new_frl"] = len(self._master_rows(ViewFilter.NEW_FRL))
        return result

    # ── dock tally ──────────────────────────────────────────────────
    def dock_tally(self, upload_id: Optional[str] = None) -> Dict[str, dict]:
        """MBL grouping of one upload's snapshot, or of the master list."""
        if upload_id:
            records = self.snapshots.get_snapshot(upload_id)
        else:
            records = self.storage.query_master_list(RecordCriteria())
        return group_by_mbl(records)
