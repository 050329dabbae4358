"""
Master-List Reconciler

Maintains the HB-keyed catalog. Every sighting of a key overwrites the stored
entry with the incoming values; keys that disappear from later uploads are
left in place.
"""
from dataclasses import asdict, dataclass
from typing import Iterable, List, Mapping, Optional, Tuple

from dock_tally.services.csv_schema import FIELD_LABELS, FIELD_NAMES, TRACKED_FIELDS
from dock_tally.services.identifiers import record_key
from dock_tally.storage.base import Provenance, StorageBackend
from dock_tally.utils.helpers import as_text
from dock_tally.utils.logger import log


@dataclass
class ReconcileResult:
    added: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def describe_changes(existing: Mapping[str, object], incoming: Mapping[str, object]) -> Optional[str]:
    """
    Human-readable summary of tracked-field transitions, e.g. "FRL added".

    Returns None when no tracked field gained or changed a value.
    """
    changes: List[str] = []
    for name in TRACKED_FIELDS:
        old = as_text(existing.get(name)).strip()
        new = as_text(incoming.get(name)).strip()
        label = FIELD_LABELS[name]
        if not old and new:
            changes.append(f"{label} added")
        elif old and new and old != new:
            changes.append(f"{label} changed")
    return ", ".join(changes) if changes else None


def merge_entry(
    existing: Optional[Mapping[str, object]],
    incoming: Mapping[str, object],
    upload_id: str,
) -> Tuple[dict, Provenance]:
    """
    Field-by-field merge of an incoming record into a master-list entry.

    Every canonical field takes the incoming value, blanks included. For an
    existing entry the first-seen upload is kept and the update reason is
    recomputed; re-merging from the upload that last touched the entry keeps
    the reason it already has.
    """
    fields = {name: as_text(incoming.get(name)) for name in FIELD_NAMES}

    if existing is None:
        return fields, Provenance(first_seen_upload_id=upload_id, last_updated_upload_id=upload_id)

    reason = describe_changes(existing, incoming)
    if reason is None and existing.get("last_updated_upload_id") == upload_id:
        reason = existing.get("last_update_reason")

    provenance = Provenance(
        first_seen_upload_id=existing.get("first_seen_upload_id") or upload_id,
        last_updated_upload_id=upload_id,
        last_update_reason=reason,
    )
    return fields, provenance


class MasterListReconciler:
    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def reconcile(self, upload_id: str, records: Iterable[Mapping[str, object]]) -> ReconcileResult:
        """Upsert records into the master list; records without an HB are skipped."""
        result = ReconcileResult()

        with self.storage.transaction():
            for record in records:
                key = record_key(record)
                if not key:
                    result.skipped += 1
                    continue

                existing = self.storage.get_master_entry(key)
                fields, provenance = merge_entry(existing, record, upload_id)
                fields["hb"] = key
                self.storage.upsert_master_entry(key, fields, provenance)

                if existing is None:
                    result.added += 1
                else:
                    result.updated += 1

        if result.skipped:
            log.debug(f"Master list: skipped {result.skipped} record(s) without HB for upload {upload_id}")
        log.info(f"Master list reconciled for upload {upload_id}: {result.added} added, {result.updated} updated")
        return result
