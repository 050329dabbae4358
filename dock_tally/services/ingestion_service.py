"""
Manifest Ingestion Service

validate -> clean -> (create upload, append snapshot, reconcile master list)

The storage step runs in a single transaction, so an upload is either fully
recorded (upload row, snapshot records, master-list changes) or not at all.
"""
import csv
from dataclasses import asdict, dataclass
from typing import Union

from dock_tally.errors import SchemaError, StorageError
from dock_tally.services.csv_io import read_csv
from dock_tally.services.csv_schema import REQUIRED_COLUMNS, validate_columns
from dock_tally.services.identifiers import record_key
from dock_tally.services.reconciler import MasterListReconciler
from dock_tally.services.row_cleaner import clean_rows
from dock_tally.services.snapshot_store import SnapshotStore
from dock_tally.storage.base import StorageBackend
from dock_tally.utils.logger import log


@dataclass
class IngestionResult:
    upload_id: str
    filename: str
    rows_read: int
    rows_written: int
    rows_dropped: int
    items_added: int
    items_updated: int
    missing_key: int

    def to_dict(self) -> dict:
        return asdict(self)


class IngestionService:
    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self.snapshots = SnapshotStore(storage)
        self.reconciler = MasterListReconciler(storage)

    def ingest(self, filename: str, content: Union[bytes, str]) -> IngestionResult:
        """
        Ingest one manifest CSV.

        Raises SchemaError before anything is written if required columns
        are missing, StorageError if the backend fails (nothing is kept).
        """
        try:
            parsed = read_csv(content)
        except csv.Error as exc:
            raise SchemaError(REQUIRED_COLUMNS, message=f"Unreadable CSV: {exc}") from exc

        validation = validate_columns(parsed.headers)
        if not validation.ok:
            log.warning(f"Rejected {filename}: {validation.message}")
            raise SchemaError(validation.missing)

        records = clean_rows(parsed.rows)
        missing_key = sum(1 for r in records if not record_key(r))

        try:
            with self.storage.transaction():
                upload_id = self.snapshots.create_upload(filename, len(records))
                written = self.snapshots.save_snapshot(upload_id, records)
                outcome = self.reconciler.reconcile(upload_id, records)
        except StorageError as exc:
            log.error(f"Ingestion of {filename} failed, nothing was saved: {exc}")
            raise

        result = IngestionResult(
            upload_id=upload_id,
            filename=filename,
            rows_read=len(parsed.rows),
            rows_written=written,
            rows_dropped=len(parsed.rows) - written,
            items_added=outcome.added,
            items_updated=outcome.updated,
            missing_key=missing_key,
        )
        log.info(
            f"Ingested {filename} as {upload_id}: {result.rows_written}/{result.rows_read} rows, "
            f"{result.items_added} new, {result.items_updated} updated, {result.missing_key} without HB"
        )
        return result
