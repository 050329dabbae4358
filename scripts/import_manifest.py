#!/usr/bin/env python3
"""
Manifest Import Script

Ingests ocean manifest CSV files into the configured storage backend
(STORAGE_BACKEND=local|sql), oldest file first.

Usage:
    python scripts/import_manifest.py exports/manifest-0301.csv exports/manifest-0302.csv
    python scripts/import_manifest.py --list
"""
import sys
import argparse
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dock_tally.config import get_settings
from dock_tally.errors import SchemaError, StorageError
from dock_tally.services.diff_engine import DiffEngine
from dock_tally.services.ingestion_service import IngestionService
from dock_tally.services.snapshot_store import SnapshotStore
from dock_tally.storage import create_storage


def import_file(path: Path, storage) -> bool:
    """Ingest one file and print its summary. Returns False on failure."""
    print(f"\n{'='*60}")
    print(f"IMPORTING: {path.name}")
    print(f"{'='*60}")

    try:
        result = IngestionService(storage).ingest(path.name, path.read_bytes())
    except SchemaError as e:
        print(f"  REJECTED: {e}")
        return False
    except StorageError as e:
        print(f"  FAILED (nothing saved): {e}")
        return False

    summary = DiffEngine(SnapshotStore(storage)).summary(result.upload_id)
    print(f"  Upload id:      {result.upload_id}")
    print(f"  Rows in file:   {result.rows_read:,}")
    print(f"  Rows written:   {result.rows_written:,} ({result.rows_dropped:,} dropped)")
    print(f"  Without HB:     {result.missing_key:,}")
    print(f"  Master list:    {result.items_added:,} new, {result.items_updated:,} updated")
    print(f"  vs previous:    {summary.new_items:,} new, {summary.removed_items:,} removed, "
          f"{summary.updated_items:,} updated")
    return True


def list_uploads(storage):
    uploads = SnapshotStore(storage).list_uploads()
    if not uploads:
        print("No uploads yet")
        return
    for u in uploads:
        print(f"{u.created_at:%Y-%m-%d %H:%M}  {u.upload_id}  {u.row_count:>6,} rows  {u.filename}")


def main():
    parser = argparse.ArgumentParser(description='Import manifest CSV files')
    parser.add_argument('files', nargs='*', help='CSV files to import, oldest first')
    parser.add_argument('--list', action='store_true', help='List existing uploads and exit')

    args = parser.parse_args()

    settings = get_settings()
    storage = create_storage(settings)
    try:
        if args.list:
            list_uploads(storage)
            return 0

        if not args.files:
            parser.error('no files given')

        failures = 0
        for name in args.files:
            path = Path(name)
            if not path.is_file():
                print(f"File not found: {path}")
                failures += 1
                continue
            if not import_file(path, storage):
                failures += 1
        return 1 if failures else 0
    finally:
        storage.close()


if __name__ == '__main__':
    sys.exit(main())
