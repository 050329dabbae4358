"""
Upload API

Ingest manifest CSV files, list and delete uploads, and compare an upload
with the one before it.
"""
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from dock_tally.api.deps import get_storage
from dock_tally.config import get_settings
from dock_tally.errors import SchemaError, StorageError, UploadNotFound
from dock_tally.services.diff_engine import DiffEngine
from dock_tally.services.ingestion_service import IngestionService
from dock_tally.services.snapshot_store import SnapshotStore
from dock_tally.storage import StorageBackend
from dock_tally.utils.logger import log

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("")
async def upload_manifest(
    file: UploadFile = File(...),
    storage: StorageBackend = Depends(get_storage),
):
    """
    Ingest a manifest CSV.

    Returns rows written and master-list counts. Files missing any of the 17
    required columns are rejected with 422 and nothing is stored.
    """
    filename = file.filename or "upload.csv"
    if not filename.lower().endswith(".csv"):
        raise HTTPException(status_code=422, detail="Only CSV files are supported")

    max_bytes = get_settings().max_upload_mb * 1024 * 1024
    # one byte past the limit is enough to reject
    raw = await file.read(max_bytes + 1)
    if len(raw) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File exceeds {get_settings().max_upload_mb} MB limit")

    try:
        result = IngestionService(storage).ingest(filename, raw)
    except SchemaError as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "missing_columns": e.missing})
    except StorageError as e:
        log.error(f"Upload of {filename} failed: {e}")
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return {
        "success": True,
        "data": result.to_dict(),
        "message": (
            f"Upload successful! {result.rows_written} rows, "
            f"{result.items_added} new items, {result.items_updated} updated"
        ),
    }


@router.get("")
async def list_uploads(storage: StorageBackend = Depends(get_storage)):
    """List uploads, newest first."""
    try:
        uploads = SnapshotStore(storage).list_uploads()
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return {
        "success": True,
        "data": {
            "uploads": [u.to_dict() for u in uploads],
            "count": len(uploads),
        }
    }


@router.delete("/{upload_id}")
async def delete_upload(upload_id: str, storage: StorageBackend = Depends(get_storage)):
    """Delete an upload and its snapshot. Master-list entries are kept."""
    try:
        SnapshotStore(storage).delete_upload(upload_id)
    except UploadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    log.info(f"Deleted upload {upload_id}")
    return {"success": True, "message": f"Upload {upload_id} deleted"}


@router.get("/{upload_id}/diff")
async def get_upload_diff(upload_id: str, storage: StorageBackend = Depends(get_storage)):
    """New / removed / updated counts against the previous upload."""
    try:
        summary = DiffEngine(SnapshotStore(storage)).summary(upload_id)
    except UploadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return {"success": True, "data": summary.to_dict()}
