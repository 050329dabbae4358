"""
Records API

Query facade over snapshots and the master list, plus metrics, CSV export,
duplicate highlighting and the dock tally grouping.
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from dock_tally.api.deps import get_storage
from dock_tally.config import get_settings
from dock_tally.errors import StorageError, UploadNotFound
from dock_tally.services.csv_io import export_csv
from dock_tally.services.duplicates import find_duplicates
from dock_tally.services.query_service import MODE_MASTER, SEARCH_ALL, QueryService, ViewFilter
from dock_tally.storage import StorageBackend

router = APIRouter(prefix="/records", tags=["records"])


def _run_query(storage, mode, filter, search, field, upload_id):
    try:
        return QueryService(storage).query(
            mode,
            filter=filter,
            search_text=search,
            search_field=field,
            upload_id=upload_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UploadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")


@router.get("")
async def get_records(
    mode: str = Query(MODE_MASTER, description="snapshot or master"),
    filter: str = Query(ViewFilter.ALL.value, description="Named view, e.g. with_frl, new_items"),
    search: Optional[str] = Query(None, description="Case-insensitive search text"),
    field: str = Query(SEARCH_ALL, description="Field to search, or 'all'"),
    upload_id: Optional[str] = Query(None, description="Upload for snapshot mode (default: latest)"),
    storage: StorageBackend = Depends(get_storage),
):
    """Rows for a mode and filter, with duplicate HB / container values flagged."""
    rows = _run_query(storage, mode, filter, search, field, upload_id)
    duplicates = find_duplicates(rows)

    return {
        "success": True,
        "data": {
            "rows": rows,
            "count": len(rows),
            "duplicates": {column: sorted(values) for column, values in duplicates.items()},
        }
    }


@router.get("/metrics")
async def get_metrics(
    mode: str = Query(MODE_MASTER, description="snapshot or master"),
    upload_id: Optional[str] = Query(None, description="Upload for snapshot mode (default: latest)"),
    storage: StorageBackend = Depends(get_storage),
):
    """Counts for the metric cards (totals, FRL split, new/updated/removed)."""
    try:
        data = QueryService(storage).metrics(mode, upload_id=upload_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except UploadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return {"success": True, "data": data}


@router.get("/export")
async def export_records(
    mode: str = Query(MODE_MASTER),
    filter: str = Query(ViewFilter.ALL.value),
    search: Optional[str] = Query(None),
    field: str = Query(SEARCH_ALL),
    upload_id: Optional[str] = Query(None),
    storage: StorageBackend = Depends(get_storage),
):
    """Download the currently filtered rows as CSV (same headers as ingestion)."""
    rows = _run_query(storage, mode, filter, search, field, upload_id)
    if not rows:
        raise HTTPException(status_code=404, detail="No data to export")

    filename = f"{get_settings().export_filename_prefix}_{date.today().isoformat()}.csv"
    return Response(
        content=export_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/dock-tally")
async def get_dock_tally(
    upload_id: Optional[str] = Query(None, description="Upload to report on (default: master list)"),
    storage: StorageBackend = Depends(get_storage),
):
    """Records grouped by MBL for the dock tally report."""
    try:
        groups = QueryService(storage).dock_tally(upload_id)
    except UploadNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=503, detail=f"Storage unavailable: {e}")

    return {
        "success": True,
        "data": {
            "groups": list(groups.values()),
            "count": len(groups),
        }
    }
