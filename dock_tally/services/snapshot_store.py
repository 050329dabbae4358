"""
Snapshot Store - append-only access to per-upload record sets.

No update operation is exposed; corrections arrive as a new upload.
"""
from typing import Dict, List, Mapping, Optional, Sequence

from dock_tally.errors import UploadNotFound
from dock_tally.storage.base import FRL_ANY, FRL_WITH, FRL_WITHOUT, RecordCriteria, StorageBackend, UploadInfo

# Named snapshot views -> FRL presence constraint
SNAPSHOT_FILTERS: Dict[str, str] = {
    "all": FRL_ANY,
    "with_frl": FRL_WITH,
    "without_frl": FRL_WITHOUT,
}


def frl_constraint(filter_name: str) -> str:
    try:
        return SNAPSHOT_FILTERS[filter_name]
    except KeyError:
        raise ValueError(
            f"Unknown snapshot filter '{filter_name}'. Expected one of: {', '.join(SNAPSHOT_FILTERS)}"
        )


class SnapshotStore:
    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def create_upload(self, filename: str, row_count: int) -> str:
        return self.storage.create_upload(filename, row_count)

    def save_snapshot(self, upload_id: str, records: Sequence[Mapping[str, str]]) -> int:
        """Append a whole snapshot in one atomic write; returns the count written."""
        with self.storage.transaction():
            return self.storage.insert_records(upload_id, records)

    def get_snapshot(self, upload_id: str, filter: str = "all") -> List[dict]:
        frl = frl_constraint(filter)
        self.require_upload(upload_id)
        return self.storage.query_records(RecordCriteria(upload_id=upload_id, frl=frl))

    def list_uploads(self) -> List[UploadInfo]:
        """Uploads, newest first"""
        return self.storage.list_uploads()

    def require_upload(self, upload_id: str) -> UploadInfo:
        upload = self.storage.get_upload(upload_id)
        if upload is None:
            raise UploadNotFound(upload_id)
        return upload

    def delete_upload(self, upload_id: str) -> None:
        """Delete an upload and, with it, its snapshot records."""
        if not self.storage.delete_upload(upload_id):
            raise UploadNotFound(upload_id)

    def latest_upload_id(self) -> Optional[str]:
        uploads = self.storage.list_uploads()
        return uploads[0].upload_id if uploads else None

    def previous_upload_id(self, upload_id: str) -> Optional[str]:
        """The upload created immediately before upload_id, if any."""
        uploads = self.storage.list_uploads()
        for idx, upload in enumerate(uploads):
            if upload.upload_id == upload_id:
                if idx + 1 < len(uploads):
                    return uploads[idx + 1].upload_id
                return None
        raise UploadNotFound(upload_id)
