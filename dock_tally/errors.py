"""
Domain exceptions raised by the ingestion and query services
"""
from typing import Iterable, List, Optional


class DockTallyError(Exception):
    """Base class for all service errors"""


class SchemaError(DockTallyError):
    """Required columns are missing from an uploaded file."""

    def __init__(self, missing: Iterable[str], message: Optional[str] = None):
        self.missing: List[str] = list(missing)
        super().__init__(message or f"Missing required columns: {', '.join(self.missing)}")


class StorageError(DockTallyError):
    """The storage backend failed to read or write."""


class UploadNotFound(DockTallyError):
    """No upload exists with the requested id."""

    def __init__(self, upload_id: str):
        self.upload_id = upload_id
        super().__init__(f"Upload not found: {upload_id}")
