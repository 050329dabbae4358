"""Storage backends and the configuration-driven factory"""
from dock_tally.storage.base import (
    FRL_ANY,
    FRL_WITH,
    FRL_WITHOUT,
    Provenance,
    RecordCriteria,
    StorageBackend,
    UploadInfo,
)


def create_storage(settings) -> StorageBackend:
    """Build the backend selected by settings.storage_backend."""
    backend = settings.storage_backend.strip().lower()
    if backend == "local":
        from dock_tally.storage.local_store import LocalStore
        return LocalStore(settings.local_store_path)
    if backend == "sql":
        from dock_tally.storage.sql_store import SqlStore
        return SqlStore.from_url(settings.database_url)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend!r} (expected 'local' or 'sql')")
