"""
Shared FastAPI dependencies
"""
from functools import lru_cache

from dock_tally.config import get_settings
from dock_tally.storage import StorageBackend, create_storage
from dock_tally.utils.logger import log


@lru_cache()
def get_storage() -> StorageBackend:
    """Storage backend selected by configuration, created once per process"""
    settings = get_settings()
    storage = create_storage(settings)
    log.info(f"Using {storage.name} storage backend")
    return storage
