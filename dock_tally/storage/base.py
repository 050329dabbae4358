"""
Storage backend contract.

Both implementations (LocalStore, SqlStore) must be interchangeable: the
services only ever talk to StorageBackend.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from dock_tally.services.csv_schema import DATE_FIELD
from dock_tally.utils.helpers import as_text, isoformat

FRL_ANY = "all"
FRL_WITH = "with"
FRL_WITHOUT = "without"


@dataclass(frozen=True)
class UploadInfo:
    """One ingestion event."""
    upload_id: str
    filename: str
    row_count: int
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "upload_id": self.upload_id,
            "filename": self.filename,
            "row_count": self.row_count,
            "created_at": isoformat(self.created_at),
        }


@dataclass(frozen=True)
class RecordCriteria:
    """
    Declarative record selection understood by every backend.

    Unset attributes do not constrain the result. reason_contains matches
    case-sensitively against last_update_reason and implies a reason is set.
    """
    upload_id: Optional[str] = None
    frl: str = FRL_ANY
    first_seen_upload_id: Optional[str] = None
    last_updated_upload_id: Optional[str] = None
    has_reason: bool = False
    reason_contains: Optional[str] = None

    def matches(self, row: Mapping[str, Any]) -> bool:
        """Python evaluation, used by backends without a query language."""
        if self.upload_id is not None and row.get("upload_id") != self.upload_id:
            return False
        if self.frl != FRL_ANY:
            has_frl = as_text(row.get(DATE_FIELD)).strip() != ""
            if has_frl != (self.frl == FRL_WITH):
                return False
        if self.first_seen_upload_id is not None and row.get("first_seen_upload_id") != self.first_seen_upload_id:
            return False
        if self.last_updated_upload_id is not None and row.get("last_updated_upload_id") != self.last_updated_upload_id:
            return False
        reason = row.get("last_update_reason")
        if (self.has_reason or self.reason_contains) and not reason:
            return False
        if self.reason_contains and self.reason_contains not in reason:
            return False
        return True


@dataclass(frozen=True)
class Provenance:
    """Master-list bookkeeping written alongside an entry's fields."""
    first_seen_upload_id: str
    last_updated_upload_id: str
    last_update_reason: Optional[str] = None


class StorageBackend(ABC):
    """Persistence operations consumed by the services."""

    name = "abstract"

    # ── uploads ─────────────────────────────────────────────────────
    @abstractmethod
    def create_upload(self, filename: str, row_count: int) -> str:
        """Record a new upload and return its generated id."""

    @abstractmethod
    def list_uploads(self) -> List[UploadInfo]:
        """All uploads, newest first."""

    @abstractmethod
    def get_upload(self, upload_id: str) -> Optional[UploadInfo]:
        ...

    @abstractmethod
    def delete_upload(self, upload_id: str) -> bool:
        """Delete an upload and its snapshot records. False if it did not exist."""

    # ── snapshot records ────────────────────────────────────────────
    @abstractmethod
    def insert_records(self, upload_id: str, records: Sequence[Mapping[str, str]]) -> int:
        """Append records to an upload's snapshot in one batch."""

    @abstractmethod
    def query_records(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        """Snapshot records matching criteria, in insertion order."""

    # ── master list ─────────────────────────────────────────────────
    @abstractmethod
    def get_master_entry(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def upsert_master_entry(self, key: str, fields: Mapping[str, str], provenance: Provenance) -> None:
        """Insert or fully replace the entry stored under key."""

    @abstractmethod
    def query_master_list(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        """Master-list entries matching criteria, in first-seen order."""

    # ── lifecycle ───────────────────────────────────────────────────
    @contextmanager
    def transaction(self) -> Iterator["StorageBackend"]:
        """
        Group several calls into one all-or-nothing unit.

        Calls made outside a transaction are each atomic on their own.
        """
        yield self

    def close(self) -> None:
        pass
