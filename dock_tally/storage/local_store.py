"""
In-process persistent key-value backend.

The whole store is one JSON document kept in memory and rewritten atomically
(temp file + os.replace) after every committed transaction:

    {
      "version": 1,
      "seq": <last upload sequence number>,
      "uploads": [ {upload_id, filename, row_count, created_at, seq}, ... ],
      "records": { upload_id: [record, ...] },
      "master": { hb: entry }
    }
"""
import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence
from uuid import uuid4

from dock_tally.errors import StorageError
from dock_tally.services.csv_schema import FIELD_NAMES
from dock_tally.storage.base import Provenance, RecordCriteria, StorageBackend, UploadInfo
from dock_tally.utils.helpers import as_text, isoformat, parse_isoformat, utcnow
from dock_tally.utils.logger import log

STORE_VERSION = 1


def _empty_document() -> dict:
    return {"version": STORE_VERSION, "seq": 0, "uploads": [], "records": {}, "master": {}}


class LocalStore(StorageBackend):
    """
    StorageBackend backed by a JSON document on disk.

    path=None keeps everything in memory, which is handy for tests and
    one-off comparisons.
    """

    name = "local"

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._depth = 0
        self._data = self._load()

    # ── persistence ─────────────────────────────────────────────────
    def _load(self) -> dict:
        if self.path is None or not self.path.exists():
            return _empty_document()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read local store {self.path}: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != STORE_VERSION:
            raise StorageError(f"Unsupported local store format in {self.path}")
        log.info(f"Loaded local store {self.path} ({len(data['uploads'])} uploads, {len(data['master'])} master entries)")
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    @contextmanager
    def transaction(self) -> Iterator["LocalStore"]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            backup = copy.deepcopy(self._data)
            self._depth = 1
            try:
                yield self
                self._flush()
            except OSError as exc:
                self._data = backup
                log.error(f"Local store write failed, changes discarded: {exc}")
                raise StorageError(f"Could not write local store {self.path}: {exc}") from exc
            except BaseException:
                self._data = backup
                raise
            finally:
                self._depth = 0

    # ── uploads ─────────────────────────────────────────────────────
    def create_upload(self, filename: str, row_count: int) -> str:
        with self.transaction():
            self._data["seq"] += 1
            upload_id = uuid4().hex
            self._data["uploads"].append({
                "upload_id": upload_id,
                "filename": filename,
                "row_count": row_count,
                "created_at": isoformat(utcnow()),
                "seq": self._data["seq"],
            })
            self._data["records"][upload_id] = []
            return upload_id

    def list_uploads(self) -> List[UploadInfo]:
        with self._lock:
            uploads = sorted(self._data["uploads"], key=lambda u: u["seq"], reverse=True)
            return [self._upload_info(u) for u in uploads]

    def get_upload(self, upload_id: str) -> Optional[UploadInfo]:
        with self._lock:
            for u in self._data["uploads"]:
                if u["upload_id"] == upload_id:
                    return self._upload_info(u)
            return None

    def delete_upload(self, upload_id: str) -> bool:
        with self.transaction():
            uploads = self._data["uploads"]
            remaining = [u for u in uploads if u["upload_id"] != upload_id]
            if len(remaining) == len(uploads):
                return False
            self._data["uploads"] = remaining
            self._data["records"].pop(upload_id, None)
            return True

    @staticmethod
    def _upload_info(raw: dict) -> UploadInfo:
        return UploadInfo(
            upload_id=raw["upload_id"],
            filename=raw["filename"],
            row_count=raw["row_count"],
            created_at=parse_isoformat(raw["created_at"]),
        )

    # ── snapshot records ────────────────────────────────────────────
    def insert_records(self, upload_id: str, records: Sequence[Mapping[str, str]]) -> int:
        with self.transaction():
            if self.get_upload(upload_id) is None:
                raise StorageError(f"Cannot insert records for unknown upload {upload_id}")
            bucket = self._data["records"].setdefault(upload_id, [])
            for r in records:
                row = {"id": uuid4().hex, "upload_id": upload_id}
                row.update({name: as_text(r.get(name)) for name in FIELD_NAMES})
                bucket.append(row)
            return len(records)

    def query_records(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        with self._lock:
            if criteria.upload_id is not None:
                candidates = self._data["records"].get(criteria.upload_id, [])
            else:
                candidates = [r for u in self._data["uploads"] for r in self._data["records"].get(u["upload_id"], [])]
            return [dict(r) for r in candidates if criteria.matches(r)]

    # ── master list ─────────────────────────────────────────────────
    def get_master_entry(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._data["master"].get(key)
            return dict(entry) if entry is not None else None

    def upsert_master_entry(self, key: str, fields: Mapping[str, str], provenance: Provenance) -> None:
        with self.transaction():
            now = isoformat(utcnow())
            master = self._data["master"]
            existing = master.get(key)
            entry = {
                "id": existing["id"] if existing else uuid4().hex,
                **{name: as_text(fields.get(name)) for name in FIELD_NAMES},
                "first_seen_upload_id": provenance.first_seen_upload_id,
                "last_updated_upload_id": provenance.last_updated_upload_id,
                "last_update_reason": provenance.last_update_reason,
                "created_at": existing["created_at"] if existing else now,
                "updated_at": now,
            }
            entry["hb"] = key
            master[key] = entry

    def query_master_list(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._data["master"].values() if criteria.matches(e)]
