"""
Relational storage backend (SQLAlchemy).

Works against SQLite for single-operator installs and PostgreSQL for a
hosted database; every public call runs inside a session transaction.
"""
from contextlib import contextmanager
from datetime import timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from dock_tally.errors import StorageError
from dock_tally.models.base import build_engine, init_db, make_session_factory
from dock_tally.models.manifest import MasterListEntry, SnapshotRecord
from dock_tally.models.upload import Upload
from dock_tally.services.csv_schema import FIELD_NAMES
from dock_tally.storage.base import (
    FRL_ANY,
    FRL_WITH,
    Provenance,
    RecordCriteria,
    StorageBackend,
    UploadInfo,
)
from dock_tally.utils.helpers import as_text, chunk_list, utcnow
from dock_tally.utils.logger import log

INSERT_CHUNK_SIZE = 500


def _upload_info(row: Upload) -> UploadInfo:
    created = row.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return UploadInfo(
        upload_id=row.upload_id,
        filename=row.filename,
        row_count=row.row_count,
        created_at=created,
    )


class SqlStore(StorageBackend):
    """StorageBackend over a SQLAlchemy session factory."""

    name = "sql"

    def __init__(self, session_factory: sessionmaker, engine=None):
        self._session_factory = session_factory
        self.engine = engine
        self._session: Optional[Session] = None

    @classmethod
    def from_url(cls, database_url: str) -> "SqlStore":
        try:
            engine = build_engine(database_url)
            init_db(engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not initialise database: {exc}") from exc
        log.info(f"SQL storage ready ({engine.dialect.name})")
        return cls(make_session_factory(engine), engine)

    # ── transactions ────────────────────────────────────────────────
    @contextmanager
    def transaction(self) -> Iterator["SqlStore"]:
        if self._session is not None:
            # already inside a transaction; the outermost one commits
            yield self
            return

        db = self._session_factory()
        self._session = db
        try:
            yield self
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            log.error(f"SQL storage error, transaction rolled back: {exc}")
            raise StorageError(str(exc)) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            self._session = None
            db.close()

    # ── uploads ─────────────────────────────────────────────────────
    def create_upload(self, filename: str, row_count: int) -> str:
        with self.transaction():
            upload = Upload(
                upload_id=uuid4().hex,
                filename=filename,
                row_count=row_count,
                created_at=utcnow(),
            )
            self._session.add(upload)
            self._session.flush()
            return upload.upload_id

    def list_uploads(self) -> List[UploadInfo]:
        with self.transaction():
            rows = (
                self._session.query(Upload)
                .order_by(Upload.created_at.desc(), Upload.id.desc())
                .all()
            )
            return [_upload_info(r) for r in rows]

    def get_upload(self, upload_id: str) -> Optional[UploadInfo]:
        with self.transaction():
            row = self._session.query(Upload).filter(Upload.upload_id == upload_id).first()
            return _upload_info(row) if row else None

    def delete_upload(self, upload_id: str) -> bool:
        with self.transaction():
            db = self._session
            upload = db.query(Upload).filter(Upload.upload_id == upload_id).first()
            if upload is None:
                return False
            db.query(SnapshotRecord).filter(
                SnapshotRecord.upload_id == upload_id
            ).delete(synchronize_session=False)
            db.delete(upload)
            db.flush()
            return True

    # ── snapshot records ────────────────────────────────────────────
    def insert_records(self, upload_id: str, records: Sequence[Mapping[str, str]]) -> int:
        with self.transaction():
            db = self._session
            now = utcnow()
            for chunk in chunk_list(list(records), INSERT_CHUNK_SIZE):
                db.add_all([
                    SnapshotRecord(
                        upload_id=upload_id,
                        created_at=now,
                        **{name: as_text(r.get(name)) for name in FIELD_NAMES},
                    )
                    for r in chunk
                ])
                db.flush()
            return len(records)

    def query_records(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        if criteria.first_seen_upload_id or criteria.last_updated_upload_id or criteria.has_reason or criteria.reason_contains:
            # snapshot records carry no provenance
            return []
        with self.transaction():
            query = self._session.query(SnapshotRecord)
            if criteria.upload_id is not None:
                query = query.filter(SnapshotRecord.upload_id == criteria.upload_id)
            query = self._filter_frl(query, SnapshotRecord, criteria)
            rows = query.order_by(SnapshotRecord.id).all()
            return [r.to_dict() for r in rows]

    # ── master list ─────────────────────────────────────────────────
    def get_master_entry(self, key: str) -> Optional[Dict[str, Any]]:
        with self.transaction():
            row = self._session.query(MasterListEntry).filter(MasterListEntry.hb == key).first()
            return row.to_dict() if row else None

    def upsert_master_entry(self, key: str, fields: Mapping[str, str], provenance: Provenance) -> None:
        with self.transaction():
            db = self._session
            now = utcnow()
            entry = db.query(MasterListEntry).filter(MasterListEntry.hb == key).first()
            if entry is None:
                entry = MasterListEntry(hb=key, created_at=now)
                db.add(entry)
            for name in FIELD_NAMES:
                setattr(entry, name, as_text(fields.get(name)))
            entry.hb = key
            entry.first_seen_upload_id = provenance.first_seen_upload_id
            entry.last_updated_upload_id = provenance.last_updated_upload_id
            entry.last_update_reason = provenance.last_update_reason
            entry.updated_at = now
            # autoflush is off; later lookups in this session must see the row
            db.flush()

    def query_master_list(self, criteria: RecordCriteria) -> List[Dict[str, Any]]:
        if criteria.upload_id is not None:
            # master entries do not belong to an upload
            return []
        with self.transaction():
            query = self._session.query(MasterListEntry)
            query = self._filter_frl(query, MasterListEntry, criteria)
            if criteria.first_seen_upload_id is not None:
                query = query.filter(MasterListEntry.first_seen_upload_id == criteria.first_seen_upload_id)
            if criteria.last_updated_upload_id is not None:
                query = query.filter(MasterListEntry.last_updated_upload_id == criteria.last_updated_upload_id)
            if criteria.has_reason or criteria.reason_contains:
                query = query.filter(
                    MasterListEntry.last_update_reason.isnot(None),
                    MasterListEntry.last_update_reason != "",
                )
            rows = [r.to_dict() for r in query.order_by(MasterListEntry.id).all()]

        if criteria.reason_contains:
            # LIKE is case-insensitive on SQLite; match in Python to stay case-sensitive
            rows = [r for r in rows if criteria.reason_contains in r["last_update_reason"]]
        return rows

    # ── helpers ─────────────────────────────────────────────────────
    @staticmethod
    def _filter_frl(query, model, criteria: RecordCriteria):
        if criteria.frl == FRL_ANY:
            return query
        trimmed = func.trim(func.coalesce(model.frl, ""))
        if criteria.frl == FRL_WITH:
            return query.filter(trimmed != "")
        return query.filter(trimmed == "")

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
