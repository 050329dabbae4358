"""
Manifest record models

SnapshotRecord rows are immutable copies of one upload's cleaned CSV rows.
MasterListEntry is the HB-keyed catalog accumulated across all uploads.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship

from dock_tally.models.base import Base
from dock_tally.services.csv_schema import FIELD_NAMES
from dock_tally.utils.helpers import isoformat, utcnow


class ManifestFieldsMixin:
    """The 17 canonical manifest columns, stored as text."""

    container = Column(String, default="", index=True)
    seal_number = Column(String, default="")
    carrier = Column(String, default="")
    mbl = Column(String, default="", index=True)
    mi = Column(String, default="")
    vessel = Column(String, default="")
    hb = Column(String, default="", index=True)
    outer_quantity = Column(String, default="")
    pcs = Column(String, default="")
    wt_lbs = Column(String, default="")
    cnee = Column(String, default="")
    frl = Column(String, default="")
    file_no = Column(String, default="")
    dest = Column(String, default="")
    volume = Column(String, default="")
    vbond = Column(String, default="")
    tdf = Column(String, default="")

    def field_values(self) -> dict:
        return {name: getattr(self, name) or "" for name in FIELD_NAMES}


class SnapshotRecord(ManifestFieldsMixin, Base):
    """One cleaned CSV row belonging to exactly one upload"""
    __tablename__ = "snapshot_records"

    id = Column(Integer, primary_key=True, index=True)
    upload_id = Column(
        String(32),
        ForeignKey("uploads.upload_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    upload = relationship("Upload", back_populates="records")

    def to_dict(self) -> dict:
        data = {"id": str(self.id), "upload_id": self.upload_id}
        data.update(self.field_values())
        return data

    def __repr__(self):
        return f"<SnapshotRecord {self.upload_id}:{self.hb or '-'}>"


class MasterListEntry(ManifestFieldsMixin, Base):
    """Unique catalog row per normalized HB"""
    __tablename__ = "master_list"

    id = Column(Integer, primary_key=True, index=True)
    hb = Column(String, unique=True, nullable=False, index=True)

    # Provenance - weak references, deleting an upload leaves these alone
    first_seen_upload_id = Column(String(32), nullable=False, index=True)
    last_updated_upload_id = Column(String(32), nullable=False, index=True)
    last_update_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self) -> dict:
        data = {"id": str(self.id)}
        data.update(self.field_values())
        data.update({
            "first_seen_upload_id": self.first_seen_upload_id,
            "last_updated_upload_id": self.last_updated_upload_id,
            "last_update_reason": self.last_update_reason,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        })
        return data

    def __repr__(self):
        return f"<MasterListEntry {self.hb} (last {self.last_updated_upload_id})>"
