"""
Upload - one successful ingestion of a manifest CSV.
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from dock_tally.models.base import Base
from dock_tally.utils.helpers import utcnow


class Upload(Base):
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, index=True)          # creation sequence
    upload_id = Column(String(32), unique=True, nullable=False, index=True)  # uuid4 hex
    filename = Column(String, nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    records = relationship(
        "SnapshotRecord",
        back_populates="upload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Upload {self.upload_id} {self.filename} ({self.row_count} rows)>"
