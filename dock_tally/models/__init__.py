"""Database models for the Dock Tally service"""

from dock_tally.models.upload import Upload

from dock_tally.models.manifest import (
    MasterListEntry,
    SnapshotRecord,
)
