"""
Column contract for ocean manifest CSV files.

The header row must carry all 17 columns below, spelled exactly. Extra
columns are allowed and ignored.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

# Source header -> canonical field name, in contract order
COLUMN_MAPPING: Dict[str, str] = {
    'CONTAINER': 'container',
    'SEAL #': 'seal_number',
    'CARRIER': 'carrier',
    'MBL': 'mbl',
    'MI': 'mi',
    'VESSEL': 'vessel',
    'HB': 'hb',
    'OUTER QUANTITY': 'outer_quantity',
    'PCS': 'pcs',
    'WT_LBS': 'wt_lbs',
    'CNEE': 'cnee',
    'FRL': 'frl',
    'FILE_NO': 'file_no',
    'DEST': 'dest',
    'VOLUME': 'volume',
    'VBOND#': 'vbond',
    'TDF': 'tdf',
}

REQUIRED_COLUMNS: List[str] = list(COLUMN_MAPPING.keys())
FIELD_NAMES: List[str] = list(COLUMN_MAPPING.values())
FIELD_LABELS: Dict[str, str] = {v: k for k, v in COLUMN_MAPPING.items()}

KEY_FIELD = 'hb'
DATE_FIELD = 'frl'
PRESENCE_FIELDS = ('container', 'hb', 'mbl')

# Fields whose transitions are recorded as a master-list update reason
TRACKED_FIELDS = ('frl', 'tdf', 'vbond')


@dataclass
class ValidationResult:
    ok: bool
    missing: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.ok:
            return "CSV is valid"
        return f"Missing required columns: {', '.join(self.missing)}"


def validate_columns(headers: Iterable[str]) -> ValidationResult:
    """Check a header row against REQUIRED_COLUMNS (exact match)."""
    present = set(h for h in headers if h is not None)
    missing = [col for col in REQUIRED_COLUMNS if col not in present]
    return ValidationResult(ok=not missing, missing=missing)
