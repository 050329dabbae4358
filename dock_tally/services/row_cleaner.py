"""
Row admission and canonicalization for parsed manifest rows.
"""
from typing import Dict, Iterable, List, Mapping, Optional

from dock_tally.services.csv_schema import COLUMN_MAPPING, FIELD_NAMES, KEY_FIELD, PRESENCE_FIELDS
from dock_tally.services.identifiers import normalize_identifier
from dock_tally.utils.helpers import as_text


def is_present(value: Optional[str]) -> bool:
    """A value counts as present unless blank or the literal 'nan'."""
    if value is None:
        return False
    text = as_text(value).strip()
    return text != '' and text.lower() != 'nan'


def clean_row(row: Mapping[str, object]) -> Dict[str, str]:
    """Map one raw row to canonical field names, trimmed, with HB normalized."""
    record = {name: '' for name in FIELD_NAMES}
    for header, value in row.items():
        name = COLUMN_MAPPING.get(header)
        if name is None:
            continue
        record[name] = as_text(value).strip()
    record[KEY_FIELD] = normalize_identifier(record[KEY_FIELD])
    return record


def is_admissible(record: Mapping[str, str]) -> bool:
    """Keep a record if any presence field (container, HB, MBL) carries a value."""
    return any(is_present(record.get(name)) for name in PRESENCE_FIELDS)


def clean_rows(rows: Iterable[Mapping[str, object]]) -> List[Dict[str, str]]:
    """
    Canonicalize rows and drop those with no container, HB or MBL.

    Rows are dropped only when all three presence fields are empty; a row with
    just a container (or just an MBL) is kept even though it has no key.
    """
    cleaned = []
    for row in rows:
        record = clean_row(row)
        if is_admissible(record):
            cleaned.append(record)
    return cleaned
