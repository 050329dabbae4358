"""
CSV decoding, parsing and export for manifest files.

Responsibilities:
- encoding detection of uploaded bytes (charset-normalizer)
- header + row parsing with the stdlib csv module
- export of canonical records using the ingestion header labels
"""
import csv
import io
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Union

from charset_normalizer import from_bytes

from dock_tally.services.csv_schema import FIELD_LABELS, FIELD_NAMES
from dock_tally.utils.helpers import as_text
from dock_tally.utils.logger import log

_UTF8_BOM = b"\xef\xbb\xbf"


@dataclass
class ParsedCsv:
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)


def decode_bytes(raw: bytes) -> str:
    """
    Decode uploaded bytes to text.

    A UTF-8 BOM wins outright; otherwise UTF-8 is tried before asking
    charset-normalizer for its best guess.
    """
    if raw.startswith(_UTF8_BOM):
        return raw.decode("utf-8-sig")

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass

    match = from_bytes(raw).best()
    if match is not None:
        log.debug(f"Decoding upload as {match.encoding}")
        return str(match)

    log.warning("Could not detect upload encoding, decoding as UTF-8 with replacement")
    return raw.decode("utf-8", errors="replace")


def read_csv(content: Union[bytes, str]) -> ParsedCsv:
    """Parse CSV content into its header row and a list of row dicts."""
    text = decode_bytes(content) if isinstance(content, (bytes, bytearray)) else content
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text, newline=""))
    headers = list(reader.fieldnames or [])

    rows = []
    for row in reader:
        # skip lines that are entirely empty (",,,," included)
        if not any(as_text(v).strip() for k, v in row.items() if k is not None):
            continue
        rows.append(row)

    return ParsedCsv(headers=headers, rows=rows)


def export_csv(records: Iterable[Mapping[str, object]]) -> str:
    """Serialize records with the ingestion header labels, in contract order."""
    out = io.StringIO(newline="")
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow([FIELD_LABELS[name] for name in FIELD_NAMES])
    for record in records:
        writer.writerow([as_text(record.get(name)) for name in FIELD_NAMES])
    return out.getvalue()
