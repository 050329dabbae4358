"""
CSV decoding, parsing and export tests.
"""
from dock_tally.services.csv_io import decode_bytes, export_csv, read_csv
from dock_tally.services.csv_schema import REQUIRED_COLUMNS
from dock_tally.services.row_cleaner import clean_rows


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def test_utf8_bom_is_stripped(make_csv):
    raw = b"\xef\xbb\xbf" + make_csv([{"HB": "HB1"}]).encode("utf-8")
    parsed = read_csv(raw)
    assert parsed.headers == REQUIRED_COLUMNS
    assert parsed.rows[0]["HB"] == "HB1"


def test_bom_inside_text_is_stripped(make_csv):
    parsed = read_csv("\ufeff" + make_csv([{"HB": "HB1"}]))
    assert parsed.headers[0] == "CONTAINER"


def test_non_utf8_upload_is_decoded(make_csv):
    rows = [{"HB": f"HB{i}", "CNEE": "Café Importadora Ltda", "DEST": "São Paulo"} for i in range(20)]
    raw = make_csv(rows).encode("latin-1")
    parsed = read_csv(raw)
    assert parsed.headers == REQUIRED_COLUMNS
    assert len(parsed.rows) == 20
    assert parsed.rows[0]["CNEE"].startswith("Caf")
    assert parsed.rows[0]["CNEE"].endswith("Importadora Ltda")


def test_plain_utf8_is_decoded_as_is():
    assert decode_bytes("MSCU1234567,Zürich".encode("utf-8")) == "MSCU1234567,Zürich"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_blank_lines_are_skipped(make_csv):
    text = make_csv([{"HB": "HB1"}])
    text += "," * (len(REQUIRED_COLUMNS) - 1) + "\n\n"
    text += make_csv([{"HB": "HB2"}]).split("\n", 1)[1]
    parsed = read_csv(text)
    assert [r["HB"] for r in parsed.rows] == ["HB1", "HB2"]


def test_header_only_file_has_no_rows(make_csv):
    parsed = read_csv(make_csv([]))
    assert parsed.headers == REQUIRED_COLUMNS
    assert parsed.rows == []


def test_quoted_values_keep_commas():
    headers = ",".join(REQUIRED_COLUMNS)
    values = ['"ACME, INC"' if h == "CNEE" else ("HB1" if h == "HB" else "") for h in REQUIRED_COLUMNS]
    parsed = read_csv(headers + "\n" + ",".join(values) + "\n")
    assert parsed.rows[0]["CNEE"] == "ACME, INC"


def test_empty_content():
    parsed = read_csv("")
    assert parsed.headers == []
    assert parsed.rows == []


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def test_export_uses_ingestion_headers(make_record):
    text = export_csv([make_record("HB1", container="C1", frl="2024-03-01")])
    lines = text.splitlines()
    assert lines[0] == ",".join(REQUIRED_COLUMNS)
    assert lines[1].startswith("C1,")
    assert "2024-03-01" in lines[1]


def test_export_can_be_ingested_again(make_record):
    records = [
        make_record("HB1", container="C1", mbl="M1", cnee="ACME, INC"),
        make_record("617000000", container="C2", frl="2024-03-01"),
    ]
    parsed = read_csv(export_csv(records))
    assert parsed.headers == REQUIRED_COLUMNS
    assert clean_rows(parsed.rows) == records


def test_export_ignores_bookkeeping_fields(make_record):
    record = make_record("HB1")
    record.update({"id": "7", "upload_id": "abc", "last_update_reason": "FRL added"})
    text = export_csv([record])
    assert "FRL added" not in text
    assert "abc" not in text
