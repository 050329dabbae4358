"""
Required-column contract tests.
"""
from dock_tally.services.csv_schema import (
    COLUMN_MAPPING,
    FIELD_NAMES,
    REQUIRED_COLUMNS,
    validate_columns,
)


def test_contract_has_seventeen_columns():
    assert len(REQUIRED_COLUMNS) == 17
    assert len(set(FIELD_NAMES)) == 17
    assert COLUMN_MAPPING["SEAL #"] == "seal_number"
    assert COLUMN_MAPPING["VBOND#"] == "vbond"


def test_all_required_columns_pass():
    result = validate_columns(REQUIRED_COLUMNS)
    assert result.ok
    assert result.missing == []
    assert result.message == "CSV is valid"


def test_extra_columns_are_tolerated():
    result = validate_columns(REQUIRED_COLUMNS + ["REMARKS", "EXTRA"])
    assert result.ok


def test_missing_columns_reported_in_contract_order():
    headers = [h for h in REQUIRED_COLUMNS if h not in ("TDF", "HB", "CARRIER")]
    result = validate_columns(headers)
    assert not result.ok
    assert result.missing == ["CARRIER", "HB", "TDF"]
    assert "CARRIER, HB, TDF" in result.message


def test_header_match_is_case_and_punctuation_exact():
    headers = [h for h in REQUIRED_COLUMNS if h not in ("HB", "SEAL #")] + ["hb", "SEAL#"]
    result = validate_columns(headers)
    assert result.missing == ["SEAL #", "HB"]


def test_empty_header_row_misses_everything():
    result = validate_columns([])
    assert result.missing == REQUIRED_COLUMNS
