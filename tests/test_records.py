import pytest
from pydantic import ValidationError

from conftest import HEADER, THREE_ROWS, makeRecord, writeRoster
from csrbatch.common.errors import DuplicateAlias, InvalidRecord
from csrbatch.common.records import IdentityRecord, loadRoster


def test_load_roster_keeps_order(tmp_path):
    path = writeRoster(tmp_path / "roster.csv", THREE_ROWS)
    records = loadRoster(path)
    assert [r.alias for r in records] == ["A1", "A2", "A3"]
    assert records[1].generationSuffix == "II"
    assert records[0].keyPassword is None


def test_headers_are_case_insensitive_and_password_optional(tmp_path):
    header = ["LNAME", "FName", "MI", "Gen", "SAN", "DODID", "Alias"]
    rows = [["Doe", "John", "Q", "", "j@example.mil", "1000000001", "A1"]]
    records = loadRoster(writeRoster(tmp_path / "r.csv", rows, header=header))
    assert records[0].firstName == "John"
    assert records[0].keyPassword is None


def test_whitespace_is_stripped_and_blank_rows_ignored(tmp_path):
    rows = [[" Doe ", "John", "Q", " ", "j@example.mil", " 1000000001 ", "pw", " A1 "],
            ["", "", "", "", "", "", "", ""]]
    records = loadRoster(writeRoster(tmp_path / "r.csv", rows))
    assert len(records) == 1
    assert records[0].alias == "A1"
    assert records[0].dodId == "1000000001"
    assert records[0].keyPassword == "pw"


def test_empty_alias_fails_fast(tmp_path):
    rows = [THREE_ROWS[0], ["Roe", "Jane", "R", "", "j@example.mil", "1000000002", "", ""]]
    with pytest.raises(InvalidRecord, match="row 3"):
        loadRoster(writeRoster(tmp_path / "r.csv", rows))


def test_empty_dodid_fails_fast(tmp_path):
    rows = [["Roe", "Jane", "R", "", "j@example.mil", "", "", "A9"]]
    with pytest.raises(InvalidRecord):
        loadRoster(writeRoster(tmp_path / "r.csv", rows))


def test_missing_column(tmp_path):
    header = [h for h in HEADER if h != "dodid"]
    rows = [["Doe", "John", "Q", "", "j@example.mil", "", "A1"]]
    with pytest.raises(InvalidRecord, match="dodid"):
        loadRoster(writeRoster(tmp_path / "r.csv", rows, header=header))


def test_alias_with_path_separator_is_invalid():
    with pytest.raises(InvalidRecord):
        IdentityRecord.fromRow({"lname": "Doe", "fname": "J", "mi": "", "gen": "",
                                "san": "j@example.mil", "dodid": "1", "alias": "../x"})


def test_duplicate_alias_is_rejected(tmp_path):
    rows = [THREE_ROWS[0], ["Roe", "Jane", "R", "", "j@example.mil", "1000000002", "", "a1"]]
    with pytest.raises(DuplicateAlias, match="alias"):
        loadRoster(writeRoster(tmp_path / "r.csv", rows))


def test_canonical_name_collision_is_rejected(tmp_path):
    rows = [THREE_ROWS[0], ["Doe", "John", "Q", "", "other@example.mil", "1000000001", "", "B1"]]
    with pytest.raises(DuplicateAlias, match="canonical name"):
        loadRoster(writeRoster(tmp_path / "r.csv", rows))


def test_records_are_immutable():
    rec = makeRecord()
    with pytest.raises(ValidationError):
        rec.alias = "other"
