"""
Unit tests for JSON/CSV export and JSON import.
"""
import json

import pytest

from experience_memory.memory import export


@pytest.fixture
def records(make_record):
    return [
        make_record(id="m1"),
        make_record(key="note", id="m2", value="plain, text", active=False, priority=None),
    ]


def test_json_shape(records):
    """Test the JSON export shape."""
    data = json.loads(export.to_json(records))
    assert [m["id"] for m in data["memories"]] == ["m1", "m2"]
    assert data["memories"][0]["value"] == {"color": "blue"}


def test_json_keeps_non_ascii(make_record):
    """Test that JSON export keeps non-ASCII text."""
    out = export.to_json([make_record(value="蓝色")])
    assert "蓝色" in out


def test_json_roundtrip(records):
    """Test export then import reproduces the records."""
    assert export.from_json(export.to_json(records)) == records


def test_from_json_accepts_bare_list(records):
    """Test importing a bare list of records."""
    payload = json.dumps([r.to_storage_dict() for r in records])
    assert [r.id for r in export.from_json(payload)] == ["m1", "m2"]


def test_from_json_rejects_wrong_shape():
    """Test that malformed payloads raise ValueError."""
    with pytest.raises(ValueError):
        export.from_json('"just a string"')
    with pytest.raises(ValueError):
        export.from_json("{broken")


def test_csv_header_and_quoting(records):
    """Test CSV columns and quoting."""
    lines = export.to_csv(records).splitlines()

    assert lines[0] == '"id","user_id","type","key","value","created_at","active","priority"'
    assert lines[1] == (
        '"m1","u1","preference","pref:color","{""color"": ""blue""}",'
        '"2025-06-01T12:00:00+00:00","true","medium"'
    )
    assert lines[2] == (
        '"m2","u1","preference","note","""plain, text""",'
        '"2025-06-01T12:00:00+00:00","false",""'
    )


def test_csv_empty():
    """Test CSV export with no records."""
    assert export.to_csv([]).strip() == '"id","user_id","type","key","value","created_at","active","priority"'


def test_export_records_dispatch(records):
    """Test format dispatch, including unknown formats."""
    assert export.export_records(records, "json").startswith("{")
    assert export.export_records(records, "CSV").startswith('"id"')
    assert export.export_records(records, "xml") is None
