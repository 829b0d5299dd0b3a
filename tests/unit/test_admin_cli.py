"""
Unit tests for the memory-admin CLI.
"""
import json

import pytest

from experience_memory.ops.admin import build_parser, main


@pytest.fixture
def cli(tmp_paths, monkeypatch, capsys):
    """Run the CLI against temp files and return (exit_code, stdout)."""
    for name in ("MEMORY_STORE_PATH", "MEMORY_VECTOR_PATH", "MEMORY_VECTOR_ENABLED", "MEMORY_AUTO_EXTRACT"):
        monkeypatch.delenv(name, raising=False)

    def run(*args):
        code = main(["--store", str(tmp_paths["store"]), "--vectors", str(tmp_paths["vectors"]), *args])
        return code, capsys.readouterr().out

    return run


def test_parser_requires_command():
    """Test that a subcommand is mandatory."""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_add_and_list(cli):
    """Test adding a memory and listing it back."""
    code, out = cli("add", "--user", "u1", "--key", "pref:color", "--value", '{"color": "blue"}')
    assert code == 0
    added = json.loads(out)
    assert added["success"] is True

    code, out = cli("list", "--user", "u1")
    listed = json.loads(out)
    assert code == 0
    assert [m["id"] for m in listed] == [added["id"]]
    assert listed[0]["value"] == {"color": "blue"}


def test_add_plain_text_value(cli):
    """Test that a non-JSON --value is stored as a string."""
    _, out = cli("add", "--key", "note", "--value", "蓝色")
    assert json.loads(out)["memory"]["value"] == "蓝色"


def test_add_with_vector_and_search(cli):
    """Test that --vector makes a memory searchable."""
    cli("add", "--user", "u1", "--key", "pref:color", "--value", "我喜欢蓝色", "--vector")

    code, out = cli("search", "蓝色")

    results = json.loads(out)["results"]
    assert code == 0
    assert results[0]["key"] == "pref:color"
    assert results[0]["score"] > 0


def test_consolidate(cli):
    """Test consolidation from the command line."""
    cli("add", "--user", "u1", "--key", "k", "--priority", "low")
    cli("add", "--user", "u1", "--key", "k", "--priority", "high")

    code, out = cli("consolidate", "--user", "u1", "--key", "k")

    result = json.loads(out)
    assert code == 0
    assert result["count"] == 1
    assert result["merged"]["priority"] == "high"


def test_purge(cli):
    """Test purging expired memories."""
    cli("add", "--key", "old", "--expires-at", "2000-01-01T00:00:00Z")
    cli("add", "--key", "keep")

    _, out = cli("purge")
    assert json.loads(out)["purged"] == 1


def test_export_csv_to_file(cli, tmp_path):
    """Test CSV export written to a file."""
    cli("add", "--key", "k", "--value", "v")
    target = tmp_path / "out.csv"

    code, out = cli("export", "--format", "csv", "--output", str(target))

    assert code == 0
    assert json.loads(out)["count"] == 1
    assert target.read_text(encoding="utf-8").startswith('"id","user_id"')


def test_learn_from_file(cli, tmp_path):
    """Test learning from a conversation JSON file."""
    chat = tmp_path / "chat.json"
    chat.write_text(json.dumps({"messages": [{"role": "user", "content": "我总是早起"}]}), encoding="utf-8")

    _, out = cli("learn", "--user", "u1", "--messages", str(chat))

    result = json.loads(out)
    assert result["learned"] == 1
    assert result["memories"][0]["type"] == "habit"


def test_learn_missing_file_fails(cli, tmp_path):
    """Test that a missing messages file exits with 1."""
    code, out = cli("learn", "--messages", str(tmp_path / "missing.json"))
    assert code == 1
    assert json.loads(out)["success"] is False


def test_invalid_add_fails(cli):
    """Test that an invalid entry exits with 1 and reports the error."""
    code, out = cli("add", "--key", "")
    assert code == 1
    assert "Invalid memory" in json.loads(out)["error"]


def test_reindex_and_stats(cli):
    """Test reindexing and the stats summary."""
    cli("add", "--user", "u1", "--key", "a", "--value", "blue sky")
    cli("add", "--user", "u2", "--key", "b", "--value", "red car")

    _, out = cli("reindex")
    assert json.loads(out)["indexed"] == 2

    _, out = cli("stats")
    stats = json.loads(out)
    assert stats["memories"] == 2
    assert stats["users"] == 2
    assert stats["vectors"] == 2


def test_no_vector_flag(cli):
    """Test that --no-vector disables the index."""
    _, out = cli("--no-vector", "stats")
    assert json.loads(out)["vectors"] is None


def test_forget_and_review_empty_store(cli):
    """Test forget and review on an empty store."""
    code, out = cli("forget")
    assert code == 0
    assert json.loads(out)["summary"]["total"] == 0

    code, out = cli("review")
    assert code == 0
    assert json.loads(out) == []
