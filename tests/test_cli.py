"""Tests for the sentinel-memory CLI.

Covers every read/manage subcommand against a store in a temporary
workspace, output formats, partial ID lookup, and error exits.
"""

from __future__ import annotations

import json

import pytest

from sentinel_memory.cli import main
from sentinel_memory.memory import CreateMemoryInput
from sentinel_memory.store import MemoryStore

# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def populated(workspace):
    """A workspace with three memories; yields ``(workspace, ids)``."""
    with MemoryStore(workspace) as s:
        ids = [
            s.create(CreateMemoryInput(content="loves dark mode UI", tags=["ui"], importance=8)).id,
            s.create(CreateMemoryInput(content="deploys with docker", memory_type="auto")).id,
            s.create(CreateMemoryInput(content="pinned fact", is_pinned=True)).id,
        ]
    return workspace, ids


def _run(workspace, *args: str) -> int:
    return main(["--workspace", str(workspace), *args])


def _field(out: str, label: str) -> str:
    """Value printed after *label* on its own line."""
    for line in out.splitlines():
        if line.strip().startswith(label):
            return line.strip()[len(label):].strip()
    raise AssertionError(f"{label!r} not in output")


# ------------------------------------------------------------------
# No command / no store
# ------------------------------------------------------------------


def test_no_command_prints_help(capsys):
    """Running without a subcommand prints usage and succeeds."""
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_missing_store_is_an_error(workspace, capsys):
    """The CLI reports a missing store instead of creating one."""
    assert _run(workspace, "list") == 1
    assert "No memory store found" in capsys.readouterr().err
    assert not (workspace / ".sentinelops").exists()


def test_workspace_from_environment(populated, monkeypatch, capsys):
    """SENTINEL_WORKSPACE selects the workspace when --workspace is absent."""
    workspace, _ = populated
    monkeypatch.setenv("SENTINEL_WORKSPACE", str(workspace))
    assert main(["stats"]) == 0
    assert "Total memories:" in capsys.readouterr().out


# ------------------------------------------------------------------
# list
# ------------------------------------------------------------------


def test_list_table(populated, capsys):
    """The default table shows contents and a page summary."""
    workspace, _ = populated
    assert _run(workspace, "list") == 0
    out = capsys.readouterr().out
    assert "loves dark mode UI" in out
    assert "Showing 3 of 3 memories" in out


def test_list_json_with_filters(populated, capsys):
    """JSON output honours the pinned pseudo-type."""
    workspace, ids = populated
    assert _run(workspace, "list", "--type", "pinned", "--format", "json") == 0
    data = json.loads(capsys.readouterr().out)
    assert [m["id"] for m in data] == [ids[2]]


def test_list_by_tag(populated, capsys):
    """--tag restricts the listing to tagged memories."""
    workspace, ids = populated
    assert _run(workspace, "list", "--tag", "ui", "--format", "json") == 0
    assert [m["id"] for m in json.loads(capsys.readouterr().out)] == [ids[0]]


def test_list_empty(workspace, capsys):
    """An empty store says so."""
    MemoryStore(workspace).close()
    assert _run(workspace, "list") == 0
    assert "No memories found." in capsys.readouterr().out


# ------------------------------------------------------------------
# search
# ------------------------------------------------------------------


def test_search(populated, capsys):
    """Keyword search prints matches and a result count."""
    workspace, _ = populated
    assert _run(workspace, "search", "docker") == 0
    out = capsys.readouterr().out
    assert "deploys with docker" in out
    assert '1 result(s) for "docker"' in out


def test_search_json(populated, capsys):
    """JSON search output carries the match type."""
    workspace, ids = populated
    assert _run(workspace, "search", "dark mode", "--format", "json") == 0
    data = json.loads(capsys.readouterr().out)
    assert data[0]["memory"]["id"] == ids[0]
    assert data[0]["match_type"] == "keyword"


def test_search_no_results(populated, capsys):
    """A query without hits prints a notice."""
    workspace, _ = populated
    assert _run(workspace, "search", "kubernetes") == 0
    assert "No memories found" in capsys.readouterr().out


def test_search_bad_query(populated, capsys):
    """Malformed FTS5 syntax exits non-zero with the error on stderr."""
    workspace, _ = populated
    assert _run(workspace, "search", '"dark') == 1
    assert "Invalid search query" in capsys.readouterr().err


# ------------------------------------------------------------------
# show
# ------------------------------------------------------------------


def test_show_full_id(populated, capsys):
    """show prints every field of a memory."""
    workspace, ids = populated
    assert _run(workspace, "show", ids[0]) == 0
    out = capsys.readouterr().out
    assert f"Memory {ids[0]}" in out
    assert _field(out, "Tags:") == "ui"
    assert "loves dark mode UI" in out


def test_show_prefix(populated, capsys):
    """An unambiguous ID prefix is enough for show."""
    workspace, ids = populated
    assert _run(workspace, "show", ids[1][:8]) == 0
    assert "deploys with docker" in capsys.readouterr().out


def test_show_unknown(populated, capsys):
    """An unknown ID exits non-zero."""
    workspace, _ = populated
    assert _run(workspace, "show", "zzzzzzzz") == 1
    assert "No memory found" in capsys.readouterr().err


# ------------------------------------------------------------------
# stats and settings
# ------------------------------------------------------------------


def test_stats(populated, capsys):
    """stats prints totals, pinned and per-type counts."""
    workspace, _ = populated
    assert _run(workspace, "stats") == 0
    out = capsys.readouterr().out
    assert _field(out, "Total memories:") == "3"
    assert _field(out, "Pinned:") == "1"
    assert _field(out, "auto:") == "1"


def test_settings_show_and_update(populated, capsys):
    """settings prints current values and persists changes."""
    workspace, _ = populated
    assert _run(workspace, "settings") == 0
    assert "similarity_threshold:" in capsys.readouterr().out

    assert _run(workspace, "settings", "--auto-extract", "off", "--threshold", "0.5") == 0
    capsys.readouterr()
    with MemoryStore(workspace) as s:
        settings = s.get_settings()
    assert settings.auto_extract_enabled is False
    assert settings.similarity_threshold == 0.5
