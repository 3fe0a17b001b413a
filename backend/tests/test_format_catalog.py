"""Tests for the format catalog loaded from JSON files."""

import json

from app.services.format_catalog import available_formats, get_format, list_formats


def test_bundled_formats_load():
    keys = {f.format_key for f in list_formats()}
    assert {"8_teams_random", "4_teams"} <= keys


def test_bundled_8_team_format():
    fmt = get_format("8_teams_random")
    assert fmt is not None
    assert (fmt.min_teams, fmt.max_teams) == (8, 8)
    assert fmt.total_matches == 12


def test_available_formats_by_team_count():
    assert [f.format_key for f in available_formats(4)] == ["4_teams"]
    assert available_formats(3) == []


def test_custom_directory_and_invalid_files_skipped(tmp_path):
    good = {
        "format_name": "Duel",
        "description": "Single match",
        "min_players": 2,
        "max_players": 2,
        "matches": [{"id": 1, "order_index": 1, "team1_source": "TS1", "team2_source": "TS2"}],
    }
    forward_ref = {
        "format_name": "Broken",
        "matches": [{"id": 1, "order_index": 1, "team1_source": "winner_2", "team2_source": "TS2"},
                    {"id": 2, "order_index": 2, "team1_source": "TS3", "team2_source": "TS4"}],
    }
    (tmp_path / "format_duel.json").write_text(json.dumps(good))
    (tmp_path / "format_broken.json").write_text(json.dumps(forward_ref))
    (tmp_path / "format_garbage.json").write_text("{not json")

    formats = list_formats(tmp_path)
    assert [f.format_key for f in formats] == ["duel"]
    assert formats[0].name == "Duel"
    assert formats[0].total_matches == 1


def test_formats_dir_env(tmp_path, monkeypatch):
    monkeypatch.setenv("FORMATS_DIR", str(tmp_path))
    assert list_formats() == []
    assert get_format("8_teams_random") is None


def test_missing_directory(tmp_path):
    assert list_formats(tmp_path / "nope") == []
