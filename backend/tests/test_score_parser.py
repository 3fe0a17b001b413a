"""Tests for score string parsing."""

import pytest

from app.services.score_parser import parse_score


def test_single_set_records_games():
    parsed = parse_score("6-4")
    assert parsed.sets == [(6, 4)]
    assert parsed.as_match_score() == (6, 4)


def test_multi_set_records_sets_won():
    parsed = parse_score("6-3 4-6 10-7")
    assert parsed.team1_sets_won == 2
    assert parsed.team2_sets_won == 1
    assert parsed.team1_games == 20
    assert parsed.as_match_score() == (2, 1)


def test_comma_separated():
    assert parse_score("6-3, 4-6, 10-7").as_match_score() == (2, 1)


@pytest.mark.parametrize("raw", [None, "", "   ", "6", "6-x", "6-3-1", "abc"])
def test_unreadable_returns_none(raw):
    assert parse_score(raw) is None
