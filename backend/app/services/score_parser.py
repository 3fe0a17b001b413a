"""
Score string parser for padel-style score entry.

Supports formats like:
  "6-4"            → 1 set, recorded as games 6-4
  "6-3 4-6 10-7"   → 3 sets, recorded as sets won 2-1
  "6-3, 4-6, 10-7" → comma-separated variant

Returns None on parse failure (non-fatal).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (team1_games, team2_games) per set
    team1_sets_won: int
    team2_sets_won: int
    team1_games: int
    team2_games: int

    def as_match_score(self) -> Tuple[int, int]:
        """Games for a single set, sets won otherwise."""
        if len(self.sets) == 1:
            return self.team1_games, self.team2_games
        return self.team1_sets_won, self.team2_sets_won


def parse_score(raw: Optional[str]) -> Optional[ParsedScore]:
    """Parse strings like '6-4', '6-3 4-6 10-7', '6-3, 4-6, 10-7'."""
    if not raw or not raw.strip():
        return None

    # Normalize: replace commas with spaces, collapse whitespace
    parts = raw.replace(",", " ").split()

    sets: List[Tuple[int, int]] = []
    for part in parts:
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        if a < 0 or b < 0:
            return None
        sets.append((a, b))

    if not sets:
        return None

    return ParsedScore(
        sets=sets,
        team1_sets_won=sum(1 for a, b in sets if a > b),
        team2_sets_won=sum(1 for a, b in sets if b > a),
        team1_games=sum(a for a, _ in sets),
        team2_games=sum(b for _, b in sets),
    )
