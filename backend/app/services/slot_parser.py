"""
Slot specifier parsing.

A bracket slot is written symbolically in the format JSON:
  "3" / "TS3"              → seed 3
  "random_5_8"             → a team drawn from seeds 5..8 (occurrence assigned later)
  "random_5_8_2"           → second draw from seeds 5..8
  "winner_5" / "W_5"       → winner of template match 5
  "loser_5" / "L_5"        → loser of template match 5

Anything else parses to Unresolved and never stands for a playable team.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

_DIGITS_RE = re.compile(r"^\d+$")
_TS_RE = re.compile(r"^TS(\d+)$")
_RANDOM_RE = re.compile(r"^random_(?:TS)?(\d+)_(\d+)(?:_(\d+))?$")
_WINNER_RE = re.compile(r"^(?:winner|W)_(\d+)$")
_LOSER_RE = re.compile(r"^(?:loser|L)_(\d+)$")

Band = Tuple[int, int]


@dataclass(frozen=True)
class Seed:
    number: int


@dataclass(frozen=True)
class RandomBand:
    min_seed: int
    max_seed: int
    occurrence: Optional[int] = None  # None until the indexer numbers it

    @property
    def band(self) -> Band:
        return (self.min_seed, self.max_seed)

    def with_occurrence(self, occurrence: int) -> "RandomBand":
        return RandomBand(self.min_seed, self.max_seed, occurrence)


@dataclass(frozen=True)
class WinnerOf:
    match_id: int


@dataclass(frozen=True)
class LoserOf:
    match_id: int


@dataclass(frozen=True)
class Unresolved:
    raw: str


SlotReference = Union[Seed, RandomBand, WinnerOf, LoserOf, Unresolved]


def parse_slot(raw: Optional[str]) -> SlotReference:
    """Classify a raw slot string. Never raises."""
    if raw is None:
        return Unresolved("")
    text = str(raw).strip()

    if _DIGITS_RE.match(text):
        return Seed(int(text))

    m = _TS_RE.match(text)
    if m:
        return Seed(int(m.group(1)))

    m = _RANDOM_RE.match(text)
    if m:
        occurrence = int(m.group(3)) if m.group(3) is not None else None
        return RandomBand(int(m.group(1)), int(m.group(2)), occurrence)

    m = _WINNER_RE.match(text)
    if m:
        return WinnerOf(int(m.group(1)))

    m = _LOSER_RE.match(text)
    if m:
        return LoserOf(int(m.group(1)))

    return Unresolved(text)


def slot_key(ref: SlotReference) -> str:
    """Canonical string for a reference (used as persisted draw key and for display)."""
    if isinstance(ref, Seed):
        return f"TS{ref.number}"
    if isinstance(ref, RandomBand):
        base = f"random_{ref.min_seed}_{ref.max_seed}"
        return base if ref.occurrence is None else f"{base}_{ref.occurrence}"
    if isinstance(ref, WinnerOf):
        return f"winner_{ref.match_id}"
    if isinstance(ref, LoserOf):
        return f"loser_{ref.match_id}"
    if isinstance(ref, Unresolved):
        return ref.raw
    raise TypeError(f"Unknown slot reference: {ref!r}")


def referenced_match_id(ref: SlotReference) -> Optional[int]:
    """Template match id a WinnerOf/LoserOf reference points at, else None."""
    if isinstance(ref, (WinnerOf, LoserOf)):
        return ref.match_id
    return None
