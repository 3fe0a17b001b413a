"""
Random draw for seed bands.

For each band, eligible teams (seed_number within [min, max]) are shuffled
uniformly and dealt to the band's occurrences in index order, without
replacement. Occurrences left over once candidates run out stay unbound.
A redraw always starts from scratch; nothing from a previous draw is reused.

Bands are drawn independently of each other. Exclusivity holds within a band
only: a team whose seed falls in two overlapping bands (random_1_4 and
random_3_6) can be dealt to both, so formats keep their bands disjoint.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from app.services.slot_parser import Band, RandomBand, parse_slot, slot_key

logger = logging.getLogger(__name__)

DrawKey = Tuple[int, int, int]  # (min_seed, max_seed, occurrence)
DrawBinding = Dict[DrawKey, int]  # → team id


@dataclass
class DrawResult:
    bindings: DrawBinding = field(default_factory=dict)
    unbound: List[str] = field(default_factory=list)  # slot keys left without a team


def band_candidates(band: Band, roster: Iterable[Any]) -> List[Any]:
    """Teams whose seed_number falls inside the band, ordered by (seed_number, id)."""
    low, high = band
    eligible = [
        t for t in roster
        if getattr(t, "seed_number", None) is not None and low <= t.seed_number <= high
    ]
    return sorted(eligible, key=lambda t: (t.seed_number, t.id))


def draw(
    band_occurrences: Mapping[Band, List[int]],
    roster: Iterable[Any],
    rng: Optional[random.Random] = None,
) -> DrawResult:
    """
    Draw one team per band occurrence.

    Args:
        band_occurrences: band → occurrence indices (from the occurrence indexer)
        roster: teams exposing id and seed_number
        rng: random source; a seeded instance makes the draw reproducible

    Returns:
        DrawResult with bindings keyed by (min_seed, max_seed, occurrence)
    """
    rng = rng or random.Random()
    roster = list(roster)
    result = DrawResult()

    for band in sorted(band_occurrences):
        candidates = band_candidates(band, roster)
        # random.shuffle is an in-place Fisher-Yates shuffle
        rng.shuffle(candidates)
        for position, occurrence in enumerate(sorted(band_occurrences[band])):
            if position < len(candidates):
                result.bindings[(band[0], band[1], occurrence)] = candidates[position].id
            else:
                result.unbound.append(slot_key(RandomBand(band[0], band[1], occurrence)))

    if result.unbound:
        logger.warning(
            "Draw left %d occurrence(s) without a team: %s",
            len(result.unbound),
            ", ".join(result.unbound),
        )
    logger.info("Drew %d band occurrence(s) across %d band(s)", len(result.bindings), len(band_occurrences))
    return result


def bindings_to_json(bindings: DrawBinding) -> Dict[str, int]:
    """Serialize bindings as {"random_5_8_1": team_id} for storage on the tournament."""
    return {
        slot_key(RandomBand(low, high, occurrence)): team_id
        for (low, high, occurrence), team_id in sorted(bindings.items())
    }


def bindings_from_json(data: Optional[Mapping[str, Any]]) -> DrawBinding:
    """
    Parse stored bindings. Keys that are not band specifiers are ignored;
    an un-indexed key ("random_5_8") binds occurrence 1.
    """
    bindings: DrawBinding = {}
    for key, team_id in (data or {}).items():
        ref = parse_slot(key)
        if not isinstance(ref, RandomBand) or team_id is None:
            continue
        occurrence = ref.occurrence if ref.occurrence is not None else 1
        bindings.setdefault((ref.min_seed, ref.max_seed, occurrence), int(team_id))
    return bindings


def preview_candidates(band_occurrences: Mapping[Band, List[int]], roster: Iterable[Any]) -> Dict[str, List[Any]]:
    """Eligible teams per band, keyed by the band's bare specifier ("random_5_8")."""
    roster = list(roster)
    return {
        slot_key(RandomBand(band[0], band[1])): band_candidates(band, roster)
        for band in sorted(band_occurrences)
    }
