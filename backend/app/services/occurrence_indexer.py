"""
Occurrence indexing for random seed bands.

Several matches may draw from the same band ("random_5_8") and each of those
slots must receive a different team. Walking the template in match order,
every bare band specifier gets the next free occurrence index of its band;
indices already claimed by explicitly-suffixed specifiers ("random_5_8_2")
are skipped. The walk depends only on match order and specifier text, so
re-indexing the same template always gives the same result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set, Tuple

from app.services.bracket_template import MatchSpec
from app.services.slot_parser import Band, RandomBand, SlotReference, parse_slot

SlotPosition = Tuple[int, int]  # (match_id, slot_no)


@dataclass
class IndexedTemplate:
    """Typed view of a template: every slot parsed, every band occurrence numbered."""

    references: Dict[SlotPosition, SlotReference] = field(default_factory=dict)
    band_occurrences: Dict[Band, List[int]] = field(default_factory=dict)

    def reference(self, match_id: int, slot_no: int) -> SlotReference:
        return self.references[(match_id, slot_no)]

    @property
    def has_random_bands(self) -> bool:
        return bool(self.band_occurrences)

    def occurrence_keys(self) -> List[RandomBand]:
        """All (band, k) occurrences, ordered by band then index."""
        return [
            RandomBand(band[0], band[1], k)
            for band in sorted(self.band_occurrences)
            for k in self.band_occurrences[band]
        ]


def index_occurrences(specs: Iterable[MatchSpec]) -> IndexedTemplate:
    ordered = sorted(specs, key=lambda s: s.order)

    parsed: Dict[SlotPosition, SlotReference] = {}
    claimed: Dict[Band, Set[int]] = {}
    for spec in ordered:
        for slot_no, raw in ((1, spec.slot1), (2, spec.slot2)):
            ref = parse_slot(raw)
            parsed[(spec.id, slot_no)] = ref
            if isinstance(ref, RandomBand) and ref.occurrence is not None:
                claimed.setdefault(ref.band, set()).add(ref.occurrence)

    indexed = IndexedTemplate()
    counters: Dict[Band, int] = {}
    for spec in ordered:
        for slot_no in (1, 2):
            ref = parsed[(spec.id, slot_no)]
            if isinstance(ref, RandomBand):
                if ref.occurrence is None:
                    taken = claimed.setdefault(ref.band, set())
                    k = counters.get(ref.band, 0) + 1
                    while k in taken:
                        k += 1
                    counters[ref.band] = k
                    taken.add(k)
                    ref = ref.with_occurrence(k)
                occurrences = indexed.band_occurrences.setdefault(ref.band, [])
                if ref.occurrence not in occurrences:
                    occurrences.append(ref.occurrence)
            indexed.references[(spec.id, slot_no)] = ref

    for occurrences in indexed.band_occurrences.values():
        occurrences.sort()
    return indexed
