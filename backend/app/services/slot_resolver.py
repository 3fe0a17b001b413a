"""
Slot resolution.

resolve() maps a typed slot reference to a concrete team given the roster,
the draw bindings and the outcomes known so far. build_resolved_view() is the
single ordered pass that resolves every match of a template: a match's
outcome only becomes available to later matches once its own two entrants
have resolved, so matches are visited in ascending order.

A decided match only yields an outcome while its entrants are the ones its
result was recorded against; otherwise it is flagged stale.

The pass is a pure function of its inputs and safe to re-run at any time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from app.services.bracket_template import MatchSpec
from app.services.occurrence_indexer import IndexedTemplate
from app.services.random_draw import DrawBinding
from app.services.slot_parser import LoserOf, RandomBand, Seed, SlotReference, Unresolved, WinnerOf

logger = logging.getLogger(__name__)

MATCH_UNRESOLVED = "UNRESOLVED"
MATCH_READY = "READY"
MATCH_DECIDED = "DECIDED"


class Roster:
    """Read-only lookup over the tournament's teams (objects exposing id and seed_number)."""

    def __init__(self, teams: Iterable[Any]):
        self.teams: List[Any] = list(teams)
        self._by_id: Dict[Any, Any] = {}
        self._by_seed: Dict[int, Any] = {}
        for team in self.teams:
            self._by_id.setdefault(team.id, team)
            seed = getattr(team, "seed_number", None)
            if seed is not None:
                # first team in roster order wins a duplicated seed
                self._by_seed.setdefault(seed, team)

    def get(self, team_id: Any) -> Optional[Any]:
        return self._by_id.get(team_id)

    def by_seed(self, seed_number: int) -> Optional[Any]:
        return self._by_seed.get(seed_number)

    def __len__(self) -> int:
        return len(self.teams)


@dataclass(frozen=True)
class MatchOutcome:
    match_id: int
    winner_team_id: Any
    loser_team_id: Any


def resolve(
    ref: SlotReference,
    roster: Roster,
    bindings: DrawBinding,
    outcomes: Mapping[int, MatchOutcome],
) -> Optional[Any]:
    """Concrete team for a slot reference, or None while it cannot be determined."""
    if isinstance(ref, Seed):
        return roster.by_seed(ref.number)
    if isinstance(ref, RandomBand):
        if ref.occurrence is None:
            return None
        team_id = bindings.get((ref.min_seed, ref.max_seed, ref.occurrence))
        return roster.get(team_id) if team_id is not None else None
    if isinstance(ref, WinnerOf):
        outcome = outcomes.get(ref.match_id)
        return roster.get(outcome.winner_team_id) if outcome else None
    if isinstance(ref, LoserOf):
        outcome = outcomes.get(ref.match_id)
        return roster.get(outcome.loser_team_id) if outcome else None
    if isinstance(ref, Unresolved):
        return None
    raise TypeError(f"Unknown slot reference: {ref!r}")


@dataclass
class ResolvedMatch:
    match_id: int
    order: int
    slot1: SlotReference
    slot2: SlotReference
    team1: Optional[Any] = None
    team2: Optional[Any] = None
    state: str = MATCH_UNRESOLVED
    winner_slot: Optional[int] = None
    winner_team_id: Any = None
    loser_team_id: Any = None
    is_stale: bool = False  # decided, but its entrants changed or no longer resolve

    @property
    def team1_id(self) -> Any:
        return self.team1.id if self.team1 is not None else None

    @property
    def team2_id(self) -> Any:
        return self.team2.id if self.team2 is not None else None

    @property
    def team_ids(self) -> Tuple[Any, Any]:
        return (self.team1_id, self.team2_id)

    @property
    def entrants_known(self) -> bool:
        return self.team1 is not None and self.team2 is not None


@dataclass
class ResolvedBracket:
    matches: Dict[int, ResolvedMatch] = field(default_factory=dict)  # insertion order = match order
    outcomes: Dict[int, MatchOutcome] = field(default_factory=dict)

    def get(self, match_id: int) -> Optional[ResolvedMatch]:
        return self.matches.get(match_id)

    def ordered(self) -> List[ResolvedMatch]:
        return list(self.matches.values())

    def team_ids(self) -> Dict[int, Tuple[Any, Any]]:
        return {match_id: rm.team_ids for match_id, rm in self.matches.items()}

    def in_state(self, state: str) -> List[ResolvedMatch]:
        return [rm for rm in self.matches.values() if rm.state == state]


def build_resolved_view(
    specs: Iterable[MatchSpec],
    indexed: IndexedTemplate,
    roster: Roster,
    bindings: DrawBinding,
) -> ResolvedBracket:
    """Resolve every match in ascending order, accumulating outcomes as it goes."""
    view = ResolvedBracket()
    for spec in sorted(specs, key=lambda s: s.order):
        ref1 = indexed.reference(spec.id, 1)
        ref2 = indexed.reference(spec.id, 2)
        rm = ResolvedMatch(
            match_id=spec.id,
            order=spec.order,
            slot1=ref1,
            slot2=ref2,
            team1=resolve(ref1, roster, bindings, view.outcomes),
            team2=resolve(ref2, roster, bindings, view.outcomes),
            winner_slot=spec.winner_slot,
        )

        if spec.winner_slot in (1, 2):
            rm.state = MATCH_DECIDED
            if rm.entrants_known and spec.result_stands_for(rm.team1_id, rm.team2_id):
                winner, loser = (rm.team1, rm.team2) if spec.winner_slot == 1 else (rm.team2, rm.team1)
                rm.winner_team_id = winner.id
                rm.loser_team_id = loser.id
                view.outcomes[spec.id] = MatchOutcome(spec.id, winner.id, loser.id)
            else:
                rm.is_stale = True
        elif rm.entrants_known:
            rm.state = MATCH_READY

        view.matches[spec.id] = rm

    stale = [rm.match_id for rm in view.matches.values() if rm.is_stale]
    if stale:
        logger.warning("Decided match(es) whose entrants changed or are undetermined: %s", stale)
    logger.debug(
        "Resolved %d match(es): %d decided, %d ready",
        len(view.matches),
        len(view.outcomes),
        len(view.in_state(MATCH_READY)),
    )
    return view
