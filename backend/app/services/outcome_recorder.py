"""
Outcome recording and propagation.

BracketEngine keeps the template's MatchSpec records in an arena keyed by
template match id and mutates them in place. Every score edit is followed by
a full ordered rebuild of the resolved view, which re-resolves every match
that references the edited one (directly or transitively) without needing an
explicit dependency graph.

Every result remembers the entrants it was recorded against. Resetting or
re-scoring a match does not un-decide later matches that were already scored
with the team it had produced; those keep their own score until reset, but are
flagged stale and feed nothing downstream while their entrants differ.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from app.services.bracket_template import MatchSpec, validate_template
from app.services.occurrence_indexer import IndexedTemplate, index_occurrences
from app.services.random_draw import DrawBinding, DrawResult, draw
from app.services.slot_resolver import ResolvedBracket, ResolvedMatch, Roster, build_resolved_view

logger = logging.getLogger(__name__)


class MatchNotFoundError(Exception):
    """Raised when a template match id is not part of the bracket"""

    pass


class EntrantsNotDeterminedError(Exception):
    """Raised when scoring a match whose two entrants are not both known yet"""

    pass


class InvalidScoreError(Exception):
    """Raised for results that cannot be recorded (negative or non-integer score, bad winner slot)"""

    pass


@dataclass
class ScoreUpdate:
    match: MatchSpec
    changed_match_ids: List[int] = field(default_factory=list)
    view: Optional[ResolvedBracket] = None


def winner_slot_for(score1: int, score2: int) -> Optional[int]:
    """1 or 2 for the higher score, None on a tie."""
    if score1 > score2:
        return 1
    if score2 > score1:
        return 2
    return None


def _check_score(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScoreError(f"{label} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidScoreError(f"{label} must be >= 0, got {value}")
    return value


class BracketEngine:
    """In-memory bracket: template arena + roster + draw bindings → resolved view."""

    def __init__(
        self,
        specs: Iterable[MatchSpec],
        roster: Union[Roster, Iterable[Any]],
        bindings: Optional[DrawBinding] = None,
    ):
        ordered = sorted(specs, key=lambda s: s.order)
        validate_template(ordered)
        self._matches: Dict[int, MatchSpec] = {s.id: s for s in ordered}
        self.roster = roster if isinstance(roster, Roster) else Roster(roster)
        self.bindings: DrawBinding = dict(bindings or {})
        self.indexed: IndexedTemplate = index_occurrences(ordered)
        self._view = self.rebuild()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def matches(self) -> List[MatchSpec]:
        return list(self._matches.values())

    def match(self, match_id: int) -> MatchSpec:
        spec = self._matches.get(match_id)
        if spec is None:
            raise MatchNotFoundError(f"Match {match_id} not found in bracket")
        return spec

    def view(self) -> ResolvedBracket:
        return self._view

    def rebuild(self) -> ResolvedBracket:
        self._view = build_resolved_view(self._matches.values(), self.indexed, self.roster, self.bindings)
        return self._view

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_score(self, match_id: int, score1: int, score2: int) -> ScoreUpdate:
        """
        Record a score on one match and propagate its outcome.

        Raises:
            MatchNotFoundError: unknown match id
            InvalidScoreError: negative or non-integer score
            EntrantsNotDeterminedError: either slot does not resolve to a team yet
        """
        spec = self.match(match_id)
        score1 = _check_score(score1, "score1")
        score2 = _check_score(score2, "score2")
        current = self._require_entrants(match_id)

        spec.score1 = score1
        spec.score2 = score2
        spec.winner_slot = winner_slot_for(score1, score2)
        spec.decided_team1_id, spec.decided_team2_id = current.team_ids
        logger.info(
            "Recorded %d-%d on match %d (winner slot %s)", score1, score2, match_id, spec.winner_slot
        )
        return self._propagate(spec)

    def set_winner(self, match_id: int, winner_slot: int) -> ScoreUpdate:
        """
        Declare a winner without a score (walkover, forfeit). Any score already
        recorded on the match is kept as entered.

        Raises:
            MatchNotFoundError: unknown match id
            InvalidScoreError: winner_slot other than 1 or 2
            EntrantsNotDeterminedError: either slot does not resolve to a team yet
        """
        spec = self.match(match_id)
        if isinstance(winner_slot, bool) or winner_slot not in (1, 2):
            raise InvalidScoreError(f"winner_slot must be 1 or 2, got {winner_slot!r}")
        current = self._require_entrants(match_id)

        spec.winner_slot = winner_slot
        spec.decided_team1_id, spec.decided_team2_id = current.team_ids
        logger.info("Declared slot %d winner of match %d", winner_slot, match_id)
        return self._propagate(spec)

    def reset_score(self, match_id: int) -> ScoreUpdate:
        """Clear a match's score and winner, then rebuild. Does not cascade to decided dependents."""
        spec = self.match(match_id)
        spec.clear_score()
        logger.info("Reset score on match %d", match_id)
        return self._propagate(spec)

    def redraw(self, rng: Optional[random.Random] = None) -> DrawResult:
        """Discard the current bindings and draw every band again."""
        result = draw(self.indexed.band_occurrences, self.roster.teams, rng=rng)
        self.bindings = dict(result.bindings)
        self.rebuild()
        return result

    def _require_entrants(self, match_id: int) -> ResolvedMatch:
        current = self._view.get(match_id)
        if current is None or not current.entrants_known:
            raise EntrantsNotDeterminedError(f"Entrants of match {match_id} are not yet determined")
        return current

    def _propagate(self, spec: MatchSpec) -> ScoreUpdate:
        before = self._view.team_ids()
        after_view = self.rebuild()
        after = after_view.team_ids()
        changed = [match_id for match_id in after if before.get(match_id) != after[match_id]]
        if changed:
            logger.info("Match %d changed entrants of match(es) %s", spec.id, changed)
        return ScoreUpdate(match=spec, changed_match_ids=changed, view=after_view)
