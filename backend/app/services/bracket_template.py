"""
Bracket template loading.

Turns a format JSON document into an ordered list of MatchSpec records and
validates that every winner/loser reference points backwards in match order.

Two document shapes are accepted:

  nested: {"rotations": [{"name", "phases": [{"name", "ordre_phase",
            "matches": [{"id", "ordre_match", "source_team_1", "source_team_2",
                         "score_team_1", "score_team_2", "winner"}]}]}]}

  flat:   {"matches": [{"id", "order_index", "stage", "rotation_group",
            "bracket_location", "ranking_game", "ranking_label",
            "team1_source", "team2_source"}]}
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.services.slot_parser import RandomBand, parse_slot, referenced_match_id, slot_key


class TemplateValidationError(Exception):
    """Raised when a format document cannot be turned into a valid bracket"""

    pass


@dataclass
class MatchSpec:
    id: int
    order: int
    slot1: str
    slot2: str
    score1: Optional[int] = None
    score2: Optional[int] = None
    winner_slot: Optional[int] = None  # 1 | 2 | None
    stage: Optional[str] = None
    rotation_group: Optional[str] = None
    bracket_location: Optional[str] = None
    ranking_game: bool = False
    ranking_label: Optional[str] = None
    # entrants the result was recorded against
    decided_team1_id: Optional[int] = None
    decided_team2_id: Optional[int] = None

    @property
    def has_score(self) -> bool:
        return self.score1 is not None or self.score2 is not None

    def result_stands_for(self, team1_id: Any, team2_id: Any) -> bool:
        """
        Whether the recorded result still belongs to these entrants. Results
        carried in from a format document have no recorded entrants and
        stand for whoever resolves.
        """
        if self.decided_team1_id is None and self.decided_team2_id is None:
            return True
        return (self.decided_team1_id, self.decided_team2_id) == (team1_id, team2_id)

    def clear_score(self) -> None:
        self.score1 = None
        self.score2 = None
        self.winner_slot = None
        self.decided_team1_id = None
        self.decided_team2_id = None


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _winner_slot_from_json(value: Any) -> Optional[int]:
    slot = _int_or_none(value)
    return slot if slot in (1, 2) else None


def _require_id(raw: Dict[str, Any]) -> int:
    match_id = _int_or_none(raw.get("id"))
    if match_id is None:
        raise TemplateValidationError(f"Match definition without a numeric id: {raw!r}")
    return match_id


def _nested_matches(rotations: List[Dict[str, Any]]) -> List[MatchSpec]:
    flattened: List[tuple] = []
    for rotation in rotations:
        phases = sorted(rotation.get("phases") or [], key=lambda p: _int_or_none(p.get("ordre_phase")) or 0)
        for phase in phases:
            matches = sorted(phase.get("matches") or [], key=lambda m: _int_or_none(m.get("ordre_match")) or 0)
            for raw in matches:
                flattened.append((rotation, phase, raw))

    # ordre_match is used as the global order only when it is present and unique
    # across the whole document; otherwise traversal position is the order.
    declared = [_int_or_none(raw.get("ordre_match")) for _, _, raw in flattened]
    use_declared = all(o is not None for o in declared) and len(set(declared)) == len(declared)

    specs: List[MatchSpec] = []
    for position, (rotation, phase, raw) in enumerate(flattened, start=1):
        specs.append(
            MatchSpec(
                id=_require_id(raw),
                order=declared[position - 1] if use_declared else position,
                slot1=str(raw.get("source_team_1") or ""),
                slot2=str(raw.get("source_team_2") or ""),
                score1=_int_or_none(raw.get("score_team_1")),
                score2=_int_or_none(raw.get("score_team_2")),
                winner_slot=_winner_slot_from_json(raw.get("winner")),
                stage=phase.get("name"),
                rotation_group=rotation.get("name"),
            )
        )
    return specs


def _flat_matches(matches: List[Dict[str, Any]]) -> List[MatchSpec]:
    specs: List[MatchSpec] = []
    for position, raw in enumerate(matches, start=1):
        order = _int_or_none(raw.get("order_index"))
        specs.append(
            MatchSpec(
                id=_require_id(raw),
                order=order if order is not None else position,
                slot1=str(raw.get("team1_source") or ""),
                slot2=str(raw.get("team2_source") or ""),
                stage=raw.get("stage"),
                rotation_group=raw.get("rotation_group"),
                bracket_location=raw.get("bracket_location"),
                ranking_game=bool(raw.get("ranking_game")),
                ranking_label=raw.get("ranking_label"),
            )
        )
    return specs


def matches_from_format_json(format_json: Dict[str, Any]) -> List[MatchSpec]:
    """
    Build the ordered MatchSpec list for a format document.

    Raises:
        TemplateValidationError: unknown shape, duplicate ids/orders or forward references
    """
    if not isinstance(format_json, dict):
        raise TemplateValidationError("Format document must be a JSON object")

    if format_json.get("rotations"):
        specs = _nested_matches(format_json["rotations"])
    elif format_json.get("matches"):
        specs = _flat_matches(format_json["matches"])
    else:
        raise TemplateValidationError("Format document defines neither 'rotations' nor 'matches'")

    validate_template(specs)
    return sorted(specs, key=lambda s: s.order)


def validate_template(specs: Iterable[MatchSpec]) -> None:
    """
    Check ids and orders are unique, that an explicit band occurrence such as
    random_5_8_2 appears only once, and that winner/loser references target
    an existing match with a strictly smaller order.
    """
    specs = list(specs)
    order_by_id: Dict[int, int] = {}
    seen_orders: Dict[int, int] = {}
    for spec in specs:
        if spec.id in order_by_id:
            raise TemplateValidationError(f"Duplicate match id {spec.id}")
        if spec.order in seen_orders:
            raise TemplateValidationError(
                f"Matches {seen_orders[spec.order]} and {spec.id} share order {spec.order}"
            )
        order_by_id[spec.id] = spec.order
        seen_orders[spec.order] = spec.id

    explicit_bands: Dict[Tuple[int, int, int], Tuple[int, int]] = {}
    for spec in specs:
        for slot_no, raw in ((1, spec.slot1), (2, spec.slot2)):
            ref = parse_slot(raw)
            if isinstance(ref, RandomBand) and ref.occurrence is not None:
                key = (ref.min_seed, ref.max_seed, ref.occurrence)
                if key in explicit_bands:
                    first_match, first_slot = explicit_bands[key]
                    raise TemplateValidationError(
                        f"Match {spec.id} slot {slot_no} repeats {slot_key(ref)} "
                        f"already used by match {first_match} slot {first_slot}"
                    )
                explicit_bands[key] = (spec.id, slot_no)

            target = referenced_match_id(ref)
            if target is None:
                continue
            if target not in order_by_id:
                raise TemplateValidationError(
                    f"Match {spec.id} slot {slot_no} references unknown match {target} ('{raw}')"
                )
            if order_by_id[target] >= spec.order:
                raise TemplateValidationError(
                    f"Match {spec.id} slot {slot_no} references match {target} "
                    f"which is not earlier in match order ('{raw}')"
                )
