"""
Bracket persistence glue.

Loads a tournament's Match rows, roster and stored draw into a BracketEngine,
applies one operation in memory, then writes back only what changed:
the edited match's score/winner, the draw bindings and the cached
team1_id/team2_id of every match whose resolved entrants moved.
The engine itself never touches the session.
"""
import copy
import logging
import random
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlmodel import Session, select

from app.models.match import Match
from app.models.team import Team
from app.models.tournament import Tournament
from app.services.bracket_template import MatchSpec, matches_from_format_json
from app.services.format_catalog import FormatConfig
from app.services.outcome_recorder import BracketEngine, MatchNotFoundError, ScoreUpdate
from app.services.random_draw import DrawResult, bindings_from_json, bindings_to_json
from app.services.slot_resolver import MATCH_DECIDED, MATCH_READY, ResolvedBracket

logger = logging.getLogger(__name__)


class BracketStateError(Exception):
    """Raised when an operation conflicts with the tournament's lifecycle state"""

    pass


def get_roster(session: Session, tournament_id: int) -> List[Team]:
    """
    Teams of a tournament in deterministic order.

    Order:
    1. seed_number ascending (nulls last)
    2. id ascending
    """
    teams = session.exec(select(Team).where(Team.tournament_id == tournament_id)).all()

    def sort_key(team: Team):
        return (
            (team.seed_number is None, team.seed_number if team.seed_number is not None else 0),
            team.id,
        )

    return sorted(teams, key=sort_key)


def get_match_rows(session: Session, tournament_id: int) -> List[Match]:
    return session.exec(
        select(Match).where(Match.tournament_id == tournament_id).order_by(Match.order_index)
    ).all()


def _spec_from_row(row: Match) -> MatchSpec:
    return MatchSpec(
        id=row.template_match_id,
        order=row.order_index,
        slot1=row.slot1_source,
        slot2=row.slot2_source,
        score1=row.score1,
        score2=row.score2,
        winner_slot=row.winner_slot,
        stage=row.stage,
        rotation_group=row.rotation_group,
        bracket_location=row.bracket_location,
        ranking_game=row.ranking_game,
        ranking_label=row.ranking_label,
        decided_team1_id=row.decided_team1_id,
        decided_team2_id=row.decided_team2_id,
    )


def load_engine(session: Session, tournament: Tournament) -> Tuple[BracketEngine, Dict[int, Match]]:
    """Engine for a tournament plus its Match rows keyed by template match id."""
    rows = get_match_rows(session, tournament.id)
    engine = BracketEngine(
        [_spec_from_row(r) for r in rows],
        get_roster(session, tournament.id),
        bindings_from_json(tournament.random_assignments),
    )
    return engine, {r.template_match_id: r for r in rows}


def _sync_team_ids(session: Session, view: ResolvedBracket, rows: Dict[int, Match]) -> List[int]:
    """Write resolved entrants onto rows whose cached team ids differ. Returns template ids touched."""
    touched: List[int] = []
    for match_id, resolved in view.matches.items():
        row = rows[match_id]
        if (row.team1_id, row.team2_id) != resolved.team_ids:
            row.team1_id, row.team2_id = resolved.team_ids
            row.updated_at = datetime.utcnow()
            session.add(row)
            touched.append(match_id)
    return touched


def _require_format(tournament: Tournament) -> None:
    if not tournament.format_key:
        raise BracketStateError("No format selected for this tournament")


# ============================================================================
# Format lifecycle
# ============================================================================


def apply_format(
    session: Session,
    tournament: Tournament,
    fmt: FormatConfig,
    rng: Optional[random.Random] = None,
) -> Tuple[BracketEngine, DrawResult]:
    """
    Create the tournament's matches from a format, running the draw when the
    template references random seed bands.

    Raises:
        BracketStateError: teams not locked, format already applied, or roster size out of range
        TemplateValidationError: invalid format document
    """
    if not tournament.teams_locked:
        raise BracketStateError("Teams must be locked before selecting a format")
    if tournament.format_key or get_match_rows(session, tournament.id):
        raise BracketStateError("A format is already selected; unselect it first")

    roster = get_roster(session, tournament.id)
    if not fmt.min_teams <= len(roster) <= fmt.max_teams:
        raise BracketStateError(
            f"Format '{fmt.format_key}' requires {fmt.min_teams}-{fmt.max_teams} teams, "
            f"tournament has {len(roster)}"
        )

    format_json = copy.deepcopy(fmt.format_data)
    specs = matches_from_format_json(format_json)
    engine = BracketEngine(specs, roster)
    draw_result = DrawResult()
    if engine.indexed.has_random_bands:
        draw_result = engine.redraw(rng)

    view = engine.view()
    for spec in engine.matches():
        resolved = view.get(spec.id)
        session.add(
            Match(
                tournament_id=tournament.id,
                template_match_id=spec.id,
                order_index=spec.order,
                stage=spec.stage,
                rotation_group=spec.rotation_group,
                bracket_location=spec.bracket_location,
                ranking_game=spec.ranking_game,
                ranking_label=spec.ranking_label,
                slot1_source=spec.slot1,
                slot2_source=spec.slot2,
                score1=spec.score1,
                score2=spec.score2,
                winner_slot=spec.winner_slot,
                decided_team1_id=spec.decided_team1_id,
                decided_team2_id=spec.decided_team2_id,
                team1_id=resolved.team1_id,
                team2_id=resolved.team2_id,
            )
        )

    tournament.format_key = fmt.format_key
    tournament.format_json = format_json
    tournament.random_assignments = bindings_to_json(engine.bindings) if engine.bindings else None
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()

    logger.info(
        "Applied format %s to tournament %d: %d matches, %d drawn slot(s)",
        fmt.format_key,
        tournament.id,
        len(specs),
        len(draw_result.bindings),
    )
    return engine, draw_result


def unselect_format(session: Session, tournament: Tournament) -> int:
    """Delete all matches and forget the format and draw. Returns number of matches deleted."""
    rows = get_match_rows(session, tournament.id)
    for row in rows:
        session.delete(row)
    session.flush()

    tournament.format_key = None
    tournament.format_json = None
    tournament.random_assignments = None
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()

    logger.info("Unselected format of tournament %d (%d matches deleted)", tournament.id, len(rows))
    return len(rows)


def set_teams_locked(session: Session, tournament: Tournament, locked: bool) -> int:
    """Lock or unlock the roster. Unlocking discards the applied format. Returns matches deleted."""
    deleted = 0
    if not locked and (tournament.format_key or get_match_rows(session, tournament.id)):
        deleted = unselect_format(session, tournament)
    tournament.teams_locked = locked
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()
    return deleted


def redraw(session: Session, tournament: Tournament, rng: Optional[random.Random] = None) -> DrawResult:
    """
    Discard the stored draw and draw every band again.

    Raises:
        BracketStateError: no format selected, no random band, or a score was already recorded
    """
    _require_format(tournament)
    engine, rows = load_engine(session, tournament)
    if not engine.indexed.has_random_bands:
        raise BracketStateError("This format has no random draw")
    if any(spec.has_score or spec.winner_slot for spec in engine.matches()):
        raise BracketStateError("Cannot redraw once a score has been recorded")

    result = engine.redraw(rng)
    tournament.random_assignments = bindings_to_json(engine.bindings)
    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    _sync_team_ids(session, engine.view(), rows)
    session.commit()
    logger.info("Redrew tournament %d: %d binding(s), %d unbound", tournament.id, len(result.bindings), len(result.unbound))
    return result


# ============================================================================
# Scores
# ============================================================================


def _get_row(rows: Dict[int, Match], template_match_id: int) -> Match:
    row = rows.get(template_match_id)
    if row is None:
        raise MatchNotFoundError(f"Match {template_match_id} not found in bracket")
    return row


def _persist_update(session: Session, update: ScoreUpdate, rows: Dict[int, Match]) -> Match:
    row = _get_row(rows, update.match.id)
    row.score1 = update.match.score1
    row.score2 = update.match.score2
    row.winner_slot = update.match.winner_slot
    row.decided_team1_id = update.match.decided_team1_id
    row.decided_team2_id = update.match.decided_team2_id
    row.updated_at = datetime.utcnow()
    session.add(row)
    _sync_team_ids(session, update.view, rows)
    session.commit()
    session.refresh(row)
    return row


def record_score(
    session: Session, tournament: Tournament, template_match_id: int, score1: int, score2: int
) -> Tuple[Match, ScoreUpdate]:
    """
    Record a score and persist the propagated entrants.

    Raises:
        BracketStateError: no format selected
        MatchNotFoundError / InvalidScoreError / EntrantsNotDeterminedError: from the engine
    """
    _require_format(tournament)
    engine, rows = load_engine(session, tournament)
    update = engine.record_score(template_match_id, score1, score2)
    row = _persist_update(session, update, rows)
    return row, update


def set_winner(
    session: Session, tournament: Tournament, template_match_id: int, winner_slot: int
) -> Tuple[Match, ScoreUpdate]:
    """Declare a winner without a score (walkover, forfeit) and persist the propagated entrants."""
    _require_format(tournament)
    engine, rows = load_engine(session, tournament)
    update = engine.set_winner(template_match_id, winner_slot)
    row = _persist_update(session, update, rows)
    return row, update


def reset_score(session: Session, tournament: Tournament, template_match_id: int) -> Tuple[Match, ScoreUpdate]:
    _require_format(tournament)
    engine, rows = load_engine(session, tournament)
    update = engine.reset_score(template_match_id)
    row = _persist_update(session, update, rows)
    return row, update


# ============================================================================
# Courts
# ============================================================================


def ready_for_court(view: ResolvedBracket, rows: Dict[int, Match]) -> List[Match]:
    """Matches with both entrants known, no result and no court, in match order."""
    return [
        rows[rm.match_id]
        for rm in view.ordered()
        if rm.state == MATCH_READY and rows[rm.match_id].court_number is None
    ]


def assign_court(
    session: Session, tournament: Tournament, template_match_id: int, court_number: Optional[int]
) -> Match:
    """
    Put a match on a court (or clear it with None).

    Raises:
        BracketStateError: court outside 1..court_count, or court held by another undecided match
        MatchNotFoundError: unknown template match id
    """
    _require_format(tournament)
    engine, rows = load_engine(session, tournament)
    row = _get_row(rows, template_match_id)

    if court_number is not None:
        if not 1 <= court_number <= tournament.court_count:
            raise BracketStateError(
                f"Court {court_number} does not exist (tournament has {tournament.court_count} courts)"
            )
        view = engine.view()
        for other in rows.values():
            if other.template_match_id == template_match_id or other.court_number != court_number:
                continue
            if view.get(other.template_match_id).state != MATCH_DECIDED:
                raise BracketStateError(
                    f"Court {court_number} is already used by match {other.template_match_id}"
                )

    row.court_number = court_number
    row.updated_at = datetime.utcnow()
    session.add(row)
    session.commit()
    session.refresh(row)
    return row
