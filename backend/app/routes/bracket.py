"""
Bracket runtime: format selection, random draw, resolved view, score entry, courts.
The bracket engine resolves every slot; this router only maps it to HTTP.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator
from sqlmodel import Session

from app.database import get_session
from app.models.match import Match
from app.models.team import Team
from app.routes.tournaments import get_tournament_or_404
from app.services import bracket_service
from app.services.bracket_service import BracketStateError
from app.services.bracket_template import TemplateValidationError
from app.services.format_catalog import get_format
from app.services.outcome_recorder import EntrantsNotDeterminedError, InvalidScoreError, MatchNotFoundError
from app.services.random_draw import preview_candidates
from app.services.score_parser import parse_score
from app.services.slot_parser import slot_key
from app.services.slot_resolver import ResolvedBracket, ResolvedMatch

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class SelectFormatRequest(BaseModel):
    format_key: str


class ScoreRequest(BaseModel):
    score1: Optional[int] = None
    score2: Optional[int] = None
    score: Optional[str] = None  # "6-4" or "6-3 4-6 10-7"

    @model_validator(mode="after")
    def validate_one_form(self):
        has_pair = self.score1 is not None and self.score2 is not None
        if not has_pair and not self.score:
            raise ValueError("Provide score1 and score2, or a score string")
        return self


class WinnerRequest(BaseModel):
    winner_slot: int  # 1 | 2


class CourtRequest(BaseModel):
    court_number: Optional[int] = None


class TeamBrief(BaseModel):
    id: int
    name: str
    seed_number: Optional[int] = None
    players: Optional[List[str]] = None


class ResolvedMatchResponse(BaseModel):
    match_id: int  # template match id
    order_index: int
    stage: Optional[str] = None
    rotation_group: Optional[str] = None
    ranking_label: Optional[str] = None
    slot1_source: str
    slot2_source: str
    slot1_label: str  # team name, or the specifier while unresolved
    slot2_label: str
    team1: Optional[TeamBrief] = None
    team2: Optional[TeamBrief] = None
    state: str  # UNRESOLVED | READY | DECIDED
    is_stale: bool = False
    score1: Optional[int] = None
    score2: Optional[int] = None
    winner_slot: Optional[int] = None
    winner_team_id: Optional[int] = None
    loser_team_id: Optional[int] = None
    court_number: Optional[int] = None


class BracketResponse(BaseModel):
    tournament_id: int
    format_key: Optional[str] = None
    random_assignments: Dict[str, int] = {}
    matches: List[ResolvedMatchResponse]


class DrawResponse(BaseModel):
    random_assignments: Dict[str, int]
    unbound: List[str]


class ScoreUpdateResponse(BaseModel):
    match: ResolvedMatchResponse
    changed_match_ids: List[int]


def _team_brief(team: Optional[Team]) -> Optional[TeamBrief]:
    if team is None:
        return None
    return TeamBrief(id=team.id, name=team.name, seed_number=team.seed_number, players=team.players)


def _resolved_match_response(rm: ResolvedMatch, row: Match) -> ResolvedMatchResponse:
    return ResolvedMatchResponse(
        match_id=rm.match_id,
        order_index=rm.order,
        stage=row.stage,
        rotation_group=row.rotation_group,
        ranking_label=row.ranking_label,
        slot1_source=row.slot1_source,
        slot2_source=row.slot2_source,
        slot1_label=rm.team1.name if rm.team1 is not None else slot_key(rm.slot1),
        slot2_label=rm.team2.name if rm.team2 is not None else slot_key(rm.slot2),
        team1=_team_brief(rm.team1),
        team2=_team_brief(rm.team2),
        state=rm.state,
        is_stale=rm.is_stale,
        score1=row.score1,
        score2=row.score2,
        winner_slot=rm.winner_slot,
        winner_team_id=rm.winner_team_id,
        loser_team_id=rm.loser_team_id,
        court_number=row.court_number,
    )


def _bracket_response(tournament, view: ResolvedBracket, rows: Dict[int, Match]) -> BracketResponse:
    return BracketResponse(
        tournament_id=tournament.id,
        format_key=tournament.format_key,
        random_assignments=tournament.random_assignments or {},
        matches=[_resolved_match_response(rm, rows[rm.match_id]) for rm in view.ordered()],
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, MatchNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, BracketStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, EntrantsNotDeterminedError):
        return HTTPException(status_code=422, detail=f"Entrants not yet determined: {exc}")
    return HTTPException(status_code=422, detail=str(exc))


# ============================================================================
# Format selection
# ============================================================================


@router.post("/tournaments/{tournament_id}/format", response_model=BracketResponse, status_code=201)
def select_format(tournament_id: int, payload: SelectFormatRequest, session: Session = Depends(get_session)):
    """Apply a catalog format to the locked roster. Runs the random draw if the format has bands."""
    tournament = get_tournament_or_404(session, tournament_id)
    fmt = get_format(payload.format_key)
    if not fmt:
        raise HTTPException(status_code=404, detail=f"Format '{payload.format_key}' not found")

    try:
        bracket_service.apply_format(session, tournament, fmt)
    except (BracketStateError, TemplateValidationError) as exc:
        raise _http_error(exc)

    session.refresh(tournament)
    engine, rows = bracket_service.load_engine(session, tournament)
    return _bracket_response(tournament, engine.view(), rows)


@router.delete("/tournaments/{tournament_id}/format", response_model=Dict[str, int])
def unselect_format(tournament_id: int, session: Session = Depends(get_session)):
    """Forget the format: deletes every match and the draw."""
    tournament = get_tournament_or_404(session, tournament_id)
    deleted = bracket_service.unselect_format(session, tournament)
    return {"matches_deleted": deleted}


# ============================================================================
# Random draw
# ============================================================================


@router.post("/tournaments/{tournament_id}/draw", response_model=DrawResponse)
def reroll_draw(tournament_id: int, session: Session = Depends(get_session)):
    """Discard the stored draw and draw every band again (only before any score is recorded)."""
    tournament = get_tournament_or_404(session, tournament_id)
    try:
        result = bracket_service.redraw(session, tournament)
    except BracketStateError as exc:
        raise _http_error(exc)
    session.refresh(tournament)
    return DrawResponse(random_assignments=tournament.random_assignments or {}, unbound=result.unbound)


@router.get("/tournaments/{tournament_id}/draw/candidates", response_model=Dict[str, List[TeamBrief]])
def draw_candidates(tournament_id: int, session: Session = Depends(get_session)):
    """Eligible teams for each random band of the selected format."""
    tournament = get_tournament_or_404(session, tournament_id)
    if not tournament.format_key:
        raise HTTPException(status_code=409, detail="No format selected for this tournament")
    engine, _ = bracket_service.load_engine(session, tournament)
    candidates = preview_candidates(engine.indexed.band_occurrences, engine.roster.teams)
    return {key: [_team_brief(t) for t in teams] for key, teams in candidates.items()}


# ============================================================================
# Resolved view + scores
# ============================================================================


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Every match with its current entrants and state, in match order."""
    tournament = get_tournament_or_404(session, tournament_id)
    engine, rows = bracket_service.load_engine(session, tournament)
    return _bracket_response(tournament, engine.view(), rows)


@router.put("/tournaments/{tournament_id}/matches/{match_id}/score", response_model=ScoreUpdateResponse)
def record_score(
    tournament_id: int, match_id: int, payload: ScoreRequest, session: Session = Depends(get_session)
):
    """Record a score; the winner/loser flows into every match referencing this one."""
    tournament = get_tournament_or_404(session, tournament_id)

    if payload.score1 is not None and payload.score2 is not None:
        score1, score2 = payload.score1, payload.score2
    else:
        parsed = parse_score(payload.score)
        if parsed is None:
            raise HTTPException(status_code=422, detail=f"Unreadable score '{payload.score}'")
        score1, score2 = parsed.as_match_score()

    try:
        row, update = bracket_service.record_score(session, tournament, match_id, score1, score2)
    except (BracketStateError, MatchNotFoundError, InvalidScoreError, EntrantsNotDeterminedError) as exc:
        raise _http_error(exc)

    return ScoreUpdateResponse(
        match=_resolved_match_response(update.view.get(match_id), row),
        changed_match_ids=update.changed_match_ids,
    )


@router.put("/tournaments/{tournament_id}/matches/{match_id}/winner", response_model=ScoreUpdateResponse)
def declare_winner(
    tournament_id: int, match_id: int, payload: WinnerRequest, session: Session = Depends(get_session)
):
    """Declare a winner without a score (walkover, forfeit); propagates like a score."""
    tournament = get_tournament_or_404(session, tournament_id)
    try:
        row, update = bracket_service.set_winner(session, tournament, match_id, payload.winner_slot)
    except (BracketStateError, MatchNotFoundError, InvalidScoreError, EntrantsNotDeterminedError) as exc:
        raise _http_error(exc)

    return ScoreUpdateResponse(
        match=_resolved_match_response(update.view.get(match_id), row),
        changed_match_ids=update.changed_match_ids,
    )


@router.delete("/tournaments/{tournament_id}/matches/{match_id}/score", response_model=ScoreUpdateResponse)
def reset_score(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    """Clear a score. Later matches already scored keep their own result."""
    tournament = get_tournament_or_404(session, tournament_id)
    try:
        row, update = bracket_service.reset_score(session, tournament, match_id)
    except (BracketStateError, MatchNotFoundError) as exc:
        raise _http_error(exc)

    return ScoreUpdateResponse(
        match=_resolved_match_response(update.view.get(match_id), row),
        changed_match_ids=update.changed_match_ids,
    )


# ============================================================================
# Courts
# ============================================================================


@router.get("/tournaments/{tournament_id}/matches/ready-for-court", response_model=List[ResolvedMatchResponse])
def matches_ready_for_court(tournament_id: int, session: Session = Depends(get_session)):
    """READY matches (both entrants known, no result) that are not on a court yet."""
    tournament = get_tournament_or_404(session, tournament_id)
    engine, rows = bracket_service.load_engine(session, tournament)
    view = engine.view()
    return [
        _resolved_match_response(view.get(row.template_match_id), row)
        for row in bracket_service.ready_for_court(view, rows)
    ]


@router.put("/tournaments/{tournament_id}/matches/{match_id}/court", response_model=ResolvedMatchResponse)
def set_court(tournament_id: int, match_id: int, payload: CourtRequest, session: Session = Depends(get_session)):
    """Assign a court to a match, or clear it with court_number = null."""
    tournament = get_tournament_or_404(session, tournament_id)
    try:
        row = bracket_service.assign_court(session, tournament, match_id, payload.court_number)
    except (BracketStateError, MatchNotFoundError) as exc:
        raise _http_error(exc)

    engine, _ = bracket_service.load_engine(session, tournament)
    return _resolved_match_response(engine.view().get(match_id), row)
