"""
Tournament format catalog (read-only).
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from app.services.format_catalog import FormatConfig, available_formats, get_format, list_formats

router = APIRouter()


class FormatSummary(BaseModel):
    format_key: str
    name: str
    description: str
    min_teams: int
    max_teams: int
    total_matches: int


class FormatDetail(FormatSummary):
    format_data: Dict[str, Any]


def _summary(fmt: FormatConfig) -> FormatSummary:
    return FormatSummary(
        format_key=fmt.format_key,
        name=fmt.name,
        description=fmt.description,
        min_teams=fmt.min_teams,
        max_teams=fmt.max_teams,
        total_matches=fmt.total_matches,
    )


@router.get("/formats", response_model=List[FormatSummary])
def get_formats(team_count: Optional[int] = Query(None, ge=0, description="Only formats accepting this many teams")):
    """List formats, optionally filtered to those accepting team_count teams."""
    formats = list_formats() if team_count is None else available_formats(team_count)
    return [_summary(f) for f in formats]


@router.get("/formats/{format_key}", response_model=FormatDetail)
def get_format_detail(format_key: str):
    fmt = get_format(format_key)
    if not fmt:
        raise HTTPException(status_code=404, detail=f"Format '{format_key}' not found")
    return FormatDetail(**_summary(fmt).model_dump(), format_data=fmt.format_data)
