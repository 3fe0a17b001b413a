"""
Tournament format catalog.

Formats are JSON documents named format_<key>.json in the formats directory
(FORMATS_DIR, default app/formats). Each document carries format_name,
description, min_players, max_players and either "rotations" or "matches".
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.services.bracket_template import TemplateValidationError, matches_from_format_json

logger = logging.getLogger(__name__)

DEFAULT_FORMATS_DIR = Path(__file__).resolve().parent.parent / "formats"


@dataclass
class FormatConfig:
    format_key: str
    name: str
    description: str
    min_teams: int
    max_teams: int
    total_matches: int
    format_data: Dict[str, Any]


def formats_dir() -> Path:
    return Path(os.getenv("FORMATS_DIR", str(DEFAULT_FORMATS_DIR)))


def _load_format(path: Path) -> Optional[FormatConfig]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        specs = matches_from_format_json(data)
    except (OSError, ValueError, TemplateValidationError) as exc:
        logger.warning("Skipping format file %s: %s", path.name, exc)
        return None

    key = path.stem[len("format_"):] if path.stem.startswith("format_") else path.stem
    return FormatConfig(
        format_key=key,
        name=data.get("format_name") or key,
        description=data.get("description") or "",
        min_teams=int(data.get("min_players") or 0),
        max_teams=int(data.get("max_players") or 999),
        total_matches=len(specs),
        format_data=data,
    )


def list_formats(directory: Optional[Path] = None) -> List[FormatConfig]:
    """All valid formats, ordered by key. Invalid files are logged and skipped."""
    directory = directory or formats_dir()
    if not directory.is_dir():
        logger.warning("Formats directory %s does not exist", directory)
        return []
    formats = [_load_format(p) for p in sorted(directory.glob("*.json"))]
    return [f for f in formats if f is not None]


def available_formats(team_count: int, directory: Optional[Path] = None) -> List[FormatConfig]:
    return [f for f in list_formats(directory) if f.min_teams <= team_count <= f.max_teams]


def get_format(format_key: str, directory: Optional[Path] = None) -> Optional[FormatConfig]:
    for fmt in list_formats(directory):
        if fmt.format_key == format_key:
            return fmt
    return None
