from __future__ import annotations

import re

from game_lifecycle.core.text import normalize_team_name

# Conference exhibitions, all-star/skills events, TBD fixtures and directional
# squads. None of these are trackable games.
PLACEHOLDER_TEAM_NAMES: tuple[str, ...] = (
    "NFC",
    "AFC",
    "TBD",
    "TBA",
    "All-Stars",
    "All Stars",
    "All-Star",
    "All Star",
    "Conference",
    "Unknown",
    "Team",
    "Team 1",
    "Team 2",
    "Home",
    "Away",
    "East",
    "West",
    "North",
    "South",
    "National",
    "American",
    "Pro Bowl",
    "Pro-Bowl",
    "Skills Challenge",
)

_PLACEHOLDER_NORMS = frozenset(normalize_team_name(n) for n in PLACEHOLDER_TEAM_NAMES)
_team_number_re = re.compile(r"^team\s+(\d+|unknown)$")


def is_real_team_name(name: str | None) -> bool:
    if not name or not isinstance(name, str):
        return False

    trimmed = name.strip()
    if len(trimmed) < 2:
        return False

    norm = normalize_team_name(trimmed)
    if norm in _PLACEHOLDER_NORMS:
        return False

    return _team_number_re.match(norm) is None


def is_real_game(home_team: str | None, away_team: str | None) -> bool:
    return is_real_team_name(home_team) and is_real_team_name(away_team)
