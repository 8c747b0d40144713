# kcagenda/names.py
"""Team-name canonicalization and wiki URL helpers."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from kcagenda.config import (
    LOL,
    LOL_NAME_CORRECTIONS,
    ORGANIZATION_NAMES_BY_LEAGUE,
    TARGET_ORGANIZATION,
    VALORANT,
    VALORANT_GC_LEAGUE_MARKERS,
    VALORANT_GC_SUFFIX,
    VALORANT_NAME_CORRECTIONS,
)

PLACEHOLDER_NAMES = {"", "TBD", "TBA"}
ORGANIZATION_MARKERS = ("karmine", "kcorp")
ORGANIZATION_ACRONYMS = frozenset({"KC", "KCB", "KCBS"})


def correct_lol_name(name: str) -> str:
    clean = (name or "").strip()
    return LOL_NAME_CORRECTIONS.get(clean, clean)


def correct_valorant_name(name: str, league: Optional[str] = None) -> str:
    clean = (name or "").strip()
    corrected = VALORANT_NAME_CORRECTIONS.get(clean, clean)
    if league and any(marker in league for marker in VALORANT_GC_LEAGUE_MARKERS):
        if is_organization(corrected) and not corrected.endswith(VALORANT_GC_SUFFIX):
            corrected = f"{corrected}{VALORANT_GC_SUFFIX}"
    return corrected


def correct_name(name: str, game: str, league: Optional[str] = None) -> str:
    """Map an upstream display name to the wiki page title for that game."""
    if game == VALORANT:
        return correct_valorant_name(name, league)
    return correct_lol_name(name)


def is_placeholder(name: Optional[str]) -> bool:
    return (name or "").strip().upper() in PLACEHOLDER_NAMES


def is_organization(name: Optional[str], acronym: Optional[str] = None) -> bool:
    lowered = (name or "").lower()
    if any(marker in lowered for marker in ORGANIZATION_MARKERS):
        return True
    return (acronym or "").strip().upper() in ORGANIZATION_ACRONYMS


def organization_name(league: str, team_names: Iterable[str], game: str = LOL) -> str:
    """Canonical organization name for head-to-head queries in a league."""
    for name in team_names:
        if is_organization(name):
            return correct_name(name, game, league)
    return ORGANIZATION_NAMES_BY_LEAGUE.get(league, TARGET_ORGANIZATION)


def wiki_slug(name: str) -> str:
    """'Karmine Corp Blue' -> 'Karmine_Corp_Blue'."""
    return re.sub(r"\s+", "_", (name or "").strip())


def query_term(name: str) -> str:
    """'Karmine Corp Blue' -> 'Karmine+Corp+Blue' for RunQuery parameters."""
    return re.sub(r"\s+", "+", (name or "").strip())


def initials(name: str) -> str:
    return "".join(word[0] for word in (name or "").split() if word)
