# kcagenda/config.py
"""
Runtime settings and static configuration.

Settings come from environment variables; league whitelists, upstream URLs,
name corrections and the caster roster are static and live here as constants.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

# --- Games / organization ---

LOL = "League of Legends"
VALORANT = "Valorant"
GAMES = (LOL, VALORANT)

TARGET_ORGANIZATION = "Karmine Corp"

# Canonical wiki names of the organization's rosters, per league.
ORGANIZATION_NAMES_BY_LEAGUE: Dict[str, str] = {
    "LFL": "Karmine Corp Blue",
    "La Ligue Française": "Karmine Corp Blue",
    "div2": "Karmine Corp Blue Stars",
}

# --- Official match API ---

LOL_ESPORTS_URL = "https://lolesports.com"
VALORANT_ESPORTS_URL = "https://valorantesports.com"
HOME_EVENTS_OPERATION = "homeEvents"
HOME_EVENTS_HASH = "089916a64423fe9796f6e81b30e9bda7e329366a5b06029748c610a8e486d23f"

LEAGUE_IDS: Dict[str, List[str]] = {
    LOL: [
        "100695891328981122",  # EMEA Masters
        "105266103462388553",  # LFL
        "113464388705111224",  # First Stand
        "98767975604431411",   # Worlds
        "98767991302996019",   # LEC
        "98767991325878492",   # MSI
    ],
    VALORANT: [
        "106109559530232966",
        "107019646737643925",
        "107566807613828723",
        "109222784797127274",
        "109940824119741550",
        "113991317635212236",
    ],
}

SPORT_CODES: Dict[str, str] = {LOL: "lol", VALORANT: "val"}
ESPORTS_DOMAINS: Dict[str, str] = {LOL: LOL_ESPORTS_URL, VALORANT: VALORANT_ESPORTS_URL}

# --- Wiki sources ---

LOL_FANDOM_URL = "https://lol.fandom.com"
LIQUIPEDIA_VALORANT_URL = "https://liquipedia.net/valorant"
CONSENT_REJECT_SELECTOR = "#onetrust-reject-all-handler"

# --- Division 2 bracket ---

DIV2_LEAGUE = "div2"
DIV2_BASE_URL = "https://www.division2lol.fr"
DIV2_MATCHES_PAGE = f"{DIV2_BASE_URL}/matchs"
DIV2_LOGO_URL = f"{DIV2_BASE_URL}/media/7301732705288822784/original"
DIV2_SEASON_START = "2025-01-01T00:00:00+00:00"
DIV2_ORGANIZATION_MARKER = "KCorp"

# --- Name corrections ---
# Official API display names that differ from the wiki page titles.

LOL_NAME_CORRECTIONS: Dict[str, str] = {
    "Team Liquid Honda": "Team Liquid",
    "TOPESPORTS": "Top Esports",
    "KCorp Blue Stars": "Karmine Corp Blue Stars",
    "KC Blue": "Karmine Corp Blue",
    "KCB": "Karmine Corp Blue",
    "BNK FEARX": "BNK FearX",
    "Movistar KOI": "Movistar KOI (Spanish Team)",
}

VALORANT_NAME_CORRECTIONS: Dict[str, str] = {
    "KARMINE CORP": "Karmine Corp",
    "FUT Esports": "FUT Esports",
    "BBL Esports": "BBL Esports",
    "Team Heretics": "Team Heretics",
}

# Game Changers rosters have their own Liquipedia pages.
VALORANT_GC_LEAGUE_MARKERS = ("Game Changers", "GC")
VALORANT_GC_SUFFIX = " GC"

# --- Casters (seeded once, read-only for the pipeline) ---

CASTERS: List[Dict[str, object]] = [
    {
        "name": "Kameto",
        "twitch_link": "https://www.twitch.tv/kamet0",
        "leagues": [
            "LEC",
            "La Ligue Française",
            "First Stand",
            "MSI",
            "Mondial",
            "EMEA Masters",
            "VCT",
            "RL",
        ],
    },
    {"name": "Tiky", "twitch_link": "https://www.twitch.tv/tikyjr", "leagues": ["Div2", "div2"]},
    {"name": "Fugu", "twitch_link": "https://www.twitch.tv/fugu_fps", "leagues": ["VCL"]},
    {"name": "Helydia", "twitch_link": "https://www.twitch.tv/helydia", "leagues": ["GC"]},
    {"name": "Kenny", "twitch_link": "https://www.twitch.tv/kennystream", "leagues": ["RL"]},
    {"name": "Fatih", "twitch_link": "https://www.twitch.tv/fatiiiih", "leagues": ["TFT"]},
]

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


def _env_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value not in (None, "") else default
    except ValueError:
        return default


@dataclass
class Settings:
    """Environment-driven runtime settings."""

    db_path: str = "data/kcagenda.db"
    scraper_secret: str = ""
    headless: bool = True
    navigation_timeout_ms: int = 60000
    selector_timeout_ms: int = 5000
    intercept_timeout_s: float = 10.0
    lookahead_days: int = 60
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            db_path=env.get("KCAGENDA_DB_PATH") or cls.db_path,
            scraper_secret=env.get("SCRAPER_SECRET", ""),
            headless=_env_bool(env.get("KCAGENDA_HEADLESS"), True),
            navigation_timeout_ms=_env_int(env.get("KCAGENDA_NAV_TIMEOUT_MS"), cls.navigation_timeout_ms),
            selector_timeout_ms=_env_int(env.get("KCAGENDA_SELECTOR_TIMEOUT_MS"), cls.selector_timeout_ms),
            intercept_timeout_s=_env_float(env.get("KCAGENDA_INTERCEPT_TIMEOUT_S"), cls.intercept_timeout_s),
            lookahead_days=_env_int(env.get("KCAGENDA_LOOKAHEAD_DAYS"), cls.lookahead_days),
            log_level=(env.get("KCAGENDA_LOG_LEVEL") or cls.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for CLI and web entry points."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
