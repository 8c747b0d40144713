# tests/test_config.py

import logging

from kcagenda.config import GAMES, LEAGUE_IDS, SPORT_CODES, Settings, configure_logging


def test_settings_defaults():
    settings = Settings.from_env({})
    assert settings.db_path == "data/kcagenda.db"
    assert settings.scraper_secret == ""
    assert settings.headless is True
    assert settings.lookahead_days == 60
    assert settings.log_level == "INFO"


def test_settings_from_environment():
    settings = Settings.from_env({
        "KCAGENDA_DB_PATH": "/tmp/agenda.db",
        "SCRAPER_SECRET": "token",
        "KCAGENDA_HEADLESS": "0",
        "KCAGENDA_NAV_TIMEOUT_MS": "1000",
        "KCAGENDA_INTERCEPT_TIMEOUT_S": "2.5",
        "KCAGENDA_LOOKAHEAD_DAYS": "not a number",
        "KCAGENDA_LOG_LEVEL": "debug",
    })
    assert settings.db_path == "/tmp/agenda.db"
    assert settings.scraper_secret == "token"
    assert settings.headless is False
    assert settings.navigation_timeout_ms == 1000
    assert settings.intercept_timeout_s == 2.5
    assert settings.lookahead_days == 60
    assert settings.log_level == "DEBUG"


def test_every_game_has_upstream_config():
    for game in GAMES:
        assert LEAGUE_IDS[game]
        assert SPORT_CODES[game]


def test_configure_logging_accepts_unknown_level():
    configure_logging("chatty")
    assert logging.getLogger("kcagenda").getEffectiveLevel() <= logging.CRITICAL
