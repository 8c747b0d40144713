# kcagenda/resolvers/__init__.py
"""
Wiki-backed lookups used to enrich draft matches.

Each resolver takes a page session and keeps its own cache, so one
resolver instance should live exactly as long as one pipeline run.
"""

from .head_to_head import HeadToHeadResolver
from .roster import RosterResolver
from .standings import StandingsResolver
from .team_stats import TeamStatsResolver

__all__ = ['HeadToHeadResolver', 'RosterResolver', 'StandingsResolver', 'TeamStatsResolver']
