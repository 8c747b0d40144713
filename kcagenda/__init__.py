"""
Karmine Corp esports agenda.

Scrapes upcoming match schedules, rosters and statistics for League of
Legends and Valorant, and keeps a match store current for the calendar UI.
"""

__version__ = "0.4.0"
