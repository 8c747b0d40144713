# kcagenda/scraper/__init__.py
"""
Browser-backed fetching for pages that only render client-side.
"""

from .session import BrowserSession

__all__ = ['BrowserSession']
