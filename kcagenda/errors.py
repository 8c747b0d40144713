# kcagenda/errors.py
"""Error taxonomy shared by the scrapers, resolvers and the store."""


class KcAgendaError(Exception):
    """Base class for pipeline errors."""


class FetchTimeout(KcAgendaError):
    """Raised when an upstream page or API does not answer in time."""


class StructureNotFound(KcAgendaError):
    """Raised when a structurally required container is missing from a page."""


class DuplicateMatch(KcAgendaError):
    """Raised when a discovered event is already known to the store."""


class PersistenceConflict(KcAgendaError):
    """Raised when an insert violates the unique match identifier."""

    def __init__(self, match_id: str, message: str = ""):
        self.match_id = match_id
        super().__init__(message or f"Match '{match_id}' already exists")


class UnknownLeagueStrategy(KcAgendaError):
    """Raised when no standings strategy is registered for a league."""
