"""
Repository implementations for data access.
"""

from reqai.repositories.results_repo import FileResultsStore, InMemoryResultsStore, ResultsStore
from reqai.repositories.session_repo import InMemorySessionRepository, SessionRepository

__all__ = [
    "SessionRepository",
    "ResultsStore",
    "FileResultsStore",
    "InMemoryResultsStore",
    "InMemorySessionRepository",
]
