"""
Domain models.
"""

from reqai.domain.auth import AuthState
from reqai.domain.backlog import BacklogItem, BacklogNode, BacklogResult
from reqai.domain.extraction import ExtractionResult, FileExtraction
from reqai.domain.session import Message, Session

__all__ = [
    "AuthState",
    "BacklogItem",
    "BacklogNode",
    "BacklogResult",
    "ExtractionResult",
    "FileExtraction",
    "Message",
    "Session",
]
