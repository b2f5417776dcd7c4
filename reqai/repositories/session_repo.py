"""
Session repository for managing conversation sessions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from reqai.core.logging import get_logger
from reqai.domain.session import Session

logger = get_logger(__name__)


class SessionRepository(ABC):
    """Storage for conversation sessions."""

    @abstractmethod
    async def get(self, id: str) -> Optional[Session]: ...

    @abstractmethod
    async def save(self, entity: Session) -> Session: ...

    @abstractmethod
    async def delete(self, id: str) -> bool: ...

    @abstractmethod
    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Session]: ...

    @abstractmethod
    async def cleanup_expired(self, max_age_hours: float = 24) -> list[str]:
        """Remove sessions idle for longer than ``max_age_hours``; returns their IDs."""


class InMemorySessionRepository(SessionRepository):
    """
    In-memory session repository. Sessions are not durable across restarts.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get(self, id: str) -> Optional[Session]:
        """Get a session by ID."""
        return self._sessions.get(id)

    async def save(self, entity: Session) -> Session:
        """Save a session."""
        entity.updated_at = datetime.now(timezone.utc)
        self._sessions[entity.id] = entity
        logger.debug("Session saved", session_id=entity.id)
        return entity

    async def delete(self, id: str) -> bool:
        """Delete a session by ID."""
        if id in self._sessions:
            del self._sessions[id]
            logger.debug("Session deleted", session_id=id)
            return True
        return False

    async def list(
        self,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Session]:
        """List sessions with optional filters."""
        sessions = list(self._sessions.values())

        if filters and "status" in filters:
            sessions = [s for s in sessions if s.status == filters["status"]]

        sessions.sort(key=lambda s: s.created_at, reverse=True)

        return sessions[offset : offset + limit]

    async def cleanup_expired(self, max_age_hours: float = 24) -> list[str]:
        """Remove sessions idle for longer than max_age_hours and return their IDs."""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        expired_ids = [sid for sid, s in self._sessions.items() if s.updated_at <= cutoff]

        for session_id in expired_ids:
            del self._sessions[session_id]

        if expired_ids:
            logger.info("Cleaned up expired sessions", count=len(expired_ids))

        return expired_ids
