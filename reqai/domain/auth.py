"""
Jira OAuth state domain model.
"""

from __future__ import annotations

import time
from typing import Any, Optional

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class AuthState(BaseModel):
    """
    Token material for the issue tracker.

    ``access_token`` is only meaningful while ``is_authenticated`` is true and
    ``expires_at`` lies in the future; every consumer checks ``is_usable``
    before touching it.
    """

    is_authenticated: bool = Field(default=False)
    access_token: Optional[str] = Field(default=None)
    refresh_token: Optional[str] = Field(default=None)
    expires_at: Optional[int] = Field(default=None, description="Absolute expiry, epoch ms")
    cloud_id: Optional[str] = Field(default=None, description="Resolved tenant identifier")
    selected_project_id: Optional[str] = Field(default=None)

    def is_expired(self, at_ms: Optional[int] = None) -> bool:
        """True when the expiry is unknown or not in the future."""
        if self.expires_at is None:
            return True
        return self.expires_at <= (now_ms() if at_ms is None else at_ms)

    def is_usable(self, at_ms: Optional[int] = None) -> bool:
        """Authenticated, holding a token, and not expired."""
        return bool(self.is_authenticated and self.access_token and not self.is_expired(at_ms))

    def public_view(self) -> dict[str, Any]:
        """Fields safe to hand to the browser; tokens stay in the httpOnly cookie."""
        return {
            "isAuthenticated": self.is_authenticated,
            "expiresAt": self.expires_at,
            "cloudId": self.cloud_id,
            "selectedProjectId": self.selected_project_id,
        }
