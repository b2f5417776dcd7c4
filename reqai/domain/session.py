"""
Session domain model.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from reqai.core.constants import FallbackMode, MessageRole, SessionStatus
from reqai.domain.backlog import BacklogResult
from reqai.domain.extraction import ExtractionResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A message in a conversation."""

    role: MessageRole = Field(..., description="Role of the message sender")
    content: str = Field(..., description="Message content")

    def to_api(self) -> dict[str, str]:
        """Chat-completion wire format."""
        return {"role": self.role.value, "content": self.content}


class Session(BaseModel):
    """
    One user's conversation state.

    Every turn reads and appends to ``history`` of exactly one session; nothing
    conversational is kept at module scope.
    """

    id: str = Field(..., description="Unique session identifier")
    status: SessionStatus = Field(default=SessionStatus.ACTIVE)
    fallback_mode: FallbackMode = Field(
        default=FallbackMode.LOCAL,
        description="Fixed for the lifetime of the conversation",
    )

    history: list[Message] = Field(default_factory=list)
    backlog: Optional[BacklogResult] = Field(default=None, description="Latest generated backlog")
    extraction: Optional[ExtractionResult] = Field(
        default=None, description="Latest document batch attached to this conversation"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def add_message(self, role: MessageRole, content: str) -> Message:
        """Append a message to the history."""
        message = Message(role=role, content=content)
        self.history.append(message)
        self.updated_at = _utcnow()
        return message

    def transcript(self, roles: Optional[set[MessageRole]] = None) -> str:
        """Plain-text rendering of the conversation."""
        roles = roles or {MessageRole.USER, MessageRole.ASSISTANT}
        return "\n\n".join(
            f"{m.role.value}: {m.content}" for m in self.history if m.role in roles
        )

    @property
    def is_active(self) -> bool:
        """Check if session is active."""
        return self.status == SessionStatus.ACTIVE

    @property
    def message_count(self) -> int:
        """Get number of messages in conversation."""
        return len(self.history)
