"""
Chat endpoints for requirements conversations.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from reqai.api.deps import get_session_manager
from reqai.api.v1.extraction import read_uploads
from reqai.core.constants import FallbackMode
from reqai.core.exceptions import EmptyUploadError
from reqai.core.logging import get_logger
from reqai.core.security import generate_request_id
from reqai.domain.session import Message
from reqai.services.session_manager import SessionManager

logger = get_logger(__name__)

router = APIRouter()


def _message_dict(message: Message) -> dict[str, str]:
    return {"role": message.role.value, "content": message.content}


class CreateSessionRequest(BaseModel):
    """Request to create a new session."""

    fallback_mode: Optional[FallbackMode] = Field(
        default=None, description="'local' canned reply or 'error' on model failure"
    )
    metadata: Optional[dict[str, Any]] = None


class SessionResponse(BaseModel):
    """Response with session info."""

    session_id: str
    status: str
    fallback_mode: str
    messages: list[dict[str, str]]
    created_at: str


@router.post("/chat/session", response_model=SessionResponse)
async def create_session(
    request: Optional[CreateSessionRequest] = None,
    session_manager: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    """
    Create a new chat session.
    The session opens with the assistant greeting.
    """
    request = request or CreateSessionRequest()
    session = await session_manager.create_session(
        fallback_mode=request.fallback_mode,
        metadata=request.metadata,
    )

    return SessionResponse(
        session_id=session.id,
        status=session.status.value,
        fallback_mode=session.fallback_mode.value,
        messages=[_message_dict(m) for m in session.history],
        created_at=session.created_at.isoformat(),
    )


class ChatMessageRequest(BaseModel):
    """Request model for chat messages."""

    session_id: Optional[str] = Field(
        default=None, description="Session ID (creates new if not provided)"
    )
    message: str = Field(..., description="User message", min_length=1)


class ChatMessageResponse(BaseModel):
    """Response model for chat messages."""

    session_id: str
    message_id: str
    response: dict[str, str]
    fallback_used: bool
    timestamp: str


@router.post("/chat/message", response_model=ChatMessageResponse)
async def send_message(
    request: ChatMessageRequest,
    session_manager: SessionManager = Depends(get_session_manager),
) -> ChatMessageResponse:
    """
    Send a message and get the assistant reply.

    A missing session ID starts a new session; an unknown one is a 404.
    """
    request_id = generate_request_id()

    if request.session_id:
        session_id = request.session_id
    else:
        session = await session_manager.create_session(metadata={"request_id": request_id})
        session_id = session.id

    logger.info(
        "Processing chat message",
        request_id=request_id,
        session_id=session_id,
        message_length=len(request.message),
    )

    reply = await session_manager.send_message(session_id, request.message)

    return ChatMessageResponse(
        session_id=session_id,
        message_id=request_id,
        response=_message_dict(reply.message),
        fallback_used=reply.fallback_used,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


class AttachmentResponse(BaseModel):
    """Response for a document attachment turn."""

    session_id: str
    results: dict[str, dict[str, Any]]
    summary: str
    response: dict[str, str]
    fallback_used: bool
    warning: Optional[str] = None


@router.post("/chat/session/{session_id}/attachments", response_model=AttachmentResponse)
async def attach_documents(
    session_id: str,
    files: list[UploadFile] = File(default=[]),
    session_manager: SessionManager = Depends(get_session_manager),
) -> AttachmentResponse:
    """
    Extract documents and analyze them within the conversation.
    """
    uploaded = await read_uploads(files)
    if not uploaded:
        raise EmptyUploadError()

    reply = await session_manager.attach_documents(session_id, uploaded)

    return AttachmentResponse(
        session_id=session_id,
        results=reply.result.to_snapshot(),
        summary=reply.summary,
        response=_message_dict(reply.message),
        fallback_used=reply.fallback_used,
        warning=reply.result.warning,
    )


class ConversationHistoryResponse(BaseModel):
    """Response with conversation history."""

    session_id: str
    messages: list[dict[str, str]]
    total_messages: int


@router.get("/chat/history/{session_id}", response_model=ConversationHistoryResponse)
async def get_conversation_history(
    session_id: str,
    limit: Optional[int] = None,
    session_manager: SessionManager = Depends(get_session_manager),
) -> ConversationHistoryResponse:
    """
    Get conversation history for a session.
    """
    logger.info("Retrieving conversation history", session_id=session_id)

    messages = await session_manager.get_history(session_id, limit)

    return ConversationHistoryResponse(
        session_id=session_id,
        messages=[_message_dict(m) for m in messages],
        total_messages=len(messages),
    )


@router.delete("/chat/session/{session_id}/history")
async def clear_conversation(
    session_id: str,
    session_manager: SessionManager = Depends(get_session_manager),
) -> dict[str, str]:
    """
    Clear conversation history for a session.
    """
    logger.info("Clearing conversation", session_id=session_id)

    await session_manager.clear_conversation(session_id)
    return {"status": "cleared", "session_id": session_id}


@router.delete("/chat/session/{session_id}")
async def end_session(
    session_id: str,
    session_manager: SessionManager = Depends(get_session_manager),
) -> dict[str, str]:
    """
    End a chat session.
    """
    logger.info("Ending session", session_id=session_id)

    await session_manager.end_session(session_id)
    return {"status": "ended", "session_id": session_id}
