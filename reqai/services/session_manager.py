"""
Session manager for handling conversations, document attachments and backlogs.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from reqai.backlog.generator import BacklogItemGenerator
from reqai.conversation.context_builder import ConversationContextBuilder, summarize_extraction
from reqai.core.config import settings
from reqai.core.constants import GREETING_MESSAGE, FallbackMode, MessageRole, SessionStatus
from reqai.core.exceptions import (
    BacklogNotFoundError,
    EmptyConversationError,
    SessionNotFoundError,
    ValidationError,
)
from reqai.core.logging import LogContext, get_logger
from reqai.core.security import generate_session_id
from reqai.domain.backlog import BacklogResult
from reqai.domain.extraction import ExtractionResult
from reqai.domain.session import Message, Session
from reqai.extraction.orchestrator import ExtractionOrchestrator, UploadedFile
from reqai.llm.gateway import LLMGateway
from reqai.llm.prompts import ANALYSIS_HEADING
from reqai.repositories.results_repo import ResultsStore
from reqai.repositories.session_repo import InMemorySessionRepository, SessionRepository

logger = get_logger(__name__)


@dataclass
class TurnReply:
    """Outcome of one conversational turn."""

    message: Message
    fallback_used: bool = False


@dataclass
class AttachmentReply:
    """Outcome of attaching a document batch to a conversation."""

    result: ExtractionResult
    summary: str
    message: Message
    fallback_used: bool = False


class SessionManager:
    """
    Manages sessions and the turns taken within them.

    Turns within one session are serialized by a per-session lock; different
    sessions proceed independently.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        orchestrator: ExtractionOrchestrator,
        results_store: ResultsStore,
        backlog_generator: Optional[BacklogItemGenerator] = None,
        context_builder: Optional[ConversationContextBuilder] = None,
        session_repository: Optional[SessionRepository] = None,
        system_prompt: Optional[str] = None,
    ) -> None:
        """
        Initialize the session manager.

        Args:
            gateway: Chat-completion gateway
            orchestrator: Extraction orchestrator for attachments
            results_store: Snapshot and response persistence
            backlog_generator: Backlog structuring
            context_builder: Builds the transmitted message sequence
            session_repository: Session repository
            system_prompt: Directive seeded first in every session
        """
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.results_store = results_store
        self.backlog_generator = backlog_generator or BacklogItemGenerator(gateway)
        self.context_builder = context_builder or ConversationContextBuilder()
        self.session_repository = session_repository or InMemorySessionRepository()
        self.system_prompt = system_prompt if system_prompt is not None else settings.llm.system_prompt

        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    def _seed_history(self, session: Session) -> None:
        session.history = []
        if self.system_prompt:
            session.add_message(MessageRole.SYSTEM, self.system_prompt)
        session.add_message(MessageRole.ASSISTANT, GREETING_MESSAGE)

    async def create_session(
        self,
        fallback_mode: Optional[FallbackMode] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Session:
        """
        Create a new session.

        Args:
            fallback_mode: Failure policy for this conversation (defaults to config)
            metadata: Additional session metadata

        Returns:
            Created session, seeded with the system directive and greeting
        """
        session = Session(
            id=generate_session_id(),
            status=SessionStatus.ACTIVE,
            fallback_mode=fallback_mode or FallbackMode(settings.llm.fallback_mode),
            metadata=metadata or {},
        )
        self._seed_history(session)
        await self.session_repository.save(session)

        logger.info(
            "Session created",
            session_id=session.id,
            fallback_mode=session.fallback_mode.value,
        )
        return session

    async def get_session(self, session_id: str) -> Session:
        """
        Get a session by ID.

        Raises:
            SessionNotFoundError: If session not found
        """
        session = await self.session_repository.get(session_id)
        if not session:
            raise SessionNotFoundError(session_id)
        return session

    async def _get_active_session(self, session_id: str) -> Session:
        session = await self.get_session(session_id)
        if not session.is_active:
            raise ValidationError(
                f"Session is not active: {session.status.value}",
                details={"session_id": session_id},
            )
        return session

    async def send_message(self, session_id: str, content: str) -> TurnReply:
        """
        Take one conversational turn.

        History is only extended once the reply exists, so a propagated
        gateway failure leaves the conversation unchanged.

        Args:
            session_id: Session ID
            content: User message

        Returns:
            The assistant reply and whether it was a local fallback

        Raises:
            ValidationError: If the message is blank or the session has ended
            LLMGatewayError: If the call fails and the session propagates failures
        """
        if not content or not content.strip():
            raise ValidationError("Message content must not be empty")

        session = await self._get_active_session(session_id)

        with LogContext(session_id=session_id):
            async with self._lock_for(session_id):
                pending = [Message(role=MessageRole.USER, content=content)]
                messages = self.context_builder.build(session.history, pending)
                if not messages:
                    raise EmptyConversationError()

                reply = await self.gateway.respond(messages, session.fallback_mode)

                session.add_message(MessageRole.USER, content)
                assistant = session.add_message(MessageRole.ASSISTANT, reply.content)
                await self.session_repository.save(session)

            await self.results_store.record_response(session_id, reply.content)

            logger.info(
                "Message processed",
                message_length=len(content),
                response_length=len(reply.content),
                fallback_used=reply.fallback_used,
            )
            return TurnReply(message=assistant, fallback_used=reply.fallback_used)

    async def attach_documents(
        self,
        session_id: str,
        files: Sequence[UploadedFile],
    ) -> AttachmentReply:
        """
        Extract an upload batch, inject it as a context turn and ask for an analysis.

        Raises:
            EmptyUploadError: If the batch is empty
            LLMGatewayError: If the call fails and the session propagates failures
        """
        session = await self._get_active_session(session_id)

        with LogContext(session_id=session_id):
            result = await self.orchestrator.extract(files)
            summary = summarize_extraction(result)
            context = self.context_builder.context_message(result)

            async with self._lock_for(session_id):
                messages = self.context_builder.build(session.history, [context])
                reply = await self.gateway.respond(messages, session.fallback_mode)

                session.history.append(context)
                session.extraction = result
                assistant = session.add_message(
                    MessageRole.ASSISTANT, ANALYSIS_HEADING + reply.content
                )
                session.metadata.setdefault("documents", [])
                session.metadata["documents"].extend(
                    name for name in result.files if name not in session.metadata["documents"]
                )
                await self.session_repository.save(session)

            await self.results_store.record_response(session_id, assistant.content)

            logger.info("Documents attached", files=len(result), degraded=result.degraded)
            return AttachmentReply(
                result=result,
                summary=summary,
                message=assistant,
                fallback_used=reply.fallback_used,
            )

    @staticmethod
    def _backlog_source(session: Session, text: Optional[str]) -> str:
        if text and text.strip():
            return text

        # The shared snapshot may belong to another session; only this session's batch counts
        if session.extraction is not None:
            combined = session.extraction.combined_text()
            if combined.strip():
                return combined

        return session.transcript()

    async def generate_backlog(self, session_id: str, text: Optional[str] = None) -> BacklogResult:
        """
        Generate a backlog, replacing any previous one for the session.

        The source is the given text, else the documents last attached to this
        session, else its conversation transcript.

        Raises:
            ValidationError: If there is nothing to structure
            LLMGatewayError: If the model call fails
            BacklogParseError: If the reply holds no item list
        """
        session = await self.get_session(session_id)
        source = self._backlog_source(session, text)

        with LogContext(session_id=session_id):
            result = await self.backlog_generator.generate(source)
            session.backlog = result
            await self.session_repository.save(session)
            return result

    async def get_backlog(self, session_id: str) -> BacklogResult:
        """
        Latest backlog of a session.

        Raises:
            BacklogNotFoundError: If none was generated yet
        """
        session = await self.get_session(session_id)
        if session.backlog is None:
            raise BacklogNotFoundError(session_id)
        return session.backlog

    async def get_history(self, session_id: str, limit: Optional[int] = None) -> list[Message]:
        """Stored conversation, optionally only the most recent ``limit`` messages."""
        session = await self.get_session(session_id)
        history = list(session.history)
        return history[-limit:] if limit else history

    async def clear_conversation(self, session_id: str) -> Session:
        """Reset the conversation to its opening messages."""
        session = await self.get_session(session_id)

        async with self._lock_for(session_id):
            self._seed_history(session)
            session.backlog = None
            session.extraction = None
            session.metadata.pop("documents", None)
            await self.session_repository.save(session)

        await self.results_store.clear_responses(session_id)
        logger.info("Conversation cleared", session_id=session_id)
        return session

    async def end_session(self, session_id: str) -> None:
        """
        End a session.

        Args:
            session_id: Session ID
        """
        session = await self.get_session(session_id)
        session.status = SessionStatus.COMPLETED
        await self.session_repository.save(session)
        self._locks.pop(session_id, None)
        await self.results_store.clear_responses(session_id)

        logger.info("Session ended", session_id=session_id)

    async def cleanup_inactive_sessions(self, inactive_hours: float = 24) -> int:
        """Drop sessions idle for longer than ``inactive_hours``."""
        removed = await self.session_repository.cleanup_expired(inactive_hours)

        for session_id in removed:
            self._locks.pop(session_id, None)
            await self.results_store.clear_responses(session_id)

        return len(removed)
