"""
API dependencies for dependency injection.
"""

from typing import Optional

from fastapi import Request, Response

from reqai.auth.cookies import decode_auth_state, encode_auth_state
from reqai.auth.token_manager import TokenLifecycleManager
from reqai.backlog.generator import BacklogItemGenerator
from reqai.conversation.context_builder import ConversationContextBuilder
from reqai.core.config import settings
from reqai.domain.auth import AuthState
from reqai.extraction.orchestrator import ExtractionOrchestrator
from reqai.extraction.provider import SubprocessExtractionProvider
from reqai.jira.client import JiraClient
from reqai.llm.gateway import LLMGateway
from reqai.repositories.results_repo import FileResultsStore, ResultsStore
from reqai.repositories.session_repo import InMemorySessionRepository
from reqai.services.session_manager import SessionManager


class ServiceContainer:
    """
    Container for all application services.
    Provides singleton instances of services.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(self) -> None:
        self._initialized = False

    @classmethod
    def get_instance(cls) -> "ServiceContainer":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def initialize(self) -> None:
        """Initialize all services."""
        if self._initialized:
            return

        # Persistence
        self._results_store = FileResultsStore()
        self._session_repository = InMemorySessionRepository()

        # Outbound clients
        self._gateway = LLMGateway()
        self._jira_client = JiraClient()
        self._token_manager = TokenLifecycleManager(tracker=self._jira_client)

        # Extraction
        self._orchestrator = ExtractionOrchestrator(
            provider=SubprocessExtractionProvider(),
            results_store=self._results_store,
        )

        self._session_manager = SessionManager(
            gateway=self._gateway,
            orchestrator=self._orchestrator,
            results_store=self._results_store,
            backlog_generator=BacklogItemGenerator(self._gateway),
            context_builder=ConversationContextBuilder(),
            session_repository=self._session_repository,
        )

        self._initialized = True

    async def shutdown(self) -> None:
        """Drop sessions and close outbound HTTP clients."""
        if not self._initialized:
            return
        await self._session_manager.cleanup_inactive_sessions(inactive_hours=0)
        await self._gateway.close()
        await self._token_manager.close()

    @property
    def session_manager(self) -> SessionManager:
        """Get the session manager."""
        self.initialize()
        return self._session_manager

    @property
    def orchestrator(self) -> ExtractionOrchestrator:
        """Get the extraction orchestrator."""
        self.initialize()
        return self._orchestrator

    @property
    def results_store(self) -> ResultsStore:
        """Get the results store."""
        self.initialize()
        return self._results_store

    @property
    def token_manager(self) -> TokenLifecycleManager:
        """Get the token lifecycle manager."""
        self.initialize()
        return self._token_manager

    @property
    def jira_client(self) -> JiraClient:
        """Get the Jira client."""
        self.initialize()
        return self._jira_client


# Singleton container instance
container = ServiceContainer.get_instance()


# Dependency functions for FastAPI
def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    return container.session_manager


def get_orchestrator() -> ExtractionOrchestrator:
    """Get the extraction orchestrator instance."""
    return container.orchestrator


def get_results_store() -> ResultsStore:
    """Get the results store instance."""
    return container.results_store


def get_token_manager() -> TokenLifecycleManager:
    """Get the token lifecycle manager instance."""
    return container.token_manager


def get_jira_client() -> JiraClient:
    """Get the Jira client instance."""
    return container.jira_client


# Auth cookie helpers
def get_auth_state(request: Request) -> AuthState:
    """Auth state decoded from the signed auth cookie."""
    return decode_auth_state(request.cookies.get(settings.jira.auth_cookie_name))


def set_auth_cookie(response: Response, state: AuthState) -> None:
    """Persist the auth state in its signed, httpOnly cookie."""
    response.set_cookie(
        key=settings.jira.auth_cookie_name,
        value=encode_auth_state(state),
        max_age=settings.jira.auth_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_auth_cookie(response: Response) -> None:
    """Remove the auth cookie."""
    response.delete_cookie(
        key=settings.jira.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def set_state_cookie(response: Response, state: str) -> None:
    """Pin the OAuth state value for the callback to check."""
    response.set_cookie(
        key=settings.jira.state_cookie_name,
        value=state,
        max_age=settings.jira.state_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_state_cookie(response: Response) -> None:
    """Remove the OAuth state cookie."""
    response.delete_cookie(
        key=settings.jira.state_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
