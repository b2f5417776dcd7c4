"""
Pytest configuration and fixtures.
"""

import json
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Optional, Sequence

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from reqai.api.deps import (
    get_jira_client,
    get_orchestrator,
    get_results_store,
    get_session_manager,
    get_token_manager,
)
from reqai.auth.token_manager import TokenLifecycleManager
from reqai.conversation.context_builder import ConversationContextBuilder
from reqai.core.exceptions import ExtractionProviderError
from reqai.extraction.orchestrator import ExtractionOrchestrator
from reqai.extraction.provider import ExtractionProvider
from reqai.jira.client import JiraClient
from reqai.llm.gateway import LLMGateway
from reqai.main import app
from reqai.repositories.results_repo import InMemoryResultsStore
from reqai.services.session_manager import SessionManager


class FakeExtractionProvider(ExtractionProvider):
    """Provider returning a canned mapping, or failing when ``error`` is set."""

    def __init__(
        self,
        output: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        self.output = output or {}
        self.error = error
        self.calls: list[list[Path]] = []

    @property
    def name(self) -> str:
        return "fake"

    async def extract(self, paths: Sequence[Path]) -> dict[str, Any]:
        self.calls.append(list(paths))
        if self.error:
            raise ExtractionProviderError(self.error)
        return self.output


def completion_body(content: str) -> dict[str, Any]:
    """Chat-completion response body carrying ``content``."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class RecordingHandler:
    """
    httpx MockTransport handler that records requests and replays responses.

    ``responses`` entries are either (status, json body) tuples or callables
    receiving the request.
    """

    def __init__(self, responses: Optional[list[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(500, json={"error": "no response queued"})
        entry = self.responses.pop(0)
        if callable(entry):
            return entry(request)
        status, body = entry
        return httpx.Response(status, json=body)

    def bodies(self) -> list[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests]


@pytest.fixture
def llm_handler() -> RecordingHandler:
    """Queue of chat-completion responses."""
    return RecordingHandler()


@pytest.fixture
def gateway(llm_handler: RecordingHandler) -> LLMGateway:
    """Gateway wired to the mock chat-completion handler."""
    return LLMGateway(
        api_url="https://llm.test/v1/chat/completions",
        api_key="test-key",
        model="test-model",
        max_attempts=1,
        transport=httpx.MockTransport(llm_handler),
    )


@pytest.fixture
def fake_provider() -> FakeExtractionProvider:
    """Extraction provider that is down unless a test configures output."""
    return FakeExtractionProvider(error="extraction tool unavailable")


@pytest.fixture
def results_store() -> InMemoryResultsStore:
    """In-memory results store."""
    return InMemoryResultsStore()


@pytest.fixture
def orchestrator(
    fake_provider: FakeExtractionProvider,
    results_store: InMemoryResultsStore,
    tmp_path: Path,
) -> ExtractionOrchestrator:
    """Orchestrator writing uploads under a temporary directory."""
    return ExtractionOrchestrator(
        provider=fake_provider,
        results_store=results_store,
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def session_manager(
    gateway: LLMGateway,
    orchestrator: ExtractionOrchestrator,
    results_store: InMemoryResultsStore,
) -> SessionManager:
    """Session manager over the fakes above."""
    return SessionManager(
        gateway=gateway,
        orchestrator=orchestrator,
        results_store=results_store,
        context_builder=ConversationContextBuilder(
            window_size=8, preserved_head=2, max_content_chars=1500
        ),
        system_prompt="You are a requirements assistant.",
    )


@pytest.fixture
def jira_handler() -> RecordingHandler:
    """Queue of Jira and OAuth responses."""
    return RecordingHandler()


@pytest.fixture
def jira_client(jira_handler: RecordingHandler) -> JiraClient:
    """Jira client wired to the mock handler."""
    return JiraClient(
        api_base_url="https://api.jira.test",
        max_attempts=1,
        transport=httpx.MockTransport(jira_handler),
    )


@pytest.fixture
def token_manager(jira_handler: RecordingHandler, jira_client: JiraClient) -> TokenLifecycleManager:
    """Token manager sharing the Jira mock handler."""
    return TokenLifecycleManager(
        client_id="client-123",
        client_secret="secret-456",
        redirect_uri="http://testserver/api/v1/jira/callback",
        authorize_url="https://auth.jira.test/authorize",
        token_url="https://auth.jira.test/oauth/token",
        revoke_url="",
        audience="api.atlassian.com",
        scopes=["read:jira-work", "offline_access"],
        refresh_margin_seconds=60,
        tracker=jira_client,
        transport=httpx.MockTransport(jira_handler),
    )


@pytest.fixture
def override_dependencies(
    session_manager: SessionManager,
    orchestrator: ExtractionOrchestrator,
    results_store: InMemoryResultsStore,
    token_manager: TokenLifecycleManager,
    jira_client: JiraClient,
) -> Callable[[], None]:
    """Point the app's dependencies at the test doubles."""

    def apply() -> None:
        app.dependency_overrides[get_session_manager] = lambda: session_manager
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        app.dependency_overrides[get_results_store] = lambda: results_store
        app.dependency_overrides[get_token_manager] = lambda: token_manager
        app.dependency_overrides[get_jira_client] = lambda: jira_client

    return apply


@pytest.fixture
async def async_client(
    override_dependencies: Callable[[], None],
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    override_dependencies()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_session_id() -> str:
    """Sample session ID for testing."""
    return "sess_test123456"
