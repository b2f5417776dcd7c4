"""
Tests for the OAuth token lifecycle.
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from reqai.auth.cookies import decode_auth_state, encode_auth_state
from reqai.auth.state_machine import AUTH_STATES, AUTH_TRANSITIONS, StateMachine
from reqai.auth.token_manager import TokenLifecycleManager
from reqai.core.constants import AuthErrorReason, AuthStatus
from reqai.core.exceptions import (
    AuthenticationError,
    AuthVerificationError,
    StateTransitionError,
    TokenExpiredError,
)
from reqai.domain.auth import AuthState, now_ms
from tests.conftest import RecordingHandler

TOKEN_BODY = {"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3600}


def _authenticated(expires_in_ms: int = 3_600_000, **overrides) -> AuthState:
    values = {
        "is_authenticated": True,
        "access_token": "at-0",
        "refresh_token": "rt-0",
        "expires_at": now_ms() + expires_in_ms,
    }
    values.update(overrides)
    return AuthState(**values)


def _machine_without(source: AuthStatus, target: AuthStatus) -> StateMachine:
    transitions = {
        state: [t for t in targets if (state, t) != (source.value, target.value)]
        for state, targets in AUTH_TRANSITIONS.items()
    }
    return StateMachine(AUTH_STATES, AuthStatus.UNAUTHENTICATED.value, transitions)


class TestLogin:
    """Authorization redirect."""

    def test_authorize_url_carries_state(self, token_manager: TokenLifecycleManager) -> None:
        login = token_manager.begin_login()

        url = urlparse(login.url)
        query = parse_qs(url.query)
        assert url.netloc == "auth.jira.test"
        assert query["state"] == [login.state]
        assert query["client_id"] == ["client-123"]
        assert query["response_type"] == ["code"]
        assert query["prompt"] == ["consent"]
        assert query["scope"] == ["read:jira-work offline_access"]
        assert query["redirect_uri"] == ["http://testserver/api/v1/jira/callback"]

    def test_state_is_fresh_each_time(self, token_manager: TokenLifecycleManager) -> None:
        assert token_manager.begin_login().state != token_manager.begin_login().state


class TestCallback:
    """CSRF-checked code exchange."""

    @pytest.mark.asyncio
    async def test_state_without_cookie_is_missing_state(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code="c", state="abc", expected_state=None)

        assert exc_info.value.reason == AuthErrorReason.MISSING_STATE
        assert jira_handler.requests == []

    @pytest.mark.asyncio
    async def test_mismatched_state_is_fatal(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, TOKEN_BODY))

        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code="c", state="abc", expected_state="xyz")

        assert exc_info.value.reason == AuthErrorReason.INVALID_STATE
        assert jira_handler.requests == []

    @pytest.mark.asyncio
    async def test_missing_code(self, token_manager: TokenLifecycleManager) -> None:
        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code=None, state="abc", expected_state="abc")

        assert exc_info.value.reason == AuthErrorReason.NO_CODE

    @pytest.mark.asyncio
    async def test_rejected_exchange(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((400, {"error": "invalid_grant"}))

        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code="c", state="abc", expected_state="abc")

        assert exc_info.value.reason == AuthErrorReason.TOKEN_EXCHANGE_FAILED

    @pytest.mark.asyncio
    async def test_malformed_exchange_body(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, {"token_type": "bearer"}))

        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code="c", state="abc", expected_state="abc")

        assert exc_info.value.reason == AuthErrorReason.TOKEN_EXCHANGE_FAILED

    @pytest.mark.asyncio
    async def test_successful_exchange_authenticates(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, TOKEN_BODY))
        before = now_ms()

        state = await token_manager.complete_callback(code="c0de", state="abc", expected_state="abc")

        assert state.is_authenticated
        assert state.access_token == "at-1"
        assert state.refresh_token == "rt-1"
        assert before + 3_600_000 <= state.expires_at <= now_ms() + 3_600_000
        body = jira_handler.bodies()[0]
        assert body["grant_type"] == "authorization_code"
        assert body["code"] == "c0de"
        assert body["redirect_uri"] == "http://testserver/api/v1/jira/callback"


class TestRefreshAndAccess:
    """Refresh, proactive refresh and expiry."""

    @pytest.mark.asyncio
    async def test_refresh_keeps_tenant_and_project(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, {"access_token": "at-2", "expires_in": 3600}))
        current = _authenticated(cloud_id="cloud-1", selected_project_id="10000")

        refreshed = await token_manager.refresh(current)

        assert refreshed.access_token == "at-2"
        assert refreshed.refresh_token == "rt-0"
        assert refreshed.cloud_id == "cloud-1"
        assert refreshed.selected_project_id == "10000"
        assert jira_handler.bodies()[0]["grant_type"] == "refresh_token"

    @pytest.mark.asyncio
    async def test_rejected_refresh_is_expiry(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((401, {"error": "invalid_grant"}))

        with pytest.raises(TokenExpiredError):
            await token_manager.refresh(_authenticated())

    @pytest.mark.asyncio
    async def test_refresh_requires_login(self, token_manager: TokenLifecycleManager) -> None:
        with pytest.raises(AuthenticationError):
            await token_manager.refresh(AuthState())

    @pytest.mark.asyncio
    async def test_fresh_token_is_used_as_is(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        current = _authenticated()

        assert await token_manager.ensure_active(current) is current
        assert jira_handler.requests == []

    @pytest.mark.asyncio
    async def test_token_inside_margin_is_refreshed(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, TOKEN_BODY))

        active = await token_manager.ensure_active(_authenticated(expires_in_ms=30_000))

        assert active.access_token == "at-1"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token_is_logout(
        self, token_manager: TokenLifecycleManager
    ) -> None:
        expired = _authenticated(expires_in_ms=-1000, refresh_token=None)

        with pytest.raises(TokenExpiredError):
            await token_manager.ensure_active(expired)

    @pytest.mark.asyncio
    async def test_unauthenticated_access_is_rejected(
        self, token_manager: TokenLifecycleManager
    ) -> None:
        with pytest.raises(AuthenticationError):
            await token_manager.ensure_active(AuthState())


class TestTenantAndLogout:
    """Tenant resolution, project selection and logout."""

    @pytest.mark.asyncio
    async def test_tenant_is_resolved_once(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, [{"id": "cloud-1", "name": "acme"}, {"id": "cloud-2"}]))

        resolved = await token_manager.resolve_tenant(_authenticated())
        again = await token_manager.resolve_tenant(resolved)

        assert resolved.cloud_id == "cloud-1"
        assert again is resolved
        assert len(jira_handler.requests) == 1
        assert jira_handler.requests[0].url.path == "/oauth/token/accessible-resources"

    def test_select_project(self, token_manager: TokenLifecycleManager) -> None:
        updated = token_manager.select_project(_authenticated(), "10001")

        assert updated.selected_project_id == "10001"

    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, token_manager: TokenLifecycleManager) -> None:
        cleared = await token_manager.logout(_authenticated(cloud_id="cloud-1"))

        assert cleared == AuthState()
        assert token_manager.status(cleared) == AuthStatus.UNAUTHENTICATED

    @pytest.mark.asyncio
    async def test_logout_revokes_when_configured(self, jira_handler: RecordingHandler) -> None:
        jira_handler.responses.append((200, {}))
        manager = TokenLifecycleManager(
            client_id="client-123",
            client_secret="secret-456",
            revoke_url="https://auth.jira.test/oauth/revoke",
            transport=httpx.MockTransport(jira_handler),
        )

        await manager.logout(_authenticated())

        assert jira_handler.requests[0].url.path == "/oauth/revoke"
        assert jira_handler.bodies()[0]["token"] == "rt-0"


class TestStateMachine:
    """Lifecycle transitions."""

    def test_callback_requires_pending_login(self, token_manager: TokenLifecycleManager) -> None:
        with pytest.raises(StateTransitionError):
            token_manager.machine.transition(
                AuthStatus.UNAUTHENTICATED.value, AuthStatus.AUTHENTICATED.value
            )

    def test_only_login_leaves_unauthenticated(
        self, token_manager: TokenLifecycleManager
    ) -> None:
        assert token_manager.machine.get_next_states(AuthStatus.UNAUTHENTICATED.value) == [
            AuthStatus.PENDING_CALLBACK.value
        ]

    def test_status_reflects_cookies(self, token_manager: TokenLifecycleManager) -> None:
        assert token_manager.status(AuthState()) == AuthStatus.UNAUTHENTICATED
        assert token_manager.status(AuthState(), "pending") == AuthStatus.PENDING_CALLBACK
        assert token_manager.status(_authenticated()) == AuthStatus.AUTHENTICATED
        refreshable = _authenticated(expires_in_ms=-1)
        assert token_manager.status(refreshable) == AuthStatus.AUTHENTICATED
        expired = _authenticated(expires_in_ms=-1, refresh_token=None)
        assert token_manager.status(expired) == AuthStatus.UNAUTHENTICATED

    def test_login_is_governed_by_transitions(
        self, token_manager: TokenLifecycleManager
    ) -> None:
        token_manager.machine = _machine_without(
            AuthStatus.UNAUTHENTICATED, AuthStatus.PENDING_CALLBACK
        )

        with pytest.raises(StateTransitionError):
            token_manager.begin_login(AuthState())
        assert token_manager.begin_login(_authenticated()).state

    @pytest.mark.asyncio
    async def test_callback_is_governed_by_transitions(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        token_manager.machine = _machine_without(
            AuthStatus.PENDING_CALLBACK, AuthStatus.AUTHENTICATED
        )
        jira_handler.responses.append((200, TOKEN_BODY))

        with pytest.raises(AuthVerificationError) as exc_info:
            await token_manager.complete_callback(code="c", state="abc", expected_state="abc")

        assert exc_info.value.reason == AuthErrorReason.SERVER_ERROR
        assert jira_handler.requests == []

    @pytest.mark.asyncio
    async def test_refresh_is_governed_by_transitions(
        self, token_manager: TokenLifecycleManager, jira_handler: RecordingHandler
    ) -> None:
        token_manager.machine = _machine_without(
            AuthStatus.AUTHENTICATED, AuthStatus.AUTHENTICATED
        )
        jira_handler.responses.append((200, TOKEN_BODY))

        with pytest.raises(StateTransitionError):
            await token_manager.refresh(_authenticated(expires_in_ms=-1))
        assert jira_handler.requests == []


class TestAuthCookie:
    """Signed cookie codec."""

    def test_round_trip(self) -> None:
        state = _authenticated(cloud_id="cloud-1")

        assert decode_auth_state(encode_auth_state(state, "k"), "k") == state

    def test_tampered_cookie_is_unauthenticated(self) -> None:
        encoded = encode_auth_state(_authenticated(), "k")
        payload, signature = encoded.rsplit(".", 1)
        tampered = payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB") + "." + signature

        assert decode_auth_state(tampered, "k") == AuthState()

    def test_wrong_key_is_unauthenticated(self) -> None:
        encoded = encode_auth_state(_authenticated(), "k")

        assert decode_auth_state(encoded, "other") == AuthState()

    def test_public_view_hides_tokens(self) -> None:
        view = _authenticated().public_view()

        assert "access_token" not in view and "accessToken" not in view
        assert view["isAuthenticated"] is True
