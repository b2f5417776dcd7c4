"""
OAuth 2.0 (3LO) token lifecycle for the issue tracker.
Login redirect, CSRF-checked callback, refresh, tenant resolution and logout.
"""

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from reqai.auth.state_machine import StateMachine, create_auth_state_machine
from reqai.core.config import settings
from reqai.core.constants import AuthErrorReason, AuthStatus
from reqai.core.exceptions import (
    AuthenticationError,
    AuthVerificationError,
    IssueTrackerError,
    TokenExpiredError,
)
from reqai.core.logging import get_logger
from reqai.core.security import generate_state_token, tokens_match
from reqai.domain.auth import AuthState, now_ms
from reqai.jira.client import JiraClient

logger = get_logger(__name__)


@dataclass
class LoginRedirect:
    """Where to send the browser, and the state value to pin in a cookie."""

    url: str
    state: str


class TokenExchangeError(Exception):
    """The token endpoint rejected a grant or returned an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TokenLifecycleManager:
    """
    Owns every transition of an AuthState.

    The manager is stateless between requests: callers pass the state
    decoded from the auth cookie and persist whatever state is returned.
    """

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        authorize_url: Optional[str] = None,
        token_url: Optional[str] = None,
        revoke_url: Optional[str] = None,
        audience: Optional[str] = None,
        scopes: Optional[list[str]] = None,
        timeout: Optional[float] = None,
        refresh_margin_seconds: Optional[int] = None,
        tracker: Optional[JiraClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the manager.

        Args:
            client_id: OAuth client ID
            client_secret: OAuth client secret
            redirect_uri: Callback URL registered with the provider
            authorize_url: Authorization endpoint
            token_url: Token endpoint
            revoke_url: Revocation endpoint, or None to skip revocation
            audience: API audience requested at login
            scopes: Requested scopes
            timeout: Token endpoint timeout in seconds
            refresh_margin_seconds: Refresh this close to expiry
            tracker: Client used for tenant resolution
            transport: Optional httpx transport (used by tests)
        """
        jira = settings.jira
        self.client_id = client_id if client_id is not None else jira.client_id
        self.client_secret = client_secret if client_secret is not None else jira.client_secret
        self.redirect_uri = redirect_uri or settings.jira_redirect_uri
        self.authorize_url = authorize_url or jira.authorize_url
        self.token_url = token_url or jira.token_url
        self.revoke_url = revoke_url if revoke_url is not None else jira.revoke_url
        self.audience = audience or jira.audience
        self.scopes = scopes if scopes is not None else list(jira.scopes)
        self.timeout = timeout or jira.timeout
        self.refresh_margin_ms = 1000 * (
            refresh_margin_seconds
            if refresh_margin_seconds is not None
            else jira.refresh_margin_seconds
        )
        self.tracker = tracker or JiraClient(transport=transport)
        self.machine: StateMachine = create_auth_state_machine()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP clients."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
        await self.tracker.close()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @staticmethod
    def status(state: AuthState, pending_state: Optional[str] = None) -> AuthStatus:
        """
        Lifecycle state of a decoded cookie pair.

        An expired token still counts as authenticated while a refresh token
        can renew it.
        """
        if state.is_usable() or (state.is_authenticated and state.refresh_token):
            return AuthStatus.AUTHENTICATED
        if pending_state:
            return AuthStatus.PENDING_CALLBACK
        return AuthStatus.UNAUTHENTICATED

    # -------------------------------------------------------------------------
    # Login and callback
    # -------------------------------------------------------------------------

    def begin_login(self, current: Optional[AuthState] = None) -> LoginRedirect:
        """
        Start an authorization-code flow.

        Returns:
            The authorize URL and the one-time state value bound to it
        """
        self.machine.transition(self.status(current or AuthState()), AuthStatus.PENDING_CALLBACK)

        state = generate_state_token()
        query = urlencode(
            {
                "audience": self.audience,
                "client_id": self.client_id,
                "scope": " ".join(self.scopes),
                "redirect_uri": self.redirect_uri,
                "state": state,
                "response_type": "code",
                "prompt": "consent",
            }
        )
        logger.info("OAuth login started")
        return LoginRedirect(url=f"{self.authorize_url}?{query}", state=state)

    async def complete_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        expected_state: Optional[str],
    ) -> AuthState:
        """
        Verify the callback and exchange the code for tokens.

        Args:
            code: Authorization code from the query string
            state: State value from the query string
            expected_state: State value pinned in the state cookie

        Returns:
            Authenticated state

        Raises:
            AuthVerificationError: With the reason the flow was aborted
        """
        try:
            if not state or not expected_state:
                raise AuthVerificationError(AuthErrorReason.MISSING_STATE)
            if not tokens_match(state, expected_state):
                raise AuthVerificationError(AuthErrorReason.INVALID_STATE)
            if not code:
                raise AuthVerificationError(AuthErrorReason.NO_CODE)

            self.machine.transition(
                self.status(AuthState(), expected_state), AuthStatus.AUTHENTICATED
            )
            authenticated = await self.exchange_code(code)
            logger.info("OAuth callback completed")
            return authenticated

        except AuthVerificationError as e:
            logger.warning("OAuth callback rejected", reason=e.reason.value)
            raise
        except Exception as e:
            logger.exception("OAuth callback failed unexpectedly")
            raise AuthVerificationError(AuthErrorReason.SERVER_ERROR) from e

    async def exchange_code(self, code: str) -> AuthState:
        """
        Trade an authorization code for tokens.

        Raises:
            AuthVerificationError: token_exchange_failed on any token endpoint failure
        """
        try:
            token_data = await self._token_request(
                {
                    "grant_type": "authorization_code",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                }
            )
        except TokenExchangeError as e:
            logger.error("Token exchange failed", error=str(e), status_code=e.status_code)
            raise AuthVerificationError(AuthErrorReason.TOKEN_EXCHANGE_FAILED) from e

        return self._state_from_tokens(token_data, AuthState())

    # -------------------------------------------------------------------------
    # Refresh and access
    # -------------------------------------------------------------------------

    async def refresh(self, current: AuthState) -> AuthState:
        """
        Obtain a new access token with the refresh token.

        Raises:
            AuthenticationError: If not signed in
            TokenExpiredError: If the refresh grant is missing or rejected
            IssueTrackerError: If the token endpoint is unreachable
        """
        if not current.is_authenticated:
            raise AuthenticationError()
        if not current.refresh_token:
            raise TokenExpiredError()
        self.machine.transition(self.status(current), AuthStatus.AUTHENTICATED)

        try:
            token_data = await self._token_request(
                {
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": current.refresh_token,
                }
            )
        except TokenExchangeError as e:
            logger.warning("Token refresh failed", error=str(e), status_code=e.status_code)
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise TokenExpiredError() from e
            raise IssueTrackerError(f"Token refresh failed: {e}") from e

        logger.info("Access token refreshed")
        return self._state_from_tokens(token_data, current)

    def needs_refresh(self, current: AuthState, at_ms: Optional[int] = None) -> bool:
        """True when the token expires within the refresh margin."""
        if current.expires_at is None:
            return True
        reference = now_ms() if at_ms is None else at_ms
        return current.expires_at - reference <= self.refresh_margin_ms

    async def ensure_active(self, current: AuthState) -> AuthState:
        """
        Return a state whose access token can be used right now.

        Refreshes proactively inside the margin; an expired token that cannot
        be refreshed is treated exactly like a logout.

        Raises:
            AuthenticationError: If not signed in
            TokenExpiredError: If the session is over
        """
        if not current.is_authenticated or not current.access_token:
            raise AuthenticationError()

        if not self.needs_refresh(current):
            return current

        if current.refresh_token:
            try:
                return await self.refresh(current)
            except IssueTrackerError:
                if current.is_usable():
                    logger.warning("Refresh unavailable, using current token")
                    return current
                raise

        if current.is_usable():
            return current
        raise TokenExpiredError()

    async def resolve_tenant(self, current: AuthState) -> AuthState:
        """
        Cache the tenant id on the state, fetching it on first use.

        Raises:
            IssueTrackerError: If the token reaches no site
        """
        if current.cloud_id:
            return current

        cloud_id = await self.tracker.fetch_cloud_id(current.access_token or "")
        if not cloud_id:
            raise IssueTrackerError("No accessible Jira site for this account")

        logger.info("Jira tenant resolved", cloud_id=cloud_id)
        return current.model_copy(update={"cloud_id": cloud_id})

    @staticmethod
    def select_project(current: AuthState, project_id: str) -> AuthState:
        """Remember the project the user picked."""
        if not current.is_authenticated:
            raise AuthenticationError()
        return current.model_copy(update={"selected_project_id": project_id})

    # -------------------------------------------------------------------------
    # Logout
    # -------------------------------------------------------------------------

    async def logout(self, current: AuthState) -> AuthState:
        """Forget all token material, revoking the refresh token when configured."""
        status = self.status(current)
        if status != AuthStatus.UNAUTHENTICATED:
            self.machine.transition(status, AuthStatus.UNAUTHENTICATED)
        await self.revoke(current)
        logger.info("Jira session ended")
        return AuthState()

    async def revoke(self, current: AuthState) -> bool:
        """
        Best-effort token revocation.

        Returns:
            True if the provider acknowledged the revocation
        """
        token = current.refresh_token or current.access_token
        if not self.revoke_url or not token:
            return False

        client = await self._get_client()
        try:
            response = await client.post(
                self.revoke_url,
                json={
                    "token": token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
        except httpx.RequestError as e:
            logger.warning("Token revocation request failed", error=str(e))
            return False

        if response.is_error:
            logger.warning("Token revocation rejected", status_code=response.status_code)
            return False
        return True

    # -------------------------------------------------------------------------
    # Token endpoint
    # -------------------------------------------------------------------------

    async def _token_request(self, body: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()

        try:
            response = await client.post(self.token_url, json=body)
        except httpx.RequestError as e:
            raise TokenExchangeError(f"Request failed: {e}") from e

        if response.is_error:
            raise TokenExchangeError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TokenExchangeError("Token response is not JSON") from e

        if (
            not isinstance(data, dict)
            or not data.get("access_token")
            or not isinstance(data.get("expires_in"), (int, float))
        ):
            raise TokenExchangeError("Token response is missing access_token or expires_in")
        return data

    @staticmethod
    def _state_from_tokens(token_data: dict[str, Any], previous: AuthState) -> AuthState:
        return AuthState(
            is_authenticated=True,
            access_token=token_data["access_token"],
            # Providers may omit the refresh token on refresh grants
            refresh_token=token_data.get("refresh_token") or previous.refresh_token,
            expires_at=now_ms() + int(token_data["expires_in"] * 1000),
            cloud_id=previous.cloud_id,
            selected_project_id=previous.selected_project_id,
        )
