"""
Jira OAuth and read endpoints.
"""

from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from reqai.api.deps import (
    clear_auth_cookie,
    clear_state_cookie,
    get_auth_state,
    get_jira_client,
    get_token_manager,
    set_auth_cookie,
    set_state_cookie,
)
from reqai.auth.token_manager import TokenLifecycleManager
from reqai.core.config import settings
from reqai.core.exceptions import AuthVerificationError, ReqAIError, TokenExpiredError
from reqai.core.logging import get_logger
from reqai.domain.auth import AuthState
from reqai.jira.client import JiraClient, summarize_issue

logger = get_logger(__name__)

router = APIRouter()


def _app_redirect(path: str) -> str:
    return f"{settings.app_url.rstrip('/')}{path}"


def _expired_response(exc: TokenExpiredError) -> JSONResponse:
    """An expired session ends exactly like a logout."""
    response = JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    clear_auth_cookie(response)
    return response


async def _with_active_state(
    state: AuthState,
    token_manager: TokenLifecycleManager,
    response: Response,
    action: Callable[[AuthState], Awaitable[dict[str, Any]]],
) -> Any:
    """Run a tracker read with a fresh token and tenant, persisting any change."""
    try:
        active = await token_manager.ensure_active(state)
    except TokenExpiredError as e:
        return _expired_response(e)

    # A refresh may already have spent the old refresh token, so the new state
    # is persisted on failure responses too
    try:
        active = await token_manager.resolve_tenant(active)
        payload = await action(active)
    except ReqAIError as e:
        failed = JSONResponse(status_code=e.status_code, content=e.to_dict())
        if active != state:
            set_auth_cookie(failed, active)
        logger.warning("Tracker read failed", error_code=e.code, state_updated=active != state)
        return failed

    if active != state:
        set_auth_cookie(response, active)
    return payload


@router.get("/jira/auth")
async def start_auth(
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> RedirectResponse:
    """Redirect the browser to the Atlassian consent screen."""
    login = token_manager.begin_login(state)
    response = RedirectResponse(url=login.url, status_code=302)
    set_state_cookie(response, login.state)
    return response


@router.get("/jira/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> RedirectResponse:
    """
    OAuth redirect target.

    Success and failure both end in a redirect to the frontend; failures
    carry a reason code and never authenticate.
    """
    expected_state = request.cookies.get(settings.jira.state_cookie_name)

    try:
        auth_state = await token_manager.complete_callback(code, state, expected_state)
    except AuthVerificationError as e:
        response = RedirectResponse(
            url=_app_redirect(f"/jira/error?error={e.reason.value}"), status_code=302
        )
        clear_state_cookie(response)
        return response

    response = RedirectResponse(url=_app_redirect("/jira/success"), status_code=302)
    set_auth_cookie(response, auth_state)
    clear_state_cookie(response)
    return response


@router.get("/jira/auth-data")
async def auth_data(
    response: Response,
    state: AuthState = Depends(get_auth_state),
) -> dict[str, Any]:
    """Browser-safe view of the auth state; tokens never leave the cookie."""
    if state.is_authenticated and state.is_expired():
        clear_auth_cookie(response)
        return AuthState().public_view()
    return state.public_view()


@router.post("/jira/refresh")
async def refresh_token(
    response: Response,
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> Any:
    """Exchange the refresh token for a new access token."""
    try:
        refreshed = await token_manager.refresh(state)
    except TokenExpiredError as e:
        return _expired_response(e)

    set_auth_cookie(response, refreshed)
    return refreshed.public_view()


@router.get("/jira/logout")
async def logout(
    response: Response,
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> dict[str, Any]:
    """End the Jira session."""
    cleared = await token_manager.logout(state)
    clear_auth_cookie(response)
    return {"status": "logged_out", **cleared.public_view()}


@router.get("/jira/projects")
async def list_projects(
    response: Response,
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    jira_client: JiraClient = Depends(get_jira_client),
) -> Any:
    """Projects in the user's Jira site."""

    async def fetch(active: AuthState) -> dict[str, Any]:
        projects = await jira_client.fetch_projects(active.access_token or "", active.cloud_id or "")
        return {
            "projects": [
                {"id": p.get("id"), "key": p.get("key"), "name": p.get("name")}
                for p in projects
            ],
            "selectedProjectId": active.selected_project_id,
        }

    return await _with_active_state(state, token_manager, response, fetch)


class SelectProjectRequest(BaseModel):
    """Request to select a project."""

    project_id: str = Field(..., min_length=1)


@router.post("/jira/projects/select")
async def select_project(
    request: SelectProjectRequest,
    response: Response,
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
) -> dict[str, Any]:
    """Remember the selected project in the auth cookie."""
    updated = token_manager.select_project(state, request.project_id)
    set_auth_cookie(response, updated)
    return updated.public_view()


@router.get("/jira/issues")
async def list_issues(
    response: Response,
    project_key: str = Query(..., pattern=r"^[A-Za-z][A-Za-z0-9_]*$"),
    state: AuthState = Depends(get_auth_state),
    token_manager: TokenLifecycleManager = Depends(get_token_manager),
    jira_client: JiraClient = Depends(get_jira_client),
) -> Any:
    """Issues of a project, most recently updated first."""

    async def fetch(active: AuthState) -> dict[str, Any]:
        issues = await jira_client.search_issues(
            active.access_token or "", active.cloud_id or "", project_key
        )
        return {"issues": [summarize_issue(i) for i in issues], "total": len(issues)}

    return await _with_active_state(state, token_manager, response, fetch)
