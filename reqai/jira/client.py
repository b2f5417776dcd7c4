"""
Jira Cloud REST client.
Bearer-authenticated reads of tenants, projects and issues.
"""

from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from reqai.core.config import settings
from reqai.core.exceptions import IssueTrackerError
from reqai.core.logging import get_logger

logger = get_logger(__name__)

# Atlassian Document Format block nodes that end a line of text
_BLOCK_NODES = {"paragraph", "heading", "blockquote", "codeBlock", "rule"}


def adf_to_text(node: Any) -> str:
    """
    Flatten an Atlassian Document Format body to plain text.

    Plain strings (API v2 descriptions) pass through unchanged.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(child) for child in node)
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    if node_type == "mention":
        return (node.get("attrs") or {}).get("text", "")

    inner = adf_to_text(node.get("content", []))
    if node_type == "listItem":
        return f"- {inner.strip()}\n"
    if node_type in _BLOCK_NODES:
        return f"{inner.rstrip()}\n"
    if node_type == "doc":
        return inner.strip()
    return inner


class JiraClient:
    """
    Read-only client for the Jira Cloud platform API.

    The access token is passed per call; the client itself holds no
    credentials.
    """

    def __init__(
        self,
        api_base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_base_url: Atlassian API gateway URL
            timeout: Request timeout in seconds
            max_attempts: Attempts per call
            transport: Optional httpx transport (used by tests)
        """
        self.api_base_url = (api_base_url or settings.jira.api_base_url).rstrip("/")
        self.timeout = timeout or settings.jira.timeout
        self.max_attempts = max_attempts or settings.jira.max_attempts
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _get(
        self,
        endpoint: str,
        access_token: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Make a bearer-authenticated GET request.

        Raises:
            IssueTrackerError: If the request fails
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(IssueTrackerError),
            reraise=True,
        ):
            with attempt:
                return await self._request_once(endpoint, access_token, params)

        raise IssueTrackerError("No attempt was made")  # pragma: no cover

    async def _request_once(
        self,
        endpoint: str,
        access_token: str,
        params: Optional[dict[str, Any]],
    ) -> Any:
        client = await self._get_client()

        try:
            response = await client.get(
                endpoint,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(
                "Jira request failed",
                endpoint=endpoint,
                status_code=e.response.status_code,
                response_text=e.response.text[:500],
            )
            raise IssueTrackerError(
                f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                details={"endpoint": endpoint, "status_code": e.response.status_code},
            ) from e

        except httpx.RequestError as e:
            logger.error("Jira request error", endpoint=endpoint, error=str(e))
            raise IssueTrackerError(
                f"Request failed: {e}", details={"endpoint": endpoint}
            ) from e

        except ValueError as e:
            raise IssueTrackerError(
                "Malformed Jira response", details={"endpoint": endpoint}
            ) from e

    async def fetch_cloud_id(self, access_token: str) -> Optional[str]:
        """
        Resolve the first tenant the token can access.

        Returns:
            The cloud id, or None if the token reaches no site
        """
        resources = await self._get("/oauth/token/accessible-resources", access_token)
        if isinstance(resources, list) and resources and isinstance(resources[0], dict):
            return resources[0].get("id")
        return None

    async def fetch_projects(self, access_token: str, cloud_id: str) -> list[dict[str, Any]]:
        """List the projects visible in a tenant."""
        data = await self._get(f"/ex/jira/{cloud_id}/rest/api/3/project/search", access_token)
        return data.get("values", []) if isinstance(data, dict) else []

    async def search_issues(
        self,
        access_token: str,
        cloud_id: str,
        project_key: str,
    ) -> list[dict[str, Any]]:
        """Issues of a project, most recently updated first."""
        data = await self._get(
            f"/ex/jira/{cloud_id}/rest/api/3/search",
            access_token,
            params={"jql": f"project = {project_key} ORDER BY updated DESC"},
        )
        return data.get("issues", []) if isinstance(data, dict) else []


def summarize_issue(issue: dict[str, Any]) -> dict[str, Any]:
    """Flatten an issue payload into the fields the UI displays."""
    fields = issue.get("fields") or {}
    return {
        "id": issue.get("id"),
        "key": issue.get("key"),
        "summary": fields.get("summary", ""),
        "description": adf_to_text(fields.get("description")),
        "issueType": (fields.get("issuetype") or {}).get("name"),
        "status": (fields.get("status") or {}).get("name"),
        "priority": (fields.get("priority") or {}).get("name"),
        "updated": fields.get("updated"),
    }
