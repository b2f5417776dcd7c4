"""
Tests for the Jira REST client.
"""

import pytest

from reqai.core.exceptions import IssueTrackerError
from reqai.jira.client import JiraClient, adf_to_text, summarize_issue
from tests.conftest import RecordingHandler


class TestJiraClient:
    """Tests for JiraClient reads."""

    @pytest.mark.asyncio
    async def test_fetch_projects(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append(
            (200, {"values": [{"id": "10000", "key": "REQ", "name": "Requirements"}]})
        )

        projects = await jira_client.fetch_projects("token", "cloud-1")

        assert projects[0]["key"] == "REQ"
        request = jira_handler.requests[0]
        assert request.url.path == "/ex/jira/cloud-1/rest/api/3/project/search"
        assert request.headers["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    async def test_search_issues_uses_project_jql(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, {"issues": [{"key": "REQ-1"}]}))

        issues = await jira_client.search_issues("token", "cloud-1", "REQ")

        assert [i["key"] for i in issues] == ["REQ-1"]
        request = jira_handler.requests[0]
        assert request.url.path == "/ex/jira/cloud-1/rest/api/3/search"
        assert request.url.params["jql"] == "project = REQ ORDER BY updated DESC"

    @pytest.mark.asyncio
    async def test_missing_lists_default_to_empty(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.extend([(200, {}), (200, {})])

        assert await jira_client.fetch_projects("token", "cloud-1") == []
        assert await jira_client.search_issues("token", "cloud-1", "REQ") == []

    @pytest.mark.asyncio
    async def test_no_accessible_site(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, []))

        assert await jira_client.fetch_cloud_id("token") is None

    @pytest.mark.asyncio
    async def test_non_object_site_is_ignored(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((200, ["cloud-1"]))

        assert await jira_client.fetch_cloud_id("token") is None

    @pytest.mark.asyncio
    async def test_error_status_raises(
        self, jira_client: JiraClient, jira_handler: RecordingHandler
    ) -> None:
        jira_handler.responses.append((403, {"errorMessages": ["forbidden"]}))

        with pytest.raises(IssueTrackerError) as exc_info:
            await jira_client.fetch_projects("token", "cloud-1")

        assert exc_info.value.details["status_code"] == 403


class TestAdfToText:
    """Atlassian Document Format flattening."""

    def test_paragraphs_and_lists(self) -> None:
        doc = {
            "type": "doc",
            "version": 1,
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "Users must log in."}]},
                {
                    "type": "bulletList",
                    "content": [
                        {
                            "type": "listItem",
                            "content": [
                                {"type": "paragraph", "content": [{"type": "text", "text": "SSO"}]}
                            ],
                        },
                        {
                            "type": "listItem",
                            "content": [
                                {"type": "paragraph", "content": [{"type": "text", "text": "MFA"}]}
                            ],
                        },
                    ],
                },
            ],
        }

        assert adf_to_text(doc) == "Users must log in.\n- SSO\n- MFA"

    def test_plain_string_passes_through(self) -> None:
        assert adf_to_text("already text") == "already text"

    def test_none_is_empty(self) -> None:
        assert adf_to_text(None) == ""

    def test_mention_with_null_attrs(self) -> None:
        paragraph = {
            "type": "paragraph",
            "content": [
                {"type": "text", "text": "Ask "},
                {"type": "mention", "attrs": None},
                {"type": "mention", "attrs": {"text": "@dana"}},
            ],
        }

        assert adf_to_text({"type": "doc", "content": [paragraph]}) == "Ask @dana"

    def test_summarize_issue(self) -> None:
        issue = {
            "id": "1",
            "key": "REQ-1",
            "fields": {
                "summary": "Login",
                "description": {
                    "type": "doc",
                    "content": [
                        {"type": "paragraph", "content": [{"type": "text", "text": "Body"}]}
                    ],
                },
                "issuetype": {"name": "Story"},
                "status": {"name": "To Do"},
                "priority": None,
            },
        }

        summary = summarize_issue(issue)

        assert summary["description"] == "Body"
        assert summary["issueType"] == "Story"
        assert summary["priority"] is None
