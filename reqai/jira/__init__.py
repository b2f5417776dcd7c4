"""
Jira issue tracker access.
"""

from reqai.jira.client import JiraClient, adf_to_text, summarize_issue

__all__ = ["JiraClient", "adf_to_text", "summarize_issue"]
