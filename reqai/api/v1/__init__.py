"""
API v1 routers.
"""

from reqai.api.v1 import backlog, chat, extraction, health, jira

__all__ = ["backlog", "chat", "extraction", "health", "jira"]
