"""
Prompt templates and canned replies.
"""

import re

DOCUMENT_ANALYSIS_FALLBACK = """I've analyzed the document you uploaded. Here are some observations:

1. This appears to be a formal document or letter with contact information.
2. It contains dates, names, and other structured information.
3. I can identify potential requirements or key information in this content.

Would you like me to help organize this information into specific requirements or extract particular details?"""

REQUIREMENTS_FALLBACK = (
    "Based on our conversation, I can help you with requirements engineering. "
    "Would you like me to help you extract, organize, or prioritize requirements "
    "from your documents or discussions?"
)

# A match in the last user message selects the document-analysis reply.
# Words match whole, so "profile" or "documentation" do not count.
DOCUMENT_REFERENCE = re.compile(
    r"\[CONTEXT\]|Document Analysis|\b(?:uploaded|files?|documents?)\b", re.IGNORECASE
)

ANALYSIS_HEADING = "## Requirements Analysis\n\n"

BACKLOG_SYSTEM_PROMPT = """You are an expert agile product owner. Convert the requirements you are given into a Jira backlog.

Return ONLY a JSON object, with no commentary and no markdown fences, of the form:
{
  "items": [
    {
      "id": "E1",
      "type": "Epic" | "Story" | "Task" | "Sub-task",
      "summary": "short unique title",
      "description": "what and why",
      "priority": "Highest" | "High" | "Medium" | "Low",
      "labels": ["label"],
      "parent": "id of the parent item, or null for an Epic"
    }
  ]
}

Rules:
- Every id is unique within the response.
- An Epic has no parent. A Story's parent is an Epic, a Task's parent is a Story, a Sub-task's parent is a Task.
- List every parent before its children.
- Keep summaries distinct; do not reuse the same summary for two items."""

BACKLOG_USER_TEMPLATE = "Requirements:\n\n{text}"
