"""
System-wide constants for ReqAI.
"""

from enum import Enum


# =============================================================================
# Enums
# =============================================================================


class MessageRole(str, Enum):
    """Message roles in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class SessionStatus(str, Enum):
    """Session lifecycle states."""

    ACTIVE = "active"
    COMPLETED = "completed"


class FallbackMode(str, Enum):
    """What a conversation does when the chat-completion call fails."""

    LOCAL = "local"
    ERROR = "error"


class ExtractionStatus(str, Enum):
    """Outcome of extracting a single file."""

    EXTRACTED = "extracted"
    UNSUPPORTED = "unsupported"
    ERROR = "error"


class AuthStatus(str, Enum):
    """OAuth token lifecycle states."""

    UNAUTHENTICATED = "unauthenticated"
    PENDING_CALLBACK = "pending_callback"
    AUTHENTICATED = "authenticated"


class AuthErrorReason(str, Enum):
    """Machine-readable reason codes carried to the OAuth error view."""

    MISSING_STATE = "missing_state"
    INVALID_STATE = "invalid_state"
    NO_CODE = "no_code"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    SERVER_ERROR = "server_error"


class BacklogItemType(str, Enum):
    """Backlog hierarchy levels, outermost first."""

    EPIC = "Epic"
    STORY = "Story"
    TASK = "Task"
    SUB_TASK = "Sub-task"


class Priority(str, Enum):
    """Backlog item priorities. Unspecified priority is represented by None."""

    HIGHEST = "Highest"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# =============================================================================
# API Constants
# =============================================================================

API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

# =============================================================================
# Extraction Constants
# =============================================================================

# Read directly when the extraction provider is unavailable
PLAIN_TEXT_EXTENSIONS = frozenset({"txt", "md", "json", "csv", "html", "xml", "js", "ts", "css"})

UNSUPPORTED_FILE_MESSAGE = (
    "Text extraction failed. File type requires Python libraries that couldn't be accessed."
)
DEGRADED_EXTRACTION_WARNING = "Used fallback extraction method - limited file type support"

SUMMARY_PREVIEW_CHARS = 800

# =============================================================================
# Conversation Constants
# =============================================================================

CONTEXT_PREFIX = "[CONTEXT]"
SYSTEM_PREFIX = "[SYSTEM]"
TRUNCATION_MARKER = "..."

GREETING_MESSAGE = (
    "Hello! I'm the ReqAI assistant. How can I help you extract and manage "
    "requirements today?"
)

# =============================================================================
# Backlog Constants
# =============================================================================

# Required parent type for each item type
PARENT_TYPES = {
    BacklogItemType.STORY: BacklogItemType.EPIC,
    BacklogItemType.TASK: BacklogItemType.STORY,
    BacklogItemType.SUB_TASK: BacklogItemType.TASK,
}

ITEM_ID_PREFIXES = {
    BacklogItemType.EPIC: "EPIC",
    BacklogItemType.STORY: "STORY",
    BacklogItemType.TASK: "TASK",
    BacklogItemType.SUB_TASK: "SUBTASK",
}
