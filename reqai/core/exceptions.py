"""
Custom exception hierarchy for ReqAI.
Provides structured error handling with proper HTTP status codes.
"""

from typing import Any, Optional

from reqai.core.constants import AuthErrorReason


class ReqAIError(Exception):
    """Base exception for all ReqAI errors."""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(ReqAIError):
    """Request validation failed."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details=details,
            status_code=400,
        )


class EmptyUploadError(ValidationError):
    """An upload batch contained no files."""

    def __init__(self) -> None:
        super().__init__(message="No files provided")
        self.code = "NO_FILES"


class EmptyConversationError(ValidationError):
    """Nothing to transmit to the chat-completion endpoint."""

    def __init__(self) -> None:
        super().__init__(message="Conversation has no messages to send")
        self.code = "EMPTY_CONVERSATION"


# =============================================================================
# Authentication Errors (401)
# =============================================================================


class AuthenticationError(ReqAIError):
    """Authentication required or no longer valid."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            message=message,
            code="AUTHENTICATION_REQUIRED",
            status_code=401,
        )


class TokenExpiredError(AuthenticationError):
    """The access token passed its expiry; treated exactly like a logout."""

    def __init__(self) -> None:
        super().__init__(message="Jira session expired, please sign in again")
        self.code = "TOKEN_EXPIRED"


class AuthVerificationError(ReqAIError):
    """OAuth callback verification or code exchange failed. Always fatal to the flow."""

    def __init__(self, reason: AuthErrorReason, message: Optional[str] = None) -> None:
        super().__init__(
            message=message or f"OAuth verification failed: {reason.value}",
            code="AUTH_VERIFICATION_FAILED",
            details={"reason": reason.value},
            status_code=401,
        )
        self.reason = reason


class StateTransitionError(ReqAIError):
    """Invalid auth state transition."""

    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(
            message=f"Invalid transition from '{from_state}' to '{to_state}'",
            code="INVALID_STATE_TRANSITION",
            details={"from": from_state, "to": to_state},
            status_code=409,
        )


# =============================================================================
# Not Found Errors (404)
# =============================================================================


class NotFoundError(ReqAIError):
    """Requested resource not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        msg = message or f"{resource_type} not found"
        if resource_id:
            msg = f"{resource_type} with ID '{resource_id}' not found"

        super().__init__(
            message=msg,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
            status_code=404,
        )


class SessionNotFoundError(NotFoundError):
    """Session not found."""

    def __init__(self, session_id: str) -> None:
        super().__init__(resource_type="Session", resource_id=session_id)
        self.code = "SESSION_NOT_FOUND"


class ResultsNotFoundError(NotFoundError):
    """No extraction has been performed yet."""

    def __init__(self) -> None:
        super().__init__(
            resource_type="ExtractionResults",
            message="No extraction has been performed yet or the results file has been moved.",
        )
        self.code = "RESULTS_NOT_FOUND"


class BacklogNotFoundError(NotFoundError):
    """No backlog has been generated for the session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            resource_type="Backlog",
            message=f"No backlog generated for session '{session_id}'",
        )
        self.code = "BACKLOG_NOT_FOUND"


# =============================================================================
# External Service Errors (502)
# =============================================================================


class ExternalServiceError(ReqAIError):
    """Error communicating with external service."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=f"{service_name} error: {message}",
            code="EXTERNAL_SERVICE_ERROR",
            details={"service": service_name, **(details or {})},
            status_code=502,
        )


class ExtractionProviderError(ExternalServiceError):
    """Extraction tool unavailable or produced unusable output."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="Extraction provider", message=message, details=details)
        self.code = "EXTRACTION_FAILED"


class LLMGatewayError(ExternalServiceError):
    """Chat-completion call failed or returned a malformed body."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="Chat completion", message=message, details=details)
        self.code = "LLM_ERROR"


class IssueTrackerError(ExternalServiceError):
    """Jira REST call failed."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(service_name="Jira", message=message, details=details)
        self.code = "JIRA_ERROR"


class BacklogParseError(ExternalServiceError):
    """Model reply could not be parsed into backlog items."""

    def __init__(self, message: str, raw_content: str = "") -> None:
        super().__init__(
            service_name="Backlog generation",
            message=message,
            details={"raw_content": raw_content[:500]},
        )
        self.code = "BACKLOG_PARSE_ERROR"


# =============================================================================
# Persistence Errors (500)
# =============================================================================


class PersistenceError(ReqAIError):
    """A persisted artifact is unreadable or unparsable."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            code="PERSISTENCE_ERROR",
            details=details,
            status_code=500,
        )
