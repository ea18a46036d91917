"""Custom exception hierarchy for NordWiki.

Taxonomy:
    NotFoundError            -- missing blob, page, revision, session, ...
    PermissionDeniedError    -- role lacks the capability for an action
    InvalidStateError        -- transition not allowed from the current state
    UpstreamUnavailableError -- blob store or live registry failure
    ValidationError          -- malformed user input

Edit conflicts are never raised: they are reported as data.
"""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Lookup errors
    PAGE_NOT_FOUND = "PAGE_NOT_FOUND"
    BLOB_NOT_FOUND = "BLOB_NOT_FOUND"
    REVISION_NOT_FOUND = "REVISION_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SUGGESTION_NOT_FOUND = "SUGGESTION_NOT_FOUND"
    COMMENT_NOT_FOUND = "COMMENT_NOT_FOUND"
    NOTIFICATION_NOT_FOUND = "NOTIFICATION_NOT_FOUND"

    # Workflow errors
    INVALID_STATE = "INVALID_STATE"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Upstream services (blob store, live registry)
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth & rate limiting
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RATE_LIMITED = "RATE_LIMITED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class WikiException(Exception):
    """
    Base exception for all NordWiki errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class NotFoundError(WikiException):
    """Base class for every 'thing does not exist' error."""

    resource = "Resource"
    code = ErrorCode.PAGE_NOT_FOUND
    detail_key = "id"

    def __init__(self, resource_id: str):
        super().__init__(
            f"{self.resource} not found: {resource_id}",
            self.code,
            status_code=404,
            details={self.detail_key: resource_id}
        )


class PageNotFoundError(NotFoundError):
    resource = "Page"
    code = ErrorCode.PAGE_NOT_FOUND
    detail_key = "page_id"


class BlobNotFoundError(NotFoundError):
    resource = "Blob"
    code = ErrorCode.BLOB_NOT_FOUND
    detail_key = "path"


class RevisionNotFoundError(NotFoundError):
    resource = "Revision"
    code = ErrorCode.REVISION_NOT_FOUND
    detail_key = "revision_id"


class SessionNotFoundError(NotFoundError):
    resource = "Edit session"
    code = ErrorCode.SESSION_NOT_FOUND
    detail_key = "session_id"


class SuggestedEditNotFoundError(NotFoundError):
    resource = "Suggested edit"
    code = ErrorCode.SUGGESTION_NOT_FOUND
    detail_key = "edit_id"


class CommentNotFoundError(NotFoundError):
    resource = "Comment"
    code = ErrorCode.COMMENT_NOT_FOUND
    detail_key = "comment_id"


class NotificationNotFoundError(NotFoundError):
    resource = "Notification"
    code = ErrorCode.NOTIFICATION_NOT_FOUND
    detail_key = "notification_id"


class ValidationError(WikiException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class InvalidStateError(WikiException):
    """Requested transition is not allowed from the entity's current state."""

    def __init__(self, message: str, current_state: Optional[str] = None):
        details = {"current_state": current_state} if current_state else {}
        super().__init__(
            message,
            ErrorCode.INVALID_STATE,
            status_code=409,
            details=details
        )


class UpstreamUnavailableError(WikiException):
    """Blob store or live registry could not be reached or answered with an error."""

    def __init__(self, service: str, message: str = ""):
        super().__init__(
            message or f"{service} is unavailable",
            ErrorCode.UPSTREAM_UNAVAILABLE,
            status_code=503,
            details={"service": service}
        )


class AuthenticationError(WikiException):
    """Request lacks the identity the gateway is expected to supply."""

    def __init__(self, message: str = "Missing caller identity"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class PermissionDeniedError(WikiException):
    """Caller's role lacks the capability for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action", action: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.PERMISSION_DENIED,
            status_code=403,
            details={"action": action} if action else {},
        )


class DatabaseError(WikiException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
