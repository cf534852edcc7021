"""
ContentSync Custom Exceptions
=============================

Exception hierarchy for the sync service with error codes, context
information, user-safe messages and a typed failure classification used by
the sync pipelines to decide on fallbacks.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_NOT_CONFIGURED = "C003"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_ERROR = "D006"

    # Upstream source errors (U001-U099)
    UPSTREAM_HTTP_ERROR = "U001"
    UPSTREAM_NETWORK_ERROR = "U002"
    UPSTREAM_TIMEOUT = "U003"
    UPSTREAM_PARSE_ERROR = "U004"
    UPSTREAM_AUTH_FAILED = "U005"

    # Authorization errors (A001-A099)
    AUTH_FORBIDDEN = "A001"
    AUTH_IDENTITY_UNAVAILABLE = "A002"

    # Review workflow errors (W001-W099)
    WORKFLOW_INVALID_TRANSITION = "W001"
    WORKFLOW_NOT_FOUND = "W002"

    # Validation errors (V001-V099)
    VALIDATION_INVALID_FORMAT = "V002"

    # System errors (S001-S099)
    SYSTEM_UNEXPECTED = "S001"


class FailureKind(str, Enum):
    """Coarse classification of a failure, used for fallback decisions."""

    NOT_CONFIGURED = "not_configured"
    UNAUTHORIZED = "unauthorized"
    UPSTREAM = "upstream"
    PERSISTENCE = "persistence"
    UNKNOWN = "unknown"


class ContentSyncError(Exception):
    """Base exception for all ContentSync errors."""

    failure_kind = FailureKind.UNKNOWN

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize ContentSync error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: Message safe to return to API callers
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "failure_kind": self.failure_kind.value,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


def _passthrough(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    return {
        k: v
        for k, v in kwargs.items()
        if k not in ["context", "error_code", "user_message", "recoverable"]
    }


class ConfigurationError(ContentSyncError):
    """A source or feature is missing required configuration."""

    failure_kind = FailureKind.NOT_CONFIGURED

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        """Initialize configuration error.

        Args:
            message: Error message
            config_key: Environment variable / setting that is missing or invalid
            **kwargs: Additional arguments for ContentSyncError
        """
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_NOT_CONFIGURED),
            context=context,
            user_message=kwargs.get("user_message", message),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs),
        )
        self.config_key = config_key


class AuthorizationError(ContentSyncError):
    """Caller is neither an active admin nor holds the automation secret.

    The message given to callers is always the same generic string; the
    real reason only travels in ``reason`` for server-side logging.
    """

    failure_kind = FailureKind.UNAUTHORIZED
    GENERIC_MESSAGE = "Unauthorized"

    def __init__(self, reason: str = "forbidden", **kwargs):
        super().__init__(
            message=f"Authorization rejected: {reason}",
            error_code=kwargs.get("error_code", ErrorCode.AUTH_FORBIDDEN),
            context=kwargs.get("context", {}),
            user_message=self.GENERIC_MESSAGE,
            recoverable=False,
        )
        self.reason = reason


class UpstreamFetchError(ContentSyncError):
    """A remote source failed (network error, non-2xx, unparseable payload)."""

    failure_kind = FailureKind.UPSTREAM

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
        **kwargs,
    ):
        """Initialize upstream error.

        Args:
            message: Error message
            source: Source name or URL that failed
            status: HTTP status code when the source answered
            body: Response body text (truncated for the context)
            **kwargs: Additional arguments for ContentSyncError
        """
        context = kwargs.get("context", {})
        if source:
            context["source"] = source
        if status is not None:
            context["status"] = status
        if body:
            context["body"] = body[:500]

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.UPSTREAM_HTTP_ERROR),
            context=context,
            user_message=kwargs.get("user_message", message),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs),
        )
        self.source = source
        self.status = status
        self.body = body


class PersistenceError(ContentSyncError):
    """Content store write or read failed."""

    failure_kind = FailureKind.PERSISTENCE

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_ERROR),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(kwargs),
        )


class ValidationError(ContentSyncError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(kwargs),
        )


class NotFoundError(ContentSyncError):
    """Requested content item does not exist."""

    def __init__(self, entity: str, entity_id: Any, **kwargs):
        super().__init__(
            message=f"{entity} {entity_id} not found",
            error_code=ErrorCode.WORKFLOW_NOT_FOUND,
            context={"entity": entity, "entity_id": entity_id},
            user_message=f"{entity} not found",
        )


class InvalidTransitionError(ContentSyncError):
    """Review workflow transition is not allowed from the current status."""

    def __init__(self, entity_id: Any, current: str, target: str):
        super().__init__(
            message=f"Cannot move item {entity_id} from {current} to {target}",
            error_code=ErrorCode.WORKFLOW_INVALID_TRANSITION,
            context={"entity_id": entity_id, "current": current, "target": target},
            user_message=f"Item is already {current}",
        )


# Exception handling utilities


def classify_error(exception: BaseException) -> FailureKind:
    """Map any exception onto a FailureKind.

    ContentSync errors carry their kind; stdlib network errors count as
    upstream failures; everything else is unknown.
    """
    if isinstance(exception, ContentSyncError):
        return exception.failure_kind
    if isinstance(exception, (ConnectionError, TimeoutError)):
        return FailureKind.UPSTREAM
    return FailureKind.UNKNOWN


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> ContentSyncError:
    """Convert generic exceptions to ContentSync exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        ContentSync exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, ContentSyncError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    if isinstance(exception, TimeoutError):
        error = UpstreamFetchError(
            message=f"Timeout during {operation}: {exception}",
            error_code=ErrorCode.UPSTREAM_TIMEOUT,
            context=context,
        )
    elif isinstance(exception, ConnectionError):
        error = UpstreamFetchError(
            message=f"Network error during {operation}: {exception}",
            error_code=ErrorCode.UPSTREAM_NETWORK_ERROR,
            context=context,
        )
    else:
        error = ContentSyncError(
            message=f"Unexpected error during {operation}: {exception}",
            error_code=ErrorCode.SYSTEM_UNEXPECTED,
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_retryable_error(exception: ContentSyncError) -> bool:
    """Check if an error is worth retrying on the next scheduled run."""
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.UPSTREAM_NETWORK_ERROR,
        ErrorCode.UPSTREAM_TIMEOUT,
        ErrorCode.DATABASE_CONNECTION,
    }
    if exception.error_code in retryable_codes:
        return True
    status = getattr(exception, "status", None)
    return status is not None and (status == 429 or status >= 500)
