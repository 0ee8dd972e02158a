"""
FeedPress Custom Exceptions
===========================

Every error raised by the pipeline carries a code, a context dict for
structured logs and a message that is safe to show to CLI users.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes grouped by the stage that raises them."""

    # Configuration and input files (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_PARSE_ERROR = "C003"

    # Content processing (P001-P099)
    CONTENT_INVALID = "P001"

    # Caller-supplied arguments (V001-V099)
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_INVALID_TYPE = "V004"

    # System (S001-S099)
    SYSTEM_MEMORY_ERROR = "S002"


class FeedPressError(Exception):
    """Base exception for all FeedPress errors.

    Subclasses set ``default_code``/``default_recoverable`` and may override
    ``_default_user_message``; explicit keyword arguments always win.
    """

    default_code: Optional[ErrorCode] = None
    default_recoverable = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or self._default_user_message(message)
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _default_user_message(self, message: str) -> str:
        return message

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used as ``extra`` when the error is logged."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.error_code.value}] {message}" if self.error_code else message


class ConfigurationError(FeedPressError):
    """Invalid settings, CLI options or input files."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if config_key:
            self.context["config_key"] = config_key

    def _default_user_message(self, message: str) -> str:
        return f"Configuration error: {message}"


class ProcessingError(FeedPressError):
    """A single entry could not be turned into an article."""

    default_code = ErrorCode.CONTENT_INVALID
    default_recoverable = True

    def __init__(self, message: str, article_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if article_id:
            self.context["article_id"] = article_id

    def _default_user_message(self, message: str) -> str:
        return "Article processing failed"


class ValidationError(FeedPressError):
    """A value handed to the pipeline has the wrong shape."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        self.field_name = field_name
        super().__init__(message, **kwargs)
        if field_name:
            self.context["field_name"] = field_name

    def _default_user_message(self, message: str) -> str:
        return f"Invalid {self.field_name or 'input'}: {message}"


class InvalidInputError(ValidationError, TypeError):
    """Pipeline stage called with an argument of the wrong type.

    These are programmer errors: a well-formed feed never produces them and
    they should not be retried.
    """

    default_code = ErrorCode.VALIDATION_INVALID_TYPE


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedPressError:
    """Log ``exception`` and return it as a FeedPressError.

    Args:
        exception: Exception caught by the caller
        logger: Logger or adapter used for the error record
        operation: Name of the operation that failed
        context: Extra values merged into the error context

    Returns:
        The exception itself when it already is a FeedPressError, otherwise
        a wrapped error categorized by its type.
    """
    if isinstance(exception, FeedPressError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    context = {
        **(context or {}),
        "operation": operation,
        "original_exception_type": type(exception).__name__,
    }

    if isinstance(exception, MemoryError):
        error: FeedPressError = ProcessingError(
            f"Memory exhausted during {operation}: {exception}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            user_message="System resources exhausted",
        )
    elif isinstance(exception, (ValueError, TypeError)):
        error = ProcessingError(
            f"Invalid data during {operation}: {exception}",
            context=context,
            recoverable=False,
        )
    else:
        error = FeedPressError(
            f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def get_user_friendly_message(exception: Exception) -> str:
    """Message suitable for printing to a terminal."""
    if isinstance(exception, FeedPressError):
        return exception.user_message
    return "An unexpected error occurred. Please try again later."
